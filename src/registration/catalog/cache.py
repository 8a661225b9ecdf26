"""In-memory cache of catalog snapshots, keyed by id.

Entries are normalized from the raw shape returned by the catalog fetch port.
Re-ingesting an id replaces its snapshot (used to refresh availability);
selection records already holding the old snapshot keep it.
"""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError

from registration.catalog.metadata import (
    FunctionMetadata,
    PackageMetadata,
    TicketMetadata,
    availability_status,
)
from registration.domain import logger, registration


def _setting(name, default):
    return getattr(registration, name, default)


def _entry_id(raw, *keys):
    for key in keys:
        if raw.get(key):
            return str(raw[key])
    raise ValidationError({"id": ["Catalog entry has no id"]})


def _price(raw, key="price"):
    value = raw.get(key)
    if value is None:
        raise ValidationError({key: ["Catalog entry has no price"]})
    price = float(value)
    if price < 0:
        raise ValidationError({key: ["Price cannot be negative"]})
    return price


def _optional_float(raw, key):
    return float(raw[key]) if raw.get(key) is not None else None


class CatalogCache:
    def __init__(self, default_currency=None, low_stock_threshold=None):
        self.default_currency = default_currency or _setting("DEFAULT_CURRENCY", "AUD")
        self.low_stock_threshold = (
            low_stock_threshold if low_stock_threshold is not None else _setting("LOW_STOCK_THRESHOLD", 10)
        )
        self._tickets: dict[str, TicketMetadata] = {}
        self._packages: dict[str, PackageMetadata] = {}
        self.function: FunctionMetadata | None = None

    # -------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------
    def ingest_ticket(self, raw):
        ticket_id = _entry_id(raw, "ticket_id", "id")
        available_count = raw.get("available_count")
        if available_count is not None:
            available_count = int(available_count)

        ticket = TicketMetadata(
            ticket_id=ticket_id,
            name=raw.get("name") or ticket_id,
            price=_price(raw),
            currency=raw.get("currency") or self.default_currency,
            status=availability_status(available_count, self.low_stock_threshold),
            description=raw.get("description"),
            event_id=raw.get("event_id"),
            event_title=raw.get("event_title"),
            function_id=raw.get("function_id"),
            is_active=raw.get("is_active", True),
            available_count=available_count,
            total_capacity=raw.get("total_capacity"),
            captured_at=datetime.now(UTC),
        )
        if ticket_id in self._tickets:
            logger.debug("catalog_ticket_refreshed", ticket_id=ticket_id, status=ticket.status.value)
        self._tickets[ticket_id] = ticket
        return ticket

    def ingest_package(self, raw, included_tickets=None):
        """Store a package snapshot.

        ``included_tickets`` are the ticket snapshots to embed. When omitted,
        the ids listed under ``raw["includes"]`` are resolved from this cache.
        """
        package_id = _entry_id(raw, "package_id", "id")
        if included_tickets is None:
            included_tickets = []
            for ticket_id in raw.get("includes") or []:
                ticket = self._tickets.get(str(ticket_id))
                if ticket is None:
                    raise ObjectNotFoundError({"includes": [f"Ticket {ticket_id} of package {package_id} not found"]})
                included_tickets.append(ticket)

        package = PackageMetadata(
            package_id=package_id,
            name=raw.get("name") or package_id,
            price=_price(raw),
            currency=raw.get("currency") or self.default_currency,
            included_tickets=tuple(included_tickets),
            description=raw.get("description"),
            original_price=_optional_float(raw, "original_price"),
            discount=_optional_float(raw, "discount"),
            includes_description=raw.get("includes_description"),
            captured_at=datetime.now(UTC),
        )
        self._packages[package_id] = package
        return package

    def ingest_function(self, raw):
        self.function = FunctionMetadata(
            function_id=_entry_id(raw, "function_id", "id"),
            name=raw.get("name") or "",
            slug=raw.get("slug"),
            start_date=raw.get("start_date"),
            end_date=raw.get("end_date"),
            location=raw.get("location"),
            organiser=raw.get("organiser"),
        )
        return self.function

    def load(self, catalog):
        """Ingest a whole catalog fetch result: tickets first, then packages that embed them."""
        for raw in catalog.tickets:
            self.ingest_ticket(raw)
        for raw in catalog.packages:
            self.ingest_package(raw)
        if catalog.function:
            self.ingest_function(catalog.function)
        logger.info(
            "catalog_loaded",
            tickets=len(self._tickets),
            packages=len(self._packages),
        )

    # -------------------------------------------------------------------
    # Restore (snapshots already normalized)
    # -------------------------------------------------------------------
    def put_ticket(self, ticket):
        self._tickets[ticket.ticket_id] = ticket

    def put_package(self, package):
        self._packages[package.package_id] = package

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get(self, entry_id):
        entry_id = str(entry_id)
        return self._tickets.get(entry_id) or self._packages.get(entry_id)

    def get_ticket(self, ticket_id):
        return self._tickets.get(str(ticket_id))

    def get_package(self, package_id):
        return self._packages.get(str(package_id))

    def tickets(self):
        return list(self._tickets.values())

    def packages(self):
        return list(self._packages.values())

    def clear(self):
        self._tickets.clear()
        self._packages.clear()
        self.function = None
