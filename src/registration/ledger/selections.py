"""AttendeeSelections aggregate: one attendee's chosen packages and tickets.

Every record freezes the catalog price it was selected at. A package record
generates one ticket record per distinct included ticket (quantity 1,
subtotal 0, tagged with ``from_package_id``); the package quantity multiplies
at the package level only. Individual tickets never overlap a selected
package's tickets for the same attendee.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from registration.domain import registration
from registration.ledger.events import PackageSelected, SelectionRemoved, SelectionsCleared, TicketSelected


class SelectionKind(Enum):
    PACKAGE = "package"
    TICKET = "ticket"


def _money(value):
    return round(value, 2)


def ticket_snapshot(ticket):
    """JSON-ready copy of a TicketMetadata, as embedded in package records."""
    return {
        "ticket_id": ticket.ticket_id,
        "name": ticket.name,
        "price": ticket.price,
        "currency": ticket.currency,
        "event_id": ticket.event_id,
        "event_title": ticket.event_title,
    }


@registration.entity(part_of="AttendeeSelections")
class TicketRecord:
    ticket_id = String(required=True, max_length=100)
    name = String(max_length=255)
    event_id = String(max_length=100)
    event_title = String(max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    currency = String(required=True, max_length=3)
    quantity = Integer(required=True, min_value=1)
    subtotal = Float(required=True, min_value=0.0)
    attendee_id = Identifier(required=True)
    from_package_id = String(max_length=100)
    package_record_id = Identifier()
    selected_at = DateTime()

    @property
    def is_generated(self):
        return bool(self.package_record_id)


@registration.entity(part_of="AttendeeSelections")
class PackageRecord:
    package_id = String(required=True, max_length=100)
    name = String(max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    currency = String(required=True, max_length=3)
    quantity = Integer(required=True, min_value=1)
    subtotal = Float(required=True, min_value=0.0)
    included_tickets = Text()  # JSON array of ticket snapshots
    original_price = Float()
    discount = Float()
    selected_at = DateTime()

    def included_ticket_snapshots(self):
        return json.loads(self.included_tickets) if self.included_tickets else []

    def included_ticket_ids(self):
        return [t["ticket_id"] for t in self.included_ticket_snapshots()]


@registration.aggregate
class AttendeeSelections:
    """The ledger page for one attendee. ``subtotal`` caches the sum of record subtotals."""

    attendee_id = Identifier(required=True)
    tickets = HasMany(TicketRecord)
    packages = HasMany(PackageRecord)
    subtotal = Float(default=0.0)
    updated_at = DateTime()

    @invariant.post
    def cached_subtotal_matches_records(self):
        expected = _money(sum(p.subtotal for p in self.packages) + sum(t.subtotal for t in self.tickets))
        if abs(_money(self.subtotal or 0.0) - expected) > 0.005:
            raise ValidationError({"subtotal": [f"Cached subtotal {self.subtotal} does not match records {expected}"]})

    @invariant.post
    def generated_tickets_belong_to_a_selected_package(self):
        package_ids = {str(p.id) for p in self.packages}
        for ticket in self.tickets:
            if ticket.package_record_id and str(ticket.package_record_id) not in package_ids:
                raise ValidationError({"tickets": [f"Ticket record {ticket.id} points at a removed package"]})

    @invariant.post
    def individual_tickets_do_not_overlap_packages(self):
        covered = {tid for p in self.packages for tid in p.included_ticket_ids()}
        for ticket in self.individual_tickets():
            if ticket.ticket_id in covered:
                raise ValidationError({"tickets": [f"Ticket {ticket.ticket_id} is already part of a selected package"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, attendee_id):
        return cls(attendee_id=str(attendee_id), subtotal=0.0, updated_at=datetime.now(UTC))

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def individual_tickets(self):
        return [t for t in self.tickets if not t.package_record_id]

    def generated_ticket_records(self, package_record_id):
        return [t for t in self.tickets if str(t.package_record_id or "") == str(package_record_id)]

    def find_record(self, record_id, kind):
        records = self.packages if SelectionKind(kind) == SelectionKind.PACKAGE else self.tickets
        return next((r for r in records if str(r.id) == str(record_id)), None)

    def is_empty(self):
        return not self.packages and not self.tickets

    def ticket_count(self):
        """Individual entries plus, per package, its generated tickets times the package quantity."""
        count = len(self.individual_tickets())
        for package in self.packages:
            count += len(self.generated_ticket_records(package.id)) * package.quantity
        return count

    # -------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------
    def select_package(self, package, quantity=1):
        """Select ``package`` (a PackageMetadata snapshot).

        Replaces an earlier record for the same package and drops individual
        tickets the package covers. Returns the new PackageRecord.
        """
        _check_quantity(quantity)
        now = datetime.now(UTC)
        covered = set(package.included_ticket_ids)

        record = PackageRecord(
            package_id=package.package_id,
            name=package.name,
            unit_price=package.price,
            currency=package.currency,
            quantity=quantity,
            subtotal=_money(package.price * quantity),
            included_tickets=json.dumps([ticket_snapshot(t) for t in package.included_tickets]),
            original_price=package.original_price,
            discount=package.discount,
            selected_at=now,
        )

        # One record per distinct included ticket
        generated = []
        for ticket in dict((t.ticket_id, t) for t in package.included_tickets).values():
            generated.append(
                TicketRecord(
                    ticket_id=ticket.ticket_id,
                    name=ticket.name,
                    event_id=ticket.event_id,
                    event_title=ticket.event_title,
                    unit_price=ticket.price,
                    currency=ticket.currency,
                    quantity=1,
                    subtotal=0.0,
                    attendee_id=self.attendee_id,
                    from_package_id=package.package_id,
                    package_record_id=record.id,
                    selected_at=now,
                )
            )

        replaced = [p for p in self.packages if p.package_id == package.package_id]
        cleared = [t for t in self.individual_tickets() if t.ticket_id in covered]

        with atomic_change(self):
            for old in replaced:
                self._drop_package(old)
            if cleared:
                self.remove_tickets(cleared)
            self.add_packages(record)
            if generated:
                self.add_tickets(generated)
            self._refresh_subtotal(now)

        self.raise_(
            PackageSelected(
                attendee_id=str(self.attendee_id),
                record_id=str(record.id),
                package_id=package.package_id,
                quantity=quantity,
                subtotal=record.subtotal,
                generated_ticket_count=len(generated),
                cleared_ticket_ids=json.dumps([t.ticket_id for t in cleared]),
            )
        )
        return record

    def select_individual_ticket(self, ticket, quantity=1):
        """Select ``ticket`` (a TicketMetadata snapshot) on its own.

        An existing individual entry for the same ticket is re-priced from the
        given snapshot. A package of this attendee that already covers the
        ticket is dropped; other packages are left alone.
        """
        _check_quantity(quantity)
        now = datetime.now(UTC)
        existing = next((t for t in self.individual_tickets() if t.ticket_id == ticket.ticket_id), None)
        overlapping = [p for p in self.packages if ticket.ticket_id in p.included_ticket_ids()]

        with atomic_change(self):
            for package in overlapping:
                self._drop_package(package)
            if existing is not None:
                existing.name = ticket.name
                existing.unit_price = ticket.price
                existing.currency = ticket.currency
                existing.quantity = quantity
                existing.subtotal = _money(ticket.price * quantity)
                existing.selected_at = now
                record = existing
            else:
                record = TicketRecord(
                    ticket_id=ticket.ticket_id,
                    name=ticket.name,
                    event_id=ticket.event_id,
                    event_title=ticket.event_title,
                    unit_price=ticket.price,
                    currency=ticket.currency,
                    quantity=quantity,
                    subtotal=_money(ticket.price * quantity),
                    attendee_id=self.attendee_id,
                    selected_at=now,
                )
                self.add_tickets(record)
            self._refresh_subtotal(now)

        self.raise_(
            TicketSelected(
                attendee_id=str(self.attendee_id),
                record_id=str(record.id),
                ticket_id=ticket.ticket_id,
                quantity=quantity,
                subtotal=record.subtotal,
                replaced_package_ids=json.dumps([p.package_id for p in overlapping]),
            )
        )
        return record

    # -------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------
    def remove_selection(self, record_id, kind):
        """Remove one package or individual ticket record and return it."""
        kind = SelectionKind(kind)
        record = self.find_record(record_id, kind)
        if record is None:
            raise ObjectNotFoundError({"record_id": [f"{kind.value.capitalize()} record {record_id} not found"]})
        if kind == SelectionKind.TICKET and record.package_record_id:
            raise InvalidOperationError("Tickets generated by a package are removed with the package")

        now = datetime.now(UTC)
        with atomic_change(self):
            if kind == SelectionKind.PACKAGE:
                self._drop_package(record)
            else:
                self.remove_tickets(record)
            self.subtotal = _money((self.subtotal or 0.0) - record.subtotal)
            self.updated_at = now

        self.raise_(
            SelectionRemoved(
                attendee_id=str(self.attendee_id),
                record_id=str(record.id),
                kind=kind.value,
                subtotal=record.subtotal,
            )
        )
        return record

    def clear(self):
        now = datetime.now(UTC)
        with atomic_change(self):
            if self.tickets:
                self.remove_tickets(list(self.tickets))
            if self.packages:
                self.remove_packages(list(self.packages))
            self.subtotal = 0.0
            self.updated_at = now
        self.raise_(SelectionsCleared(attendee_id=str(self.attendee_id), cleared_at=now))

    def _drop_package(self, package):
        generated = self.generated_ticket_records(package.id)
        if generated:
            self.remove_tickets(generated)
        self.remove_packages(package)

    def _refresh_subtotal(self, now):
        self.subtotal = _money(sum(p.subtotal for p in self.packages) + sum(t.subtotal for t in self.tickets))
        self.updated_at = now


def _check_quantity(quantity):
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError({"quantity": ["Quantity must be a whole number of at least 1"]})
