"""SelectionLedger: the per-attendee ticket and package selections of one registration.

The ledger resolves catalog ids through the ``CatalogCache`` and checks
attendee ids through the ``attendee_exists`` callable it is given; it never
reads the registration directly. It does not follow attendee removals on its
own: the orchestrator clears an attendee's page when it removes the attendee.
"""

from protean.exceptions import ObjectNotFoundError

from registration.catalog.metadata import AvailabilityStatus
from registration.domain import logger
from registration.ledger.selections import AttendeeSelections


class SelectionLedger:
    def __init__(self, catalog, attendee_exists):
        self.catalog = catalog
        self.attendee_exists = attendee_exists
        self._pages: dict[str, AttendeeSelections] = {}

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def selections_for(self, attendee_id):
        return self._pages.get(str(attendee_id))

    def all_selections(self):
        return list(self._pages.values())

    def attendee_subtotal(self, attendee_id):
        page = self.selections_for(attendee_id)
        return page.subtotal if page is not None else 0.0

    # -------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------
    def select_package(self, attendee_id, package_id, quantity=1):
        self._require_attendee(attendee_id)
        package = self.catalog.get_package(package_id)
        if package is None:
            raise ObjectNotFoundError({"package_id": [f"Package {package_id} not found"]})

        page = self._page(attendee_id)
        record = page.select_package(package, quantity)
        self._pages[str(attendee_id)] = page
        logger.info(
            "package_selected",
            attendee_id=str(attendee_id),
            package_id=package.package_id,
            quantity=quantity,
            subtotal=record.subtotal,
        )
        return record

    def select_individual_ticket(self, attendee_id, ticket_id, quantity=1):
        self._require_attendee(attendee_id)
        ticket = self.catalog.get_ticket(ticket_id)
        if ticket is None:
            raise ObjectNotFoundError({"ticket_id": [f"Ticket {ticket_id} not found"]})
        if ticket.status == AvailabilityStatus.SOLD_OUT or not ticket.is_active:
            logger.warning("unavailable_ticket_selected", attendee_id=str(attendee_id), ticket_id=ticket.ticket_id)

        page = self._page(attendee_id)
        record = page.select_individual_ticket(ticket, quantity)
        self._pages[str(attendee_id)] = page
        logger.info(
            "ticket_selected",
            attendee_id=str(attendee_id),
            ticket_id=ticket.ticket_id,
            quantity=quantity,
            subtotal=record.subtotal,
        )
        return record

    # -------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------
    def remove_selection(self, attendee_id, record_id, kind):
        page = self.selections_for(attendee_id)
        if page is None:
            raise ObjectNotFoundError({"attendee_id": [f"Attendee {attendee_id} has no selections"]})
        record = page.remove_selection(record_id, kind)
        if page.is_empty():
            del self._pages[str(attendee_id)]
        return record

    def clear_attendee(self, attendee_id):
        """Drop every selection of one attendee. Returns False when there was nothing to clear."""
        page = self._pages.pop(str(attendee_id), None)
        if page is None:
            return False
        page.clear()
        logger.info("attendee_selections_cleared", attendee_id=str(attendee_id))
        return True

    def clear(self):
        self._pages.clear()

    def restore(self, pages):
        """Replace the ledger contents with already-built AttendeeSelections pages."""
        self._pages = {str(page.attendee_id): page for page in pages}

    def _require_attendee(self, attendee_id):
        if not self.attendee_exists(attendee_id):
            raise ObjectNotFoundError({"attendee_id": [f"Attendee {attendee_id} not found"]})

    def _page(self, attendee_id):
        """The attendee's page, or a new one that is only kept once a selection succeeds."""
        key = str(attendee_id)
        page = self._pages.get(key)
        return page if page is not None else AttendeeSelections.open(key)
