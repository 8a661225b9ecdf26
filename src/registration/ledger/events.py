"""Domain events for the AttendeeSelections aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from registration.domain import registration


@registration.event(part_of="AttendeeSelections")
class PackageSelected:
    """A package was selected for an attendee, replacing any earlier record of the same package."""

    __version__ = 1

    attendee_id = Identifier(required=True)
    record_id = Identifier(required=True)
    package_id = String(required=True, max_length=100)
    quantity = Integer(required=True)
    subtotal = Float(required=True)
    generated_ticket_count = Integer(required=True)
    cleared_ticket_ids = Text()  # JSON array of individual tickets the package displaced


@registration.event(part_of="AttendeeSelections")
class TicketSelected:
    """An individual ticket was selected or re-priced for an attendee."""

    __version__ = 1

    attendee_id = Identifier(required=True)
    record_id = Identifier(required=True)
    ticket_id = String(required=True, max_length=100)
    quantity = Integer(required=True)
    subtotal = Float(required=True)
    replaced_package_ids = Text()  # JSON array of packages that covered the ticket


@registration.event(part_of="AttendeeSelections")
class SelectionRemoved:
    """A package or individual ticket record was removed."""

    __version__ = 1

    attendee_id = Identifier(required=True)
    record_id = Identifier(required=True)
    kind = String(required=True, max_length=20)
    subtotal = Float(required=True)


@registration.event(part_of="AttendeeSelections")
class SelectionsCleared:
    """Every selection of an attendee was dropped."""

    __version__ = 1

    attendee_id = Identifier(required=True)
    cleared_at = DateTime(required=True)
