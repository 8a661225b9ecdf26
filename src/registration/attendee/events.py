"""Domain events for the Registration aggregate."""

from protean.fields import Boolean, DateTime, Identifier, String, Text

from registration.domain import registration


@registration.event(part_of="Registration")
class RegistrationStarted:
    """A new draft registration was started, discarding any previous one."""

    __version__ = 1

    registration_id = Identifier(required=True)
    draft_id = String(required=True, max_length=50)
    registration_type = String(max_length=20)
    started_at = DateTime(required=True)


@registration.event(part_of="Registration")
class AttendeeAdded:
    """A primary member, additional member or guest joined the registration."""

    __version__ = 1

    registration_id = Identifier(required=True)
    attendee_id = Identifier(required=True)
    role = String(required=True, max_length=20)
    is_primary = Boolean(default=False)
    host_id = Identifier()


@registration.event(part_of="Registration")
class PartnerAdded:
    """A partner was added and linked to its owner."""

    __version__ = 1

    registration_id = Identifier(required=True)
    attendee_id = Identifier(required=True)
    owner_id = Identifier(required=True)


@registration.event(part_of="Registration")
class AttendeeUpdated:
    """Attendee details changed. ``changed_fields`` is a JSON array of the field names written."""

    __version__ = 1

    registration_id = Identifier(required=True)
    attendee_id = Identifier(required=True)
    changed_fields = Text(required=True)


@registration.event(part_of="Registration")
class AttendeeRemoved:
    """An attendee left the registration, directly or as the partner of a removed attendee."""

    __version__ = 1

    registration_id = Identifier(required=True)
    attendee_id = Identifier(required=True)
    cascaded_from = Identifier()


@registration.event(part_of="Registration")
class RegistrationConfirmed:
    """Payment succeeded and the caller issued a confirmation number."""

    __version__ = 1

    registration_id = Identifier(required=True)
    draft_id = String(required=True, max_length=50)
    confirmation_number = String(required=True, max_length=50)
    confirmed_at = DateTime(required=True)
