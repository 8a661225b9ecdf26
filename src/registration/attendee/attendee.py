"""Registration aggregate root with the Attendee entity and BillingDetails value object.

A registration holds an ordered group of attendees: exactly one primary member,
any number of additional members and guests, and at most one partner per
member or guest. Partner links (``partner_id`` / ``is_partner_of``) are always
mutual, and every reference points at an attendee that still exists. Changes
that touch several attendees run inside ``atomic_change`` so the structural
invariants are checked once, on the finished state.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, String, Text, ValueObject

from registration.attendee.events import (
    AttendeeAdded,
    AttendeeRemoved,
    AttendeeUpdated,
    PartnerAdded,
    RegistrationConfirmed,
    RegistrationStarted,
)
from registration.domain import logger, registration
from registration.shared.errors import PartnerConflictError
from registration.shared.identifiers import new_draft_id


class RegistrationType(Enum):
    INDIVIDUALS = "individuals"
    LODGE = "lodge"
    DELEGATION = "delegation"


class AttendeeRole(Enum):
    MEMBER = "member"
    GUEST = "guest"


class ContactPreference(Enum):
    DIRECTLY = "Directly"
    PRIMARY_ATTENDEE = "PrimaryAttendee"
    PROVIDE_LATER = "ProvideLater"
    MEMBER = "Mason"  # a guest or partner reached through the member they came with
    GUEST = "Guest"  # a member reached through their partner


# Older drafts stored a combined delegate option that no longer exists
LEGACY_CONTACT_PREFERENCES = frozenset({"Mason/Guest"})


class GrandOfficerStatus(Enum):
    PRESENT = "Present"
    PAST = "Past"


GRAND_LODGE_RANK = "GL"
OTHER_GRAND_OFFICE = "Other"

# Keys owned by the add/remove/select operations; never accepted by update_attendee
STRUCTURAL_FIELDS = frozenset(
    {
        "id",
        "role",
        "is_primary",
        "is_partner_of",
        "partner_id",
        "created_at",
        "updated_at",
        "selected_package_id",
        "selected_ticket_ids",
    }
)

# Fields callers may set when adding or updating an attendee
EDITABLE_FIELDS = frozenset(
    {
        "host_id",
        "title",
        "first_name",
        "last_name",
        "contact_preference",
        "email",
        "phone",
        "relationship",
        "rank",
        "grand_lodge_id",
        "lodge_id",
        "lodge_name_number",
        "grand_rank",
        "grand_officer_status",
        "grand_office",
        "grand_office_other",
        "dietary_requirements",
        "special_needs",
    }
)

# Attendee fields copied from a directory lookup row
AFFILIATION_FIELDS = ("grand_lodge_id", "lodge_id", "lodge_name_number")


@registration.value_object(part_of="Registration")
class BillingDetails:
    """Who pays for the registration. Replaced wholesale on every change."""

    first_name = String(max_length=100)
    last_name = String(max_length=100)
    email = String(max_length=254)
    phone = String(max_length=30)
    address_line = String(max_length=255)
    city = String(max_length=100)
    postcode = String(max_length=20)
    country = String(max_length=100)


BILLING_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "address_line",
    "city",
    "postcode",
    "country",
)


@registration.entity(part_of="Registration")
class Attendee:
    """One person in the registration.

    Members carry rank and lodge affiliation; guests may name the member they
    are hosted by. A partner is always guest-shaped and points back at its
    owner through ``is_partner_of``.
    """

    role = String(choices=AttendeeRole, required=True)
    is_primary = Boolean(default=False)
    is_partner_of = Identifier()
    partner_id = Identifier()
    host_id = Identifier()

    # Identity
    title = String(max_length=50)
    first_name = String(max_length=100)
    last_name = String(max_length=100)

    # Contact
    contact_preference = String(max_length=50)
    email = String(max_length=254)
    phone = String(max_length=30)
    relationship = String(max_length=50)

    # Member affiliation and rank
    rank = String(max_length=20)
    grand_lodge_id = String(max_length=100)
    lodge_id = String(max_length=100)
    lodge_name_number = String(max_length=255)
    grand_rank = String(max_length=50)
    grand_officer_status = String(choices=GrandOfficerStatus)
    grand_office = String(max_length=100)
    grand_office_other = String(max_length=255)

    dietary_requirements = Text()
    special_needs = Text()

    # Ticket choice: a package id or a JSON array of ticket ids, never both
    selected_package_id = String(max_length=100)
    selected_ticket_ids = Text()

    created_at = DateTime()
    updated_at = DateTime()

    @property
    def is_member(self):
        return self.role == AttendeeRole.MEMBER.value

    @property
    def is_partner(self):
        return bool(self.is_partner_of)

    @property
    def display_name(self):
        return " ".join(part for part in (self.title, self.first_name, self.last_name) if part)

    def ticket_ids(self):
        return json.loads(self.selected_ticket_ids) if self.selected_ticket_ids else []


@registration.aggregate
class Registration:
    """A draft registration: the attendee group, billing details and confirmation state."""

    draft_id = String(required=True, max_length=50)
    registration_type = String(choices=RegistrationType)
    attendees = HasMany(Attendee)
    billing_details = ValueObject(BillingDetails)
    agree_to_terms = Boolean(default=False)
    confirmation_number = String(max_length=50)
    confirmed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def exactly_one_primary_member_when_attendees_exist(self):
        if not self.attendees:
            return
        primaries = [a for a in self.attendees if a.is_primary]
        if len(primaries) != 1:
            raise ValidationError({"attendees": ["Exactly one attendee must be the primary registrant"]})
        if primaries[0].role != AttendeeRole.MEMBER.value:
            raise ValidationError({"attendees": ["The primary registrant must be a member"]})

    @invariant.post
    def attendees_cannot_reference_themselves(self):
        for attendee in self.attendees:
            own_id = str(attendee.id)
            for field in ("partner_id", "is_partner_of", "host_id"):
                value = getattr(attendee, field)
                if value and str(value) == own_id:
                    raise ValidationError({field: [f"Attendee {own_id} cannot reference itself"]})

    @invariant.post
    def partner_links_must_be_mutual(self):
        by_id = {str(a.id): a for a in self.attendees}
        for attendee in self.attendees:
            if attendee.partner_id:
                partner = by_id.get(str(attendee.partner_id))
                if partner is None or str(partner.is_partner_of or "") != str(attendee.id):
                    raise ValidationError({"partner_id": [f"Partner link of {attendee.id} is not mutual"]})
            if attendee.is_partner_of:
                owner = by_id.get(str(attendee.is_partner_of))
                if owner is None or str(owner.partner_id or "") != str(attendee.id):
                    raise ValidationError({"is_partner_of": [f"Partner link of {attendee.id} is not mutual"]})
                if attendee.partner_id:
                    raise ValidationError({"partner_id": ["A partner cannot have a partner of its own"]})

    @invariant.post
    def hosts_must_be_existing_members(self):
        members = {str(a.id) for a in self.attendees if a.role == AttendeeRole.MEMBER.value}
        for attendee in self.attendees:
            if attendee.host_id and attendee.role == AttendeeRole.MEMBER.value:
                raise ValidationError({"host_id": ["Only guests can be hosted by a member"]})
            if attendee.host_id and str(attendee.host_id) not in members:
                raise ValidationError({"host_id": [f"Host of {attendee.id} is not a member of this registration"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def start(cls, registration_type=None):
        now = datetime.now(UTC)
        draft = cls(
            draft_id=new_draft_id(),
            registration_type=registration_type,
            agree_to_terms=False,
            created_at=now,
            updated_at=now,
        )
        draft.raise_(
            RegistrationStarted(
                registration_id=str(draft.id),
                draft_id=draft.draft_id,
                registration_type=registration_type,
                started_at=now,
            )
        )
        return draft

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def find_attendee(self, attendee_id):
        return next((a for a in self.attendees if str(a.id) == str(attendee_id)), None)

    def list_attendees(self):
        return list(self.attendees)

    def find_attendees(self, predicate):
        return [a for a in self.attendees if predicate(a)]

    @property
    def primary(self):
        return next((a for a in self.attendees if a.is_primary), None)

    @property
    def is_confirmed(self):
        return bool(self.confirmation_number)

    def _get_attendee(self, attendee_id, field="attendee_id"):
        attendee = self.find_attendee(attendee_id)
        if attendee is None:
            raise ObjectNotFoundError({field: [f"Attendee {attendee_id} not found"]})
        return attendee

    def _require_primary(self):
        if self.primary is None:
            raise InvalidOperationError("Add the primary registrant before adding other attendees")

    # -------------------------------------------------------------------
    # Attendee creation
    # -------------------------------------------------------------------
    def choose_registration_type(self, registration_type):
        if self.attendees and registration_type != self.registration_type:
            raise InvalidOperationError("Registration type cannot change once attendees exist")
        self.registration_type = RegistrationType(registration_type).value
        self.updated_at = datetime.now(UTC)

    def add_primary(self, **details):
        """Create the primary member. Contact preference starts unset and is never defaulted."""
        if self.attendees:
            raise InvalidOperationError("A primary attendee can only be added to an empty registration")
        if not self.registration_type:
            raise InvalidOperationError("Choose a registration type before adding the primary attendee")

        attendee = self._new_attendee(AttendeeRole.MEMBER, is_primary=True, **details)
        self.add_attendees(attendee)
        self._attendee_added(attendee)
        return str(attendee.id)

    def add_member(self, **details):
        self._require_primary()
        attendee = self._new_attendee(AttendeeRole.MEMBER, **details)
        self.add_attendees(attendee)
        self._attendee_added(attendee)
        return str(attendee.id)

    def add_guest(self, host_id=None, **details):
        self._require_primary()
        if host_id is not None:
            host = self._get_attendee(host_id, field="host_id")
            if not host.is_member:
                raise ObjectNotFoundError({"host_id": [f"Member {host_id} not found"]})
            host_id = str(host.id)

        attendee = self._new_attendee(AttendeeRole.GUEST, host_id=host_id, **details)
        self.add_attendees(attendee)
        self._attendee_added(attendee)
        return str(attendee.id)

    def add_partner(self, owner_id, **details):
        """Create a guest-shaped partner for ``owner_id`` and link both ways.

        Raises ``PartnerConflictError`` (carrying the existing partner id) when
        the owner already has one.
        """
        owner = self._get_attendee(owner_id, field="owner_id")
        if owner.partner_id:
            raise PartnerConflictError(owner.id, owner.partner_id)
        if owner.is_partner:
            raise InvalidOperationError("A partner cannot have a partner of its own")

        details.setdefault("last_name", owner.last_name)
        partner = self._new_attendee(AttendeeRole.GUEST, is_partner_of=str(owner.id), **details)

        with atomic_change(self):
            self.add_attendees(partner)
            owner.partner_id = str(partner.id)
            owner.updated_at = partner.created_at

        self.raise_(
            PartnerAdded(
                registration_id=str(self.id),
                attendee_id=str(partner.id),
                owner_id=str(owner.id),
            )
        )
        return str(partner.id)

    def _new_attendee(self, role, is_primary=False, is_partner_of=None, host_id=None, **details):
        unknown = set(details) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError({field: ["Unknown attendee field"] for field in sorted(unknown)})

        now = datetime.now(UTC)
        values = {"contact_preference": None}
        values.update({field: value for field, value in details.items() if value != ""})
        return Attendee(
            role=role.value,
            is_primary=is_primary,
            is_partner_of=is_partner_of,
            host_id=host_id,
            selected_ticket_ids=json.dumps([]),
            created_at=now,
            updated_at=now,
            **values,
        )

    def _attendee_added(self, attendee):
        self.updated_at = attendee.created_at
        self.raise_(
            AttendeeAdded(
                registration_id=str(self.id),
                attendee_id=str(attendee.id),
                role=attendee.role,
                is_primary=attendee.is_primary,
                host_id=str(attendee.host_id) if attendee.host_id else None,
            )
        )

    # -------------------------------------------------------------------
    # Attendee updates
    # -------------------------------------------------------------------
    def update_attendee(self, attendee_id, **fields):
        """Merge ``fields`` into the attendee.

        A missing attendee is not an error: the edit came from a form that
        outlived its attendee, so it is logged and dropped.
        """
        attendee = self.find_attendee(attendee_id)
        if attendee is None:
            logger.warning("attendee_update_ignored", attendee_id=str(attendee_id), fields=sorted(fields))
            return None

        structural = sorted(set(fields) & STRUCTURAL_FIELDS)
        if structural:
            logger.warning("attendee_update_structural_fields_dropped", attendee_id=str(attendee_id), fields=structural)
        changes = {k: (None if v == "" else v) for k, v in fields.items() if k not in STRUCTURAL_FIELDS}

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError({field: ["Unknown attendee field"] for field in sorted(unknown)})

        if "host_id" in changes and changes["host_id"] is not None:
            changes["host_id"] = self._validated_host(attendee, changes["host_id"])

        now = datetime.now(UTC)
        with atomic_change(self):
            for field, value in changes.items():
                setattr(attendee, field, value)
            attendee.updated_at = now
        self.updated_at = now

        if changes:
            self.raise_(
                AttendeeUpdated(
                    registration_id=str(self.id),
                    attendee_id=str(attendee.id),
                    changed_fields=json.dumps(sorted(changes)),
                )
            )
        return attendee

    def _validated_host(self, attendee, host_id):
        if attendee.is_member:
            raise InvalidOperationError("Only guests can be hosted by a member")
        if str(host_id) == str(attendee.id):
            raise InvalidOperationError("An attendee cannot host itself")
        host = self._get_attendee(host_id, field="host_id")
        if not host.is_member:
            raise ObjectNotFoundError({"host_id": [f"Member {host_id} not found"]})
        return str(host.id)

    def choose_tickets(self, attendee_id, package_id=None, ticket_ids=None):
        """Record the attendee's ticket choice: one package, or a set of tickets."""
        attendee = self._get_attendee(attendee_id)
        with atomic_change(self):
            if package_id:
                attendee.selected_package_id = str(package_id)
                attendee.selected_ticket_ids = json.dumps([])
            else:
                attendee.selected_package_id = None
                attendee.selected_ticket_ids = json.dumps(list(dict.fromkeys(ticket_ids or [])))
            attendee.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Attendee removal
    # -------------------------------------------------------------------
    def remove_attendee(self, attendee_id):
        """Remove an attendee and everything that depends on it.

        Returns the ids actually removed: the attendee and, when it owns one,
        its partner. Guests hosted by a removed member stay and lose their
        ``host_id``. The primary cannot be removed; the call is logged and
        returns an empty list.
        """
        target = self._get_attendee(attendee_id)
        if target.is_primary:
            logger.warning("primary_attendee_removal_ignored", attendee_id=str(target.id))
            return []

        doomed = [target]
        if target.partner_id:
            partner = self.find_attendee(target.partner_id)
            if partner is not None:
                doomed.append(partner)
        doomed_ids = {str(a.id) for a in doomed}

        now = datetime.now(UTC)
        with atomic_change(self):
            for attendee in self.attendees:
                if str(attendee.id) in doomed_ids:
                    continue
                touched = False
                if attendee.partner_id and str(attendee.partner_id) in doomed_ids:
                    attendee.partner_id = None
                    touched = True
                if attendee.host_id and str(attendee.host_id) in doomed_ids:
                    attendee.host_id = None
                    touched = True
                if touched:
                    attendee.updated_at = now
            self.remove_attendees(doomed)
        self.updated_at = now

        for attendee in doomed:
            self.raise_(
                AttendeeRemoved(
                    registration_id=str(self.id),
                    attendee_id=str(attendee.id),
                    cascaded_from=None if attendee is target else str(target.id),
                )
            )
        return [str(a.id) for a in doomed]

    # -------------------------------------------------------------------
    # Billing, terms and confirmation
    # -------------------------------------------------------------------
    def update_billing_details(self, **fields):
        unknown = set(fields) - set(BILLING_FIELDS)
        if unknown:
            raise ValidationError({field: ["Unknown billing field"] for field in sorted(unknown)})

        current = self.billing_details
        merged = {field: getattr(current, field) if current else None for field in BILLING_FIELDS}
        merged.update({k: (None if v == "" else v) for k, v in fields.items()})
        self.billing_details = BillingDetails(**merged)
        self.updated_at = datetime.now(UTC)

    def set_agree_to_terms(self, agreed):
        self.agree_to_terms = bool(agreed)
        self.updated_at = datetime.now(UTC)

    def confirm(self, confirmation_number):
        if self.is_confirmed:
            raise InvalidOperationError(f"Registration already confirmed as {self.confirmation_number}")
        if not confirmation_number:
            raise ValidationError({"confirmation_number": ["Confirmation number is required"]})

        now = datetime.now(UTC)
        self.confirmation_number = confirmation_number
        self.confirmed_at = now
        self.updated_at = now
        self.raise_(
            RegistrationConfirmed(
                registration_id=str(self.id),
                draft_id=self.draft_id,
                confirmation_number=confirmation_number,
                confirmed_at=now,
            )
        )
