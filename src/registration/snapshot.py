"""Flat, JSON-compatible snapshots of a registration and their tolerant restore.

Dumping writes an explicit field list per record. Loading reads only the
fields it knows, fills defaults for missing ones, and repairs what older
drafts may contain: partner and host links pointing at attendees that are no
longer there, a missing or duplicated primary, and contact preferences that
are no longer offered.
"""

from dataclasses import fields as dataclass_fields
from datetime import datetime

from registration.attendee.attendee import (
    BILLING_FIELDS,
    LEGACY_CONTACT_PREFERENCES,
    Attendee,
    AttendeeRole,
    BillingDetails,
    GrandOfficerStatus,
    Registration,
    RegistrationType,
)
from registration.catalog.metadata import AvailabilityStatus, FunctionMetadata, PackageMetadata, TicketMetadata
from registration.domain import logger
from registration.ledger.selections import AttendeeSelections, PackageRecord, TicketRecord
from registration.shared.identifiers import new_draft_id

SNAPSHOT_VERSION = 1

ATTENDEE_FIELDS = (
    "role",
    "is_primary",
    "is_partner_of",
    "partner_id",
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
    "selected_package_id",
    "selected_ticket_ids",
    "created_at",
    "updated_at",
)

TICKET_RECORD_FIELDS = (
    "ticket_id",
    "name",
    "event_id",
    "event_title",
    "unit_price",
    "currency",
    "quantity",
    "subtotal",
    "from_package_id",
    "package_record_id",
    "selected_at",
)

PACKAGE_RECORD_FIELDS = (
    "package_id",
    "name",
    "unit_price",
    "currency",
    "quantity",
    "subtotal",
    "included_tickets",
    "original_price",
    "discount",
    "selected_at",
)

_DATETIME_FIELDS = {"created_at", "updated_at", "selected_at", "captured_at", "confirmed_at"}


def _dump_value(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _load_value(name, value):
    if name in _DATETIME_FIELDS and isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return value


def _pick(data, names):
    return {name: _load_value(name, data[name]) for name in names if data.get(name) is not None}


def _enum_value(enum_cls, value):
    return value if value in {member.value for member in enum_cls} else None


# ---------------------------------------------------------------------------
# Attendees and registration
# ---------------------------------------------------------------------------
def dump_attendee(attendee):
    data = {"id": str(attendee.id)}
    data.update({name: _dump_value(getattr(attendee, name)) for name in ATTENDEE_FIELDS})
    for name in ("is_partner_of", "partner_id", "host_id"):
        if data[name] is not None:
            data[name] = str(data[name])
    return data


def dump_registration(registration):
    billing = registration.billing_details
    return {
        "registration_id": str(registration.id),
        "draft_id": registration.draft_id,
        "registration_type": registration.registration_type,
        "attendees": [dump_attendee(a) for a in registration.attendees],
        "billing_details": {name: getattr(billing, name) for name in BILLING_FIELDS} if billing else {},
        "agree_to_terms": bool(registration.agree_to_terms),
        "confirmation_number": registration.confirmation_number,
        "confirmed_at": _dump_value(registration.confirmed_at),
        "created_at": _dump_value(registration.created_at),
        "updated_at": _dump_value(registration.updated_at),
    }


def repair_attendee_links(rows):
    """Fix references in raw attendee dicts so the restored aggregate is consistent.

    Works on copies and returns them. Rows without an id are dropped.
    """
    rows = [dict(row) for row in rows if row.get("id")]
    by_id = {str(row["id"]): row for row in rows}

    roles = {r.value for r in AttendeeRole}
    for row in rows:
        own_id = str(row["id"])
        for name in ("partner_id", "is_partner_of", "host_id"):
            if row.get(name) is not None and str(row[name]) == own_id:
                row[name] = None
        # Partners are guests and never own a partner themselves
        if row.get("is_partner_of"):
            row["role"] = AttendeeRole.GUEST.value
            row["partner_id"] = None
        elif row.get("role") not in roles:
            row["role"] = AttendeeRole.MEMBER.value

    for row in rows:
        own_id = str(row["id"])
        partner = by_id.get(str(row.get("partner_id"))) if row.get("partner_id") else None
        if row.get("partner_id") and (partner is None or str(partner.get("is_partner_of")) != own_id):
            logger.warning("snapshot_partner_link_dropped", attendee_id=own_id, partner_id=str(row["partner_id"]))
            row["partner_id"] = None

    for row in rows:
        own_id = str(row["id"])
        owner = by_id.get(str(row.get("is_partner_of"))) if row.get("is_partner_of") else None
        if row.get("is_partner_of") and (owner is None or str(owner.get("partner_id")) != own_id):
            if owner is not None and not owner.get("partner_id") and not owner.get("is_partner_of"):
                owner["partner_id"] = own_id
            else:
                logger.warning("snapshot_partner_link_dropped", attendee_id=own_id, owner_id=str(row["is_partner_of"]))
                row["is_partner_of"] = None

    members = {str(row["id"]) for row in rows if row["role"] == AttendeeRole.MEMBER.value}
    for row in rows:
        if row.get("host_id") and (row["role"] == AttendeeRole.MEMBER.value or str(row["host_id"]) not in members):
            row["host_id"] = None

    primaries = [row for row in rows if row.get("is_primary")]
    for extra in primaries[1:]:
        extra["is_primary"] = False
    if primaries and primaries[0]["role"] != AttendeeRole.MEMBER.value:
        primaries[0]["is_primary"] = False
        primaries = []
    if rows and not primaries:
        first_member = next((row for row in rows if row["role"] == AttendeeRole.MEMBER.value), None)
        if first_member is None:
            # Without a member there is nobody to own the registration
            logger.warning("snapshot_attendees_dropped", reason="no_member", attendee_ids=sorted(by_id))
            return []
        first_member["is_primary"] = True
    return rows


def load_attendee(row):
    values = _pick(row, ATTENDEE_FIELDS)
    if values.get("contact_preference") in LEGACY_CONTACT_PREFERENCES:
        values.pop("contact_preference")
    if "grand_officer_status" in values:
        values["grand_officer_status"] = _enum_value(GrandOfficerStatus, values["grand_officer_status"])
    return Attendee(id=str(row["id"]), **values)


def load_registration(data):
    attendee_rows = repair_attendee_links(data.get("attendees") or [])
    billing = {k: v for k, v in (data.get("billing_details") or {}).items() if k in BILLING_FIELDS}

    values = {
        "draft_id": data.get("draft_id"),
        "registration_type": _enum_value(RegistrationType, data.get("registration_type")),
        "attendees": [load_attendee(row) for row in attendee_rows],
        "billing_details": BillingDetails(**billing) if any(billing.values()) else None,
        "agree_to_terms": bool(data.get("agree_to_terms")),
        "confirmation_number": data.get("confirmation_number"),
    }
    values.update(_pick(data, ("confirmed_at", "created_at", "updated_at")))
    if data.get("registration_id"):
        values["id"] = str(data["registration_id"])
    if not values["draft_id"]:
        values["draft_id"] = new_draft_id()
        logger.warning("snapshot_draft_id_missing", draft_id=values["draft_id"])
    return Registration(**values)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------
def _dump_record(record, names):
    data = {"id": str(record.id)}
    data.update({name: _dump_value(getattr(record, name)) for name in names})
    if data.get("package_record_id") is not None:
        data["package_record_id"] = str(data["package_record_id"])
    return data


def dump_selections(page):
    return {
        "attendee_id": str(page.attendee_id),
        "subtotal": page.subtotal,
        "packages": [
            dict(
                _dump_record(package, PACKAGE_RECORD_FIELDS),
                generated_tickets=[
                    _dump_record(t, TICKET_RECORD_FIELDS) for t in page.generated_ticket_records(package.id)
                ],
            )
            for package in page.packages
        ],
        "tickets": [_dump_record(t, TICKET_RECORD_FIELDS) for t in page.individual_tickets()],
    }


def load_selections(data, known_attendee_ids):
    """Rebuild one AttendeeSelections page, or ``None`` for an orphaned or empty page."""
    attendee_id = str(data.get("attendee_id") or "")
    if attendee_id not in known_attendee_ids:
        logger.warning("snapshot_orphan_selections_dropped", attendee_id=attendee_id)
        return None

    packages = []
    tickets = []
    for row in data.get("packages") or []:
        if not row.get("id") or not row.get("package_id"):
            continue
        packages.append(PackageRecord(id=str(row["id"]), **_pick(row, PACKAGE_RECORD_FIELDS)))
        for generated in row.get("generated_tickets") or []:
            if generated.get("id") and generated.get("ticket_id"):
                values = _pick(generated, TICKET_RECORD_FIELDS)
                values["package_record_id"] = str(row["id"])
                values.setdefault("from_package_id", row["package_id"])
                tickets.append(TicketRecord(id=str(generated["id"]), attendee_id=attendee_id, **values))
    for row in data.get("tickets") or []:
        if row.get("id") and row.get("ticket_id"):
            values = _pick(row, TICKET_RECORD_FIELDS)
            values.pop("package_record_id", None)
            values.pop("from_package_id", None)
            tickets.append(TicketRecord(id=str(row["id"]), attendee_id=attendee_id, **values))

    if not packages and not tickets:
        return None
    subtotal = round(sum(p.subtotal for p in packages) + sum(t.subtotal for t in tickets), 2)
    return AttendeeSelections(attendee_id=attendee_id, subtotal=subtotal, packages=packages, tickets=tickets)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
def dump_ticket_metadata(ticket):
    data = {f.name: _dump_value(getattr(ticket, f.name)) for f in dataclass_fields(ticket)}
    data["status"] = ticket.status.value
    return data


def dump_package_metadata(package):
    data = {f.name: _dump_value(getattr(package, f.name)) for f in dataclass_fields(package)}
    data["included_tickets"] = [dump_ticket_metadata(t) for t in package.included_tickets]
    return data


def _known(cls, data):
    names = {f.name for f in dataclass_fields(cls)}
    return {k: _load_value(k, v) for k, v in data.items() if k in names}


def load_ticket_metadata(data):
    values = _known(TicketMetadata, data)
    status = _enum_value(AvailabilityStatus, values.get("status"))
    values["status"] = AvailabilityStatus(status) if status else AvailabilityStatus.AVAILABLE
    return TicketMetadata(**values)


def load_package_metadata(data):
    values = _known(PackageMetadata, data)
    values["included_tickets"] = tuple(load_ticket_metadata(t) for t in data.get("included_tickets") or [])
    return PackageMetadata(**values)


def dump_function(function):
    return {f.name: getattr(function, f.name) for f in dataclass_fields(function)} if function else None


def load_function(data):
    return FunctionMetadata(**_known(FunctionMetadata, data)) if data else None
