"""Display ordering and labels for attendee lists.

Presentation only: nothing here changes the registration's insertion order.
"""

from registration.attendee.attendee import AttendeeRole


def display_order(attendees):
    """Primary first, then members, then guests, each followed by its partner."""
    attendees = list(attendees)
    by_id = {str(a.id): a for a in attendees}
    ordered = []

    def _with_partner(attendee):
        ordered.append(attendee)
        partner = by_id.get(str(attendee.partner_id)) if attendee.partner_id else None
        if partner is not None:
            ordered.append(partner)

    owners = [a for a in attendees if not a.is_partner_of]
    for attendee in sorted(owners, key=lambda a: (not a.is_primary, a.role != AttendeeRole.MEMBER.value)):
        _with_partner(attendee)

    # Partners whose owner is missing from the input still get listed
    seen = {id(a) for a in ordered}
    ordered.extend(a for a in attendees if id(a) not in seen)
    return ordered


def attendee_labels(attendees):
    """Map attendee id to a human label: "Primary Mason", "Additional Mason 1", "Guest 2", "Partner of ..."."""
    attendees = list(attendees)
    by_id = {str(a.id): a for a in attendees}
    labels = {}
    member_count = 0
    guest_count = 0

    for attendee in attendees:
        if attendee.is_primary:
            labels[str(attendee.id)] = "Primary Mason"
        elif attendee.is_partner_of:
            continue
        elif attendee.role == AttendeeRole.MEMBER.value:
            member_count += 1
            labels[str(attendee.id)] = f"Additional Mason {member_count}"
        else:
            guest_count += 1
            labels[str(attendee.id)] = f"Guest {guest_count}"

    for attendee in attendees:
        if attendee.is_partner_of:
            owner = by_id.get(str(attendee.is_partner_of))
            owner_label = labels.get(str(attendee.is_partner_of), "unknown attendee")
            name = owner.display_name if owner is not None and owner.display_name else owner_label
            labels[str(attendee.id)] = f"Partner of {name}"
    return labels
