"""Step validators for the registration wizard.

Each validator is a pure function of the Registration aggregate that returns
a ``{key: [messages]}`` dict; an empty dict lets the wizard advance. Every
problem is collected, across every attendee, before anything is reported.
Attendee messages are keyed by attendee id and prefixed with the attendee's
display label.
"""

from collections import defaultdict

from registration.attendee.attendee import (
    BILLING_FIELDS,
    GRAND_LODGE_RANK,
    OTHER_GRAND_OFFICE,
    ContactPreference,
    GrandOfficerStatus,
)
from registration.attendee.presentation import attendee_labels
from registration.shared.contact import is_valid_email, is_valid_phone

_CONTACT_PREFERENCES = {p.value for p in ContactPreference}

_REQUIRED_BILLING = {
    "first_name": "First name",
    "last_name": "Last name",
    "email": "Email",
    "phone": "Phone",
    "address_line": "Address",
    "city": "City",
    "postcode": "Postcode",
    "country": "Country",
}


def validate_registration_type(registration):
    if not registration.registration_type:
        return {"registration_type": ["Choose how you are registering"]}
    return {}


def attendee_errors(attendee):
    """Field-level problems with one attendee, without labels."""
    errors = []

    if not attendee.title:
        errors.append("Title is required")
    if not attendee.first_name:
        errors.append("First name is required")
    if not attendee.last_name:
        errors.append("Last name is required")

    if attendee.is_member:
        if not attendee.rank:
            errors.append("Rank is required")
        if attendee.is_primary:
            if not attendee.grand_lodge_id:
                errors.append("Grand Lodge is required")
            if not attendee.lodge_id and not attendee.lodge_name_number:
                errors.append("Lodge is required")
            if attendee.rank == GRAND_LODGE_RANK:
                errors.extend(_grand_officer_errors(attendee))

    if attendee.is_partner and not attendee.relationship:
        errors.append("Relationship is required")

    if not attendee.is_primary:
        if not attendee.contact_preference:
            errors.append("Contact preference is required")
        elif attendee.contact_preference not in _CONTACT_PREFERENCES:
            errors.append(f"Contact preference '{attendee.contact_preference}' is no longer offered")

    needs_contact = attendee.is_primary or attendee.contact_preference == ContactPreference.DIRECTLY.value
    if needs_contact:
        if not attendee.email:
            errors.append("Email is required")
        if not attendee.phone:
            errors.append("Phone is required")
    if attendee.email and not is_valid_email(attendee.email):
        errors.append("Email address is invalid")
    if attendee.phone and not is_valid_phone(attendee.phone):
        errors.append("Phone number is invalid")

    return errors


def _grand_officer_errors(attendee):
    errors = []
    if not attendee.grand_rank:
        errors.append("Grand rank is required")
    if not attendee.grand_officer_status:
        errors.append("Grand officer status is required")
    elif attendee.grand_officer_status == GrandOfficerStatus.PRESENT.value:
        if not attendee.grand_office:
            errors.append("Grand office is required")
        elif attendee.grand_office == OTHER_GRAND_OFFICE and not attendee.grand_office_other:
            errors.append("Please describe the grand office")
    return errors


def validate_attendee_details(registration):
    attendees = list(registration.attendees)
    if not attendees:
        return {"attendees": ["Add the primary registrant"]}

    labels = attendee_labels(attendees)
    errors = defaultdict(list)
    for attendee in attendees:
        label = labels.get(str(attendee.id), "Attendee")
        for message in attendee_errors(attendee):
            errors[str(attendee.id)].append(f"{label}: {message}")
    return dict(errors)


def validate_ticket_selection(registration):
    attendees = list(registration.attendees)
    if not attendees:
        return {"attendees": ["Add the primary registrant"]}

    labels = attendee_labels(attendees)
    errors = {}
    for attendee in attendees:
        if not attendee.selected_package_id and not attendee.ticket_ids():
            label = labels.get(str(attendee.id), "Attendee")
            errors[str(attendee.id)] = [f"{label}: Select a package or at least one ticket"]
    return errors


def validate_order_review(registration):
    if not registration.agree_to_terms:
        return {"agree_to_terms": ["You must agree to the terms and conditions"]}
    return {}


def validate_billing_details(registration):
    billing = registration.billing_details
    errors = defaultdict(list)
    for field in BILLING_FIELDS:
        value = getattr(billing, field) if billing is not None else None
        if not value:
            errors[f"billing_{field}"].append(f"{_REQUIRED_BILLING[field]} is required")
    if billing is not None and billing.email and not is_valid_email(billing.email):
        errors["billing_email"].append("Email address is invalid")
    return dict(errors)


def validate_payment(registration):
    errors = validate_billing_details(registration)
    if not registration.confirmation_number:
        errors["confirmation_number"] = ["Payment has not been confirmed"]
    return errors
