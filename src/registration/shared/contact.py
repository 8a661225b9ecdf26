"""Format checks for email addresses and phone numbers.

Attendee contact fields hold whatever the form last wrote (half-typed values
included), so the checks run at step validation rather than on assignment.
"""

import re

_FORBIDDEN_EMAIL_CHARACTERS = (";", ",", "(", ")", '"', ":", "<", ">", "[", "]", "\\")


def is_valid_email(email):
    """Basic structural check: one @, non-empty dotted domain, no forbidden characters."""
    if not email or any(ch in email for ch in " \t\n"):
        return False
    if email.count("@") != 1:
        return False

    local_part, domain_part = email.split("@", 1)
    if not local_part or local_part.startswith(".") or local_part.endswith("."):
        return False
    if not domain_part or domain_part.startswith(".") or domain_part.endswith("."):
        return False
    if "." not in domain_part or ".." in local_part or ".." in domain_part:
        return False
    if any(label.startswith("-") or label.endswith("-") for label in domain_part.split(".")):
        return False
    return not any(ch in email for ch in _FORBIDDEN_EMAIL_CHARACTERS)


def is_valid_phone(number):
    """Digits, spaces, hyphens and parentheses, with an optional leading +."""
    if not number or not re.search(r"\d", number):
        return False
    return re.match(r"^\+?[\d\s\-()]+$", number) is not None
