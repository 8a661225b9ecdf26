"""Globally unique, time-ordered identifiers."""

import secrets
import time

from uuid6 import uuid7


def new_identifier() -> str:
    """Return a UUIDv7 string. Later calls sort after earlier ones."""
    return str(uuid7())


def new_draft_id() -> str:
    """Return a draft registration id such as ``draft_1718000000000_a1b2c3d``."""
    return f"draft_{time.time_ns() // 1_000_000}_{secrets.token_hex(4)[:7]}"
