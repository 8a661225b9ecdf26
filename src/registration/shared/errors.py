"""Registration-specific exceptions.

NotFound, InvalidState and ValidationFailed map onto Protean's own
``ObjectNotFoundError``, ``InvalidOperationError`` and ``ValidationError``.
Only the partner conflict needs extra payload.
"""

from protean.exceptions import InvalidStateError


class PartnerConflictError(InvalidStateError):
    """The attendee already has a partner; carries the existing partner's id."""

    def __init__(self, owner_id, existing_partner_id):
        self.owner_id = str(owner_id)
        self.existing_partner_id = str(existing_partner_id)
        super().__init__(f"Attendee {self.owner_id} already has partner {self.existing_partner_id}")
