"""Draft persistence port (abstract interface).

Stores the flat snapshot produced by ``RegistrationContext.to_snapshot`` so a
registration can be resumed later. Snapshots are plain JSON-compatible dicts.
"""

from abc import ABC, abstractmethod


class DraftStore(ABC):
    """Abstract draft snapshot store."""

    @abstractmethod
    def save(self, draft_id: str, snapshot: dict) -> None:
        """Store ``snapshot`` under ``draft_id``, replacing any earlier one."""
        ...

    @abstractmethod
    def load(self, draft_id: str) -> dict | None:
        """Return the stored snapshot, or ``None`` when there is none."""
        ...

    @abstractmethod
    def delete(self, draft_id: str) -> None:
        """Forget the snapshot stored under ``draft_id``. Missing drafts are ignored."""
        ...
