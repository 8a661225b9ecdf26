"""In-memory draft store for development and testing.

Snapshots go through a JSON round trip on save, so anything that would not
survive real storage fails here too.
"""

import json

from registration.drafts.port import DraftStore


class InMemoryDraftStore(DraftStore):
    def __init__(self) -> None:
        self._drafts: dict[str, str] = {}
        self.calls: list[dict] = []

    def save(self, draft_id: str, snapshot: dict) -> None:
        self.calls.append({"method": "save", "draft_id": draft_id})
        self._drafts[draft_id] = json.dumps(snapshot)

    def load(self, draft_id: str) -> dict | None:
        self.calls.append({"method": "load", "draft_id": draft_id})
        raw = self._drafts.get(draft_id)
        return json.loads(raw) if raw is not None else None

    def delete(self, draft_id: str) -> None:
        self.calls.append({"method": "delete", "draft_id": draft_id})
        self._drafts.pop(draft_id, None)
