"""Draft store factory, selected by the DRAFT_STORE_ADAPTER environment variable."""

import os

from registration.drafts.port import DraftStore

_current_store: DraftStore | None = None


def get_draft_store() -> DraftStore:
    """Return the configured draft store (singleton). Uses InMemoryDraftStore by default."""
    global _current_store
    if _current_store is None:
        adapter = os.environ.get("DRAFT_STORE_ADAPTER", "fake")
        if adapter == "fake":
            from registration.drafts.fake_adapter import InMemoryDraftStore

            _current_store = InMemoryDraftStore()
        else:
            raise ValueError(f"Unknown draft store adapter: {adapter}")
    return _current_store


def set_draft_store(store: DraftStore) -> None:
    global _current_store
    _current_store = store


def reset_draft_store() -> None:
    global _current_store
    _current_store = None
