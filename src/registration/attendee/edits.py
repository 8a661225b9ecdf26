"""Coalescing buffer for rapid free-text edits.

Keystroke-level edits are staged per ``(attendee_id, field)`` and committed as
one ``update_attendee`` call per attendee once the attendee has been quiet for
the configured period. Edits are ordered by their own timestamps, so a late
arriving older edit never overwrites a newer one.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from registration.domain import logger


@dataclass
class _PendingEdit:
    value: object
    at: datetime


@dataclass
class PendingEditBuffer:
    """Holds uncommitted edits until ``flush`` hands them to ``commit``.

    ``commit`` is called as ``commit(attendee_id, **fields)``; in practice it
    is ``RegistrationContext.update_attendee``.
    """

    commit: Callable[..., object]
    quiet_period: timedelta = timedelta(milliseconds=300)
    _pending: dict = field(default_factory=dict)

    def stage(self, attendee_id, field_name, value, at):
        key = (str(attendee_id), field_name)
        current = self._pending.get(key)
        # Last write wins by edit time, not arrival order
        if current is not None and current.at > at:
            logger.debug("stale_edit_discarded", attendee_id=str(attendee_id), field=field_name)
            return
        self._pending[key] = _PendingEdit(value=value, at=at)

    def pending_for(self, attendee_id):
        return {f: edit.value for (a, f), edit in self._pending.items() if a == str(attendee_id)}

    def has_pending(self):
        return bool(self._pending)

    def flush(self, now):
        """Commit every attendee whose newest staged edit is older than the quiet period.

        Returns the ids of the attendees that were committed.
        """
        latest = {}
        for (attendee_id, _), edit in self._pending.items():
            latest[attendee_id] = max(latest.get(attendee_id, edit.at), edit.at)

        ready = [attendee_id for attendee_id, at in latest.items() if now - at >= self.quiet_period]
        for attendee_id in ready:
            self._commit(attendee_id)
        return ready

    def flush_all(self):
        attendee_ids = list(dict.fromkeys(a for a, _ in self._pending))
        for attendee_id in attendee_ids:
            self._commit(attendee_id)
        return attendee_ids

    def discard(self, attendee_id=None):
        if attendee_id is None:
            self._pending.clear()
            return
        for key in [k for k in self._pending if k[0] == str(attendee_id)]:
            del self._pending[key]

    def _commit(self, attendee_id):
        keys = sorted(
            (k for k in self._pending if k[0] == attendee_id),
            key=lambda k: self._pending[k].at,
        )
        if not keys:
            return
        staged = {k: self._pending[k] for k in keys}
        # A rejected commit leaves the edits staged
        self.commit(attendee_id, **{k[1]: edit.value for k, edit in staged.items()})
        for key, edit in staged.items():
            if self._pending.get(key) is edit:
                del self._pending[key]
