"""Tests for the coalescing edit buffer."""

from datetime import UTC, datetime, timedelta

import pytest
from registration.attendee.edits import PendingEditBuffer

T0 = datetime(2026, 5, 1, 9, 0, 0, tzinfo=UTC)


def ms(n):
    return timedelta(milliseconds=n)


@pytest.fixture()
def commits():
    return []


@pytest.fixture()
def buffer(commits):
    def commit(attendee_id, **fields):
        commits.append((attendee_id, fields))

    return PendingEditBuffer(commit=commit, quiet_period=ms(300))


class TestStaging:
    def test_latest_value_wins(self, buffer):
        buffer.stage("a1", "first_name", "J", T0)
        buffer.stage("a1", "first_name", "Jo", T0 + ms(50))
        buffer.stage("a1", "first_name", "John", T0 + ms(100))
        assert buffer.pending_for("a1") == {"first_name": "John"}

    def test_older_edit_does_not_overwrite_newer(self, buffer):
        buffer.stage("a1", "first_name", "John", T0 + ms(100))
        buffer.stage("a1", "first_name", "Jo", T0 + ms(50))
        assert buffer.pending_for("a1") == {"first_name": "John"}

    def test_fields_are_kept_apart(self, buffer):
        buffer.stage("a1", "first_name", "John", T0)
        buffer.stage("a1", "last_name", "Smith", T0)
        buffer.stage("a2", "first_name", "Mary", T0)
        assert buffer.pending_for("a1") == {"first_name": "John", "last_name": "Smith"}
        assert buffer.pending_for("a2") == {"first_name": "Mary"}


class TestFlush:
    def test_nothing_committed_inside_quiet_period(self, buffer, commits):
        buffer.stage("a1", "first_name", "John", T0)
        assert buffer.flush(T0 + ms(299)) == []
        assert commits == []
        assert buffer.has_pending() is True

    def test_burst_commits_once(self, buffer, commits):
        for i, value in enumerate(["J", "Jo", "Joh", "John"]):
            buffer.stage("a1", "first_name", value, T0 + ms(i * 40))
        buffer.stage("a1", "last_name", "Smith", T0 + ms(200))

        committed = buffer.flush(T0 + ms(500))

        assert committed == ["a1"]
        assert commits == [("a1", {"first_name": "John", "last_name": "Smith"})]
        assert buffer.has_pending() is False

    def test_quiet_period_counts_from_latest_edit(self, buffer, commits):
        buffer.stage("a1", "first_name", "John", T0)
        buffer.stage("a1", "last_name", "Smith", T0 + ms(250))
        assert buffer.flush(T0 + ms(400)) == []
        assert buffer.flush(T0 + ms(550)) == ["a1"]
        assert len(commits) == 1

    def test_only_quiet_attendees_flush(self, buffer, commits):
        buffer.stage("a1", "first_name", "John", T0)
        buffer.stage("a2", "first_name", "Mary", T0 + ms(200))
        assert buffer.flush(T0 + ms(350)) == ["a1"]
        assert buffer.pending_for("a2") == {"first_name": "Mary"}

    def test_flush_all_ignores_quiet_period(self, buffer, commits):
        buffer.stage("a1", "first_name", "John", T0)
        buffer.stage("a2", "first_name", "Mary", T0)
        assert buffer.flush_all() == ["a1", "a2"]
        assert len(commits) == 2


class TestDiscard:
    def test_discard_one_attendee(self, buffer, commits):
        buffer.stage("a1", "first_name", "John", T0)
        buffer.stage("a2", "first_name", "Mary", T0)
        buffer.discard("a1")
        buffer.flush_all()
        assert commits == [("a2", {"first_name": "Mary"})]

    def test_discard_everything(self, buffer, commits):
        buffer.stage("a1", "first_name", "John", T0)
        buffer.discard()
        assert buffer.flush_all() == []
        assert commits == []


class TestRejectedCommit:
    def test_edits_stay_staged_when_commit_fails(self):
        def commit(attendee_id, **fields):
            raise ValueError("rejected")

        buffer = PendingEditBuffer(commit=commit, quiet_period=ms(300))
        buffer.stage("a1", "first_name", "Robert", T0)
        buffer.stage("a1", "last_name", "Brown", T0)

        with pytest.raises(ValueError):
            buffer.flush_all()

        assert buffer.pending_for("a1") == {"first_name": "Robert", "last_name": "Brown"}
