"""
Time tracking state machine tests.

Tests cover start and stop transitions, their conflicts, clock regression,
ownership checks and concurrent starts on one user-project pair.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from timetrack.errors import AlreadyTracking, Conflict, Forbidden, InternalError, NotFound, NotTracking
from timetrack.schemas import TimeEntryStatus

from .test_base import BaseServiceTest


class TestStartStop(BaseServiceTest):
    """Test cases for the start and stop transitions."""

    def test_start_opens_entry(self, time_tracking, alice, demo_project, clock):
        """Test that start records an open entry at the server time."""
        entry = time_tracking.start(alice, demo_project.id)
        self.assert_open(entry)
        assert entry.user_id == alice.id
        assert entry.project_id == demo_project.id
        assert entry.started_at == clock()

    def test_double_start_conflicts(self, time_tracking, alice, demo_project):
        """Test that a second start on a tracking pair is a conflict."""
        time_tracking.start(alice, demo_project.id)
        with pytest.raises(AlreadyTracking) as exc_info:
            time_tracking.start(alice, demo_project.id)
        assert isinstance(exc_info.value, Conflict)
        assert "demo" in exc_info.value.detail

    def test_stop_without_start_conflicts(self, time_tracking, alice, demo_project):
        """Test that stopping an idle pair is a conflict."""
        with pytest.raises(NotTracking):
            time_tracking.stop(alice, demo_project.id)

    def test_stop_records_duration(self, time_tracking, alice, demo_project, clock):
        """Test that stop closes the entry with the elapsed duration."""
        started = time_tracking.start(alice, demo_project.id)
        clock.advance(hours=1, minutes=15)

        stopped = time_tracking.stop(alice, demo_project.id)

        assert stopped.id == started.id
        self.assert_closed(stopped, timedelta(hours=1, minutes=15))
        assert stopped.state.stopped_at == clock()

    def test_double_stop_conflicts(self, time_tracking, alice, demo_project, clock):
        """Test that stopping twice is a conflict."""
        time_tracking.start(alice, demo_project.id)
        clock.advance(minutes=5)
        time_tracking.stop(alice, demo_project.id)
        with pytest.raises(NotTracking):
            time_tracking.stop(alice, demo_project.id)

    def test_pair_cycles(self, time_tracking, alice, demo_project, clock):
        """Test that a pair can be tracked again after stopping."""
        for _ in range(3):
            time_tracking.start(alice, demo_project.id)
            clock.advance(minutes=10)
            time_tracking.stop(alice, demo_project.id)
            clock.advance(minutes=1)
        entries = list(time_tracking.list_entries(alice, demo_project.id))
        assert len(entries) == 3
        assert all(entry.status is TimeEntryStatus.FINISHED for entry in entries)

    def test_clock_regression_is_internal_error(self, time_tracking, alice, demo_project, clock):
        """Test that a stop earlier than the start persists nothing."""
        started = time_tracking.start(alice, demo_project.id)

        with pytest.raises(InternalError):
            time_tracking.stop(alice, demo_project.id, now=clock() - timedelta(seconds=1))

        current = time_tracking.current(alice, demo_project.id)
        assert current.id == started.id
        self.assert_open(current)

    def test_unknown_project(self, time_tracking, alice):
        """Test starting on a project that does not exist."""
        with pytest.raises(NotFound):
            time_tracking.start(alice, "missing")

    def test_start_on_project_deleted_after_lookup(
        self, time_tracking, repository, alice, demo_project, monkeypatch
    ):
        """Test that a project deleted between lookup and insert is reported missing."""
        repository.delete_project(demo_project.id)
        monkeypatch.setattr(repository, "get_project", lambda project_id: demo_project)

        with pytest.raises(NotFound) as exc_info:
            time_tracking.start(alice, demo_project.id)
        assert not isinstance(exc_info.value, AlreadyTracking)

    def test_start_with_comment(self, time_tracking, alice, demo_project, clock):
        """Test that the comment is kept through stop."""
        time_tracking.start(alice, demo_project.id, comment="code review")
        clock.advance(minutes=3)
        assert time_tracking.stop(alice, demo_project.id).comment == "code review"

    def test_non_owner_forbidden(self, time_tracking, bob, demo_project):
        """Test that other users cannot track time on the project."""
        with pytest.raises(Forbidden):
            time_tracking.start(bob, demo_project.id)
        with pytest.raises(Forbidden):
            time_tracking.stop(bob, demo_project.id)
        with pytest.raises(Forbidden):
            time_tracking.list_entries(bob, demo_project.id)

    def test_admin_allowed(self, time_tracking, admin, alice, demo_project):
        """Test that admins track time on any project, in their own pair."""
        owner_entry = time_tracking.start(alice, demo_project.id)
        admin_entry = time_tracking.start(admin, demo_project.id)
        assert admin_entry.user_id == admin.id
        assert admin_entry.id != owner_entry.id


class TestCurrent(BaseServiceTest):
    """Test cases for the running timer view."""

    def test_current(self, time_tracking, alice, demo_project, clock):
        """Test that the running entry and its elapsed time are reported."""
        started = time_tracking.start(alice, demo_project.id)
        clock.advance(minutes=20)
        current = time_tracking.current(alice, demo_project.id)
        assert current.id == started.id
        assert current.elapsed(clock()) == timedelta(minutes=20)

    def test_current_when_idle(self, time_tracking, alice, demo_project):
        """Test that an idle pair has no running entry."""
        with pytest.raises(NotTracking):
            time_tracking.current(alice, demo_project.id)


class TestListEntries:
    """Test cases for listing entries of a project."""

    def test_owner_sees_all_entries(self, time_tracking, admin, alice, demo_project, clock):
        """Test that the owner lists every user's entries on the project."""
        time_tracking.start(alice, demo_project.id)
        clock.advance(minutes=1)
        time_tracking.start(admin, demo_project.id)

        assert len(list(time_tracking.list_entries(alice, demo_project.id))) == 2
        only_admin = list(time_tracking.list_entries(alice, demo_project.id, user_id=admin.id))
        assert [entry.user_id for entry in only_admin] == [admin.id]

    def test_status_filter(self, time_tracking, alice, demo_project, clock):
        """Test filtering by status."""
        time_tracking.start(alice, demo_project.id)
        clock.advance(minutes=1)
        time_tracking.stop(alice, demo_project.id)
        clock.advance(minutes=1)
        time_tracking.start(alice, demo_project.id)

        running = list(time_tracking.list_entries(alice, demo_project.id, status=TimeEntryStatus.IN_PROGRESS))
        finished = list(time_tracking.list_entries(alice, demo_project.id, status=TimeEntryStatus.FINISHED))
        assert len(running) == 1
        assert len(finished) == 1


class TestConcurrentStart:
    """Test cases for concurrent starts on one pair."""

    def test_exactly_one_start_wins(self, time_tracking, alice, demo_project):
        """Test that concurrent starts produce a single open entry."""
        attempts = 8

        def attempt(_):
            try:
                return time_tracking.start(alice, demo_project.id)
            except AlreadyTracking as exc:
                return exc

        with ThreadPoolExecutor(max_workers=attempts) as pool:
            results = list(pool.map(attempt, range(attempts)))

        started = [result for result in results if not isinstance(result, AlreadyTracking)]
        rejected = [result for result in results if isinstance(result, AlreadyTracking)]
        assert len(started) == 1
        assert len(rejected) == attempts - 1
        running = list(time_tracking.list_entries(alice, demo_project.id, status=TimeEntryStatus.IN_PROGRESS))
        assert [entry.id for entry in running] == [started[0].id]


class TestDemoScenario(BaseServiceTest):
    """End to end scenario on the "demo" project."""

    def test_demo(self, time_tracking, admin, alice, bob, demo_project, clock):
        """Test the full start, conflict, stop and access sequence."""
        entry = time_tracking.start(alice, demo_project.id)
        self.assert_open(entry)

        with pytest.raises(Conflict):
            time_tracking.start(alice, demo_project.id)

        clock.advance(minutes=42)
        closed = time_tracking.stop(alice, demo_project.id)
        assert closed.id == entry.id
        self.assert_closed(closed, timedelta(minutes=42))

        with pytest.raises(Forbidden):
            time_tracking.start(bob, demo_project.id)

        admin_entry = time_tracking.start(admin, demo_project.id)
        self.assert_open(admin_entry)


class TestDeleteEntry(BaseServiceTest):
    """Test cases for deleting single entries."""

    def test_delete_finished_entry(self, time_tracking, alice, demo_project, clock):
        """Test that the owner deletes their finished entry."""
        time_tracking.start(alice, demo_project.id)
        clock.advance(minutes=5)
        closed = time_tracking.stop(alice, demo_project.id)

        deleted = time_tracking.delete_entry(alice, demo_project.id, closed.id)

        self.assert_closed(deleted, timedelta(minutes=5))
        assert list(time_tracking.list_entries(alice, demo_project.id)) == []

    def test_delete_open_entry_frees_pair(self, time_tracking, alice, demo_project):
        """Test that deleting the running entry allows a new start."""
        entry = time_tracking.start(alice, demo_project.id)
        time_tracking.delete_entry(alice, demo_project.id, entry.id)
        with pytest.raises(NotTracking):
            time_tracking.current(alice, demo_project.id)
        self.assert_open(time_tracking.start(alice, demo_project.id))

    def test_admin_deletes_any_entry(self, time_tracking, admin, alice, demo_project):
        """Test that admins delete entries they did not record."""
        entry = time_tracking.start(alice, demo_project.id)
        assert time_tracking.delete_entry(admin, demo_project.id, entry.id).id == entry.id

    def test_other_user_forbidden(self, time_tracking, alice, bob, demo_project):
        """Test that other users cannot delete the entry."""
        entry = time_tracking.start(alice, demo_project.id)
        with pytest.raises(Forbidden):
            time_tracking.delete_entry(bob, demo_project.id, entry.id)

    def test_owner_cannot_delete_admin_entry(self, time_tracking, admin, alice, demo_project):
        """Test that only the recording user or an admin deletes an entry."""
        entry = time_tracking.start(admin, demo_project.id)
        with pytest.raises(Forbidden):
            time_tracking.delete_entry(alice, demo_project.id, entry.id)

    def test_entry_of_other_project(self, time_tracking, projects, alice, demo_project):
        """Test that an entry is only addressed through its own project."""
        other = projects.create(alice, "other")
        entry = time_tracking.start(alice, other.id)
        with pytest.raises(NotFound):
            time_tracking.delete_entry(alice, demo_project.id, entry.id)

    def test_missing_entry(self, time_tracking, alice, demo_project):
        """Test deleting an unknown entry."""
        with pytest.raises(NotFound):
            time_tracking.delete_entry(alice, demo_project.id, "missing")
