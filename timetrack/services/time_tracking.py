"""
Time tracking state machine.

Each user-project pair is either Idle (no open entry) or Tracking (exactly one
open entry). ``start`` moves Idle to Tracking and ``stop`` moves Tracking back
to Idle; the pair cycles indefinitely. Both transitions are conditional writes
judged by the store, so concurrent handlers in separate processes cannot both
win. Neither transition is idempotent: repeating one yields a Conflict.
"""
import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from ..auth.authorization import Action, Authorizer
from ..database.repository import TimeTrackerRepository
from ..errors import AlreadyTracking, Conflict, InternalError, NotFound, NotTracking
from ..schemas import Project, TimeEntry, TimeEntryFilter, TimeEntryStatus, User, build, open_entry, utc_now
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class TimeTrackingService:
    """Start and stop timers per user-project pair."""

    def __init__(
        self,
        repository: TimeTrackerRepository,
        retry: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._repository = repository
        self._retry = retry or RetryPolicy()
        self._clock = clock

    def _authorized_project(
        self, caller: User, project_id: str, action: Action, deadline: Optional[float]
    ) -> Project:
        project = self._retry.call("get_project", lambda: self._repository.get_project(project_id), deadline)
        Authorizer.require(caller, action, project)
        return project

    # PUBLIC_INTERFACE
    def start(
        self,
        caller: User,
        project_id: str,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
        deadline: Optional[float] = None,
    ) -> TimeEntry:
        """
        Start tracking time for the caller on a project.

        Args:
            caller: Authenticated user
            project_id: Project to track
            comment: Optional note stored with the entry
            now: Server timestamp for the start; read from the trusted clock when omitted
            deadline: Monotonic time after which transient failures are no longer retried

        Returns:
            TimeEntry: The new open entry

        Raises:
            NotFound: If the project does not exist, also when it is deleted while starting
            Forbidden: If the caller is neither the project owner nor an admin
            AlreadyTracking: If an open entry already exists for the pair
        """
        project = self._authorized_project(caller, project_id, Action.TIME_ENTRY_START, deadline)
        entry = open_entry(caller.id, project.id, now or self._clock(), comment)

        try:
            self._retry.call(
                "create_open_time_entry", lambda: self._repository.create_open_time_entry(entry), deadline
            )
        except Conflict:
            # A retried insert may have committed on an earlier attempt
            if self._current_entry_id(caller.id, project.id, deadline) == entry.id:
                return entry
            raise AlreadyTracking(project.name) from None

        logger.info(f"User {caller.id} started tracking project {project.id} (entry {entry.id})")
        return entry

    # PUBLIC_INTERFACE
    def stop(
        self,
        caller: User,
        project_id: str,
        now: Optional[datetime] = None,
        deadline: Optional[float] = None,
    ) -> TimeEntry:
        """
        Stop tracking time for the caller on a project.

        Returns:
            TimeEntry: The closed entry, with duration = stopped_at - started_at

        Raises:
            NotFound: If the project does not exist
            Forbidden: If the caller is neither the project owner nor an admin
            NotTracking: If no open entry exists, or it was closed concurrently
            InternalError: If the clock reads earlier than the entry's start
        """
        project = self._authorized_project(caller, project_id, Action.TIME_ENTRY_STOP, deadline)
        try:
            entry = self._retry.call(
                "get_open_time_entry",
                lambda: self._repository.get_open_time_entry(caller.id, project.id),
                deadline,
            )
        except NotFound:
            raise NotTracking(project.name) from None
        Authorizer.require(caller, Action.TIME_ENTRY_STOP, entry)

        stopped_at = now or self._clock()
        if stopped_at < entry.started_at:
            logger.error(
                f"Clock regression stopping entry {entry.id}: "
                f"stop {stopped_at.isoformat()} is before start {entry.started_at.isoformat()}"
            )
            raise InternalError("Clock regression: stop time is before start time")
        closed = entry.close(stopped_at)

        try:
            result = self._retry.call(
                "close_time_entry",
                lambda: self._repository.close_time_entry(entry.id, closed.state.stopped_at, closed.state.duration),
                deadline,
            )
        except Conflict:
            raise NotTracking(project.name) from None

        logger.info(f"User {caller.id} stopped tracking project {project.id} after {result.state.duration}")
        return result

    # PUBLIC_INTERFACE
    def current(self, caller: User, project_id: str, deadline: Optional[float] = None) -> TimeEntry:
        """
        The caller's open entry on a project.

        Use ``TimeEntry.elapsed`` for the running duration.

        Raises:
            NotTracking: If the pair is idle
        """
        project = self._authorized_project(caller, project_id, Action.TIME_ENTRY_READ, deadline)
        try:
            entry = self._retry.call(
                "get_open_time_entry",
                lambda: self._repository.get_open_time_entry(caller.id, project.id),
                deadline,
            )
        except NotFound:
            raise NotTracking(project.name) from None
        Authorizer.require(caller, Action.TIME_ENTRY_READ, entry)
        return entry

    # PUBLIC_INTERFACE
    def list_entries(
        self,
        caller: User,
        project_id: str,
        user_id: Optional[str] = None,
        status: Optional[TimeEntryStatus] = None,
        started_from: Optional[datetime] = None,
        started_before: Optional[datetime] = None,
        deadline: Optional[float] = None,
    ) -> Iterable[TimeEntry]:
        """
        Time entries recorded on a project, oldest first.

        The project owner and admins may list every entry on the project;
        ``user_id`` narrows the listing to one user.

        Returns:
            A lazy, restartable iterable of entries
        """
        project = self._authorized_project(caller, project_id, Action.TIME_ENTRY_LIST, deadline)
        entry_filter = build(
            TimeEntryFilter,
            project_id=project.id,
            user_id=user_id,
            status=status,
            started_from=started_from,
            started_before=started_before,
        )
        return self._repository.list_time_entries(entry_filter)

    # PUBLIC_INTERFACE
    def delete_entry(
        self, caller: User, project_id: str, entry_id: str, deadline: Optional[float] = None
    ) -> TimeEntry:
        """
        Delete one time entry of a project.

        The user who recorded the entry or an admin may delete it. Deleting an
        open entry frees the user-project pair.

        Returns:
            TimeEntry: The entry as it was before deletion

        Raises:
            NotFound: If the project or entry does not exist, or the entry
                belongs to another project
            Forbidden: If the caller may not delete the entry
        """
        project = self._authorized_project(caller, project_id, Action.TIME_ENTRY_DELETE, deadline)
        entry = self._retry.call("get_time_entry", lambda: self._repository.get_time_entry(entry_id), deadline)
        if entry.project_id != project.id:
            raise NotFound("Time entry not found")
        Authorizer.require(caller, Action.TIME_ENTRY_DELETE, entry)

        deleted = self._retry.call(
            "delete_time_entry", lambda: self._repository.delete_time_entry(entry.id), deadline
        )
        logger.info(f"User {caller.id} deleted time entry {entry.id} on project {project.id}")
        return deleted

    def _current_entry_id(self, user_id: str, project_id: str, deadline: Optional[float]) -> Optional[str]:
        try:
            entry = self._retry.call(
                "get_open_time_entry",
                lambda: self._repository.get_open_time_entry(user_id, project_id),
                deadline,
            )
        except NotFound:
            return None
        return entry.id
