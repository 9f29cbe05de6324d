"""
Repository contract for the time tracker.

The contract is independent of any store product. Implementations must make
``create_open_time_entry`` and ``close_time_entry`` conditional writes judged
by the store itself, never a read followed by a write, since several stateless
process instances may act on the same user-project pair at once.

Every operation may raise:
    NotFound: The addressed entity does not exist
    Conflict: A precondition on the current stored state failed
    StorageUnavailable: Transient backend fault, safe to retry with backoff
    InternalError: The backend answered with something unexpected
"""
import enum
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Iterable, List

from ..schemas import Project, TimeEntry, TimeEntryFilter, User, UserRole


class WriteMode(str, enum.Enum):
    """Write semantics for put operations."""
    CREATE_ONLY = "create_only"
    OVERWRITE = "overwrite"


class TimeTrackerRepository(ABC):
    """Access to users, projects and time entries in the backing store."""

    # Layout

    @abstractmethod
    def ensure_layout(self) -> bool:
        """
        Create the tables and indexes the repository needs.

        Returns:
            bool: True if anything was created, False if the layout already existed
        """

    # Users

    @abstractmethod
    def get_user_by_api_key(self, api_key: str) -> User:
        """Look up the user owning an API key."""

    @abstractmethod
    def get_user_by_id(self, user_id: str) -> User:
        """Look up a user by identifier."""

    @abstractmethod
    def put_user(self, user: User, mode: WriteMode = WriteMode.CREATE_ONLY) -> User:
        """
        Store a user.

        CREATE_ONLY raises Conflict if the id, username or API key is taken.
        """

    @abstractmethod
    def list_users(self) -> List[User]:
        """All users ordered by creation time."""

    @abstractmethod
    def has_user_with_role(self, role: UserRole) -> bool:
        """Whether at least one user holds the role."""

    @abstractmethod
    def delete_user(self, user_id: str) -> None:
        """Delete a user together with their projects and time entries."""

    # Projects

    @abstractmethod
    def get_project(self, project_id: str) -> Project:
        """Look up a project by identifier."""

    @abstractmethod
    def list_projects_by_owner(self, user_id: str) -> List[Project]:
        """Projects owned by a user."""

    @abstractmethod
    def put_project(self, project: Project, mode: WriteMode = WriteMode.CREATE_ONLY) -> Project:
        """
        Store a project.

        CREATE_ONLY raises Conflict if the id exists or the owner already has
        a project with the same name. OVERWRITE raises NotFound if the project
        vanished and never changes the owner.
        """

    @abstractmethod
    def delete_project(self, project_id: str) -> None:
        """
        Delete a project and its closed time entries.

        Raises Conflict while an open entry exists on the project.
        """

    # Time entries

    @abstractmethod
    def get_open_time_entry(self, user_id: str, project_id: str) -> TimeEntry:
        """The open entry for a user-project pair."""

    @abstractmethod
    def create_open_time_entry(self, entry: TimeEntry) -> TimeEntry:
        """
        Insert an open entry.

        Succeeds only if no open entry exists for the entry's user-project
        pair; otherwise raises Conflict.
        """

    @abstractmethod
    def get_time_entry(self, entry_id: str) -> TimeEntry:
        """Look up a time entry by identifier."""

    @abstractmethod
    def delete_time_entry(self, entry_id: str) -> TimeEntry:
        """Delete a time entry, open or closed, and return it as it was."""

    @abstractmethod
    def close_time_entry(self, entry_id: str, stopped_at: datetime, duration: timedelta) -> TimeEntry:
        """
        Close an entry.

        Succeeds only if the entry is currently open; raises Conflict if it
        was already closed or has vanished.
        """

    @abstractmethod
    def list_time_entries(self, entry_filter: TimeEntryFilter) -> Iterable[TimeEntry]:
        """
        Entries matching the filter, oldest first.

        The result is lazy and restartable: every iteration queries the store
        again.
        """
