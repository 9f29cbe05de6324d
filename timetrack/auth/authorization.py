"""
Authorization engine for the time tracker.

``authorize`` is a pure decision over the caller's role and an explicit
ownership comparison with the resource the action targets. ``Authorizer``
adds the store-backed part: resolving an API key to a caller.
"""
import enum
import logging
from typing import Optional, Union

from ..database.repository import TimeTrackerRepository
from ..errors import Forbidden, NotFound, Unauthorized
from ..schemas import Project, TimeEntry, User
from ..services.retry import RetryPolicy
from .api_keys import is_well_formed

logger = logging.getLogger(__name__)

Resource = Union[Project, TimeEntry]


class Action(str, enum.Enum):
    """Actions subject to authorization."""
    USER_CREATE = "user:create"
    USER_LIST = "user:list"
    USER_GET = "user:get"
    USER_DELETE = "user:delete"
    PROJECT_CREATE = "project:create"
    PROJECT_READ = "project:read"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"
    TIME_ENTRY_START = "time_entry:start"
    TIME_ENTRY_STOP = "time_entry:stop"
    TIME_ENTRY_READ = "time_entry:read"
    TIME_ENTRY_LIST = "time_entry:list"
    TIME_ENTRY_DELETE = "time_entry:delete"


USER_MANAGEMENT_ACTIONS = frozenset({
    Action.USER_CREATE, Action.USER_LIST, Action.USER_GET, Action.USER_DELETE,
})


class Decision(str, enum.Enum):
    """Authorization outcome."""
    ALLOW = "allow"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"


def _owner_of(resource: Resource) -> str:
    if isinstance(resource, Project):
        return resource.owner_id
    return resource.user_id


# PUBLIC_INTERFACE
def authorize(caller: Optional[User], action: Action, resource: Optional[Resource] = None) -> Decision:
    """
    Decide whether a caller may perform an action on a resource.

    Rules, in order:
        1. No caller: UNAUTHORIZED.
        2. User management requires the ADMIN role.
        3. Project and time entry actions require the ADMIN role or ownership
           of the resource: the owner of a Project, the user of a TimeEntry.
           Creating a project has no resource yet and is open to any caller.

    Args:
        caller: Resolved user, or None if no valid credential was supplied
        action: Requested action
        resource: Project or TimeEntry the action targets

    Returns:
        Decision: ALLOW, FORBIDDEN or UNAUTHORIZED
    """
    if caller is None:
        return Decision.UNAUTHORIZED
    if action in USER_MANAGEMENT_ACTIONS:
        return Decision.ALLOW if caller.is_admin else Decision.FORBIDDEN
    if caller.is_admin or action is Action.PROJECT_CREATE:
        return Decision.ALLOW
    if resource is None:
        return Decision.FORBIDDEN
    return Decision.ALLOW if _owner_of(resource) == caller.id else Decision.FORBIDDEN


class Authorizer:
    """Resolves callers from API keys and enforces authorization decisions."""

    def __init__(self, repository: TimeTrackerRepository, retry: Optional[RetryPolicy] = None):
        self._repository = repository
        self._retry = retry or RetryPolicy()

    def resolve(self, api_key: Optional[str], deadline: Optional[float] = None) -> User:
        """
        Resolve the caller owning an API key.

        Raises:
            Unauthorized: If the key is missing, malformed or unknown
        """
        if not api_key:
            raise Unauthorized("Missing API key")
        if not is_well_formed(api_key):
            raise Unauthorized("Invalid API key")
        try:
            return self._retry.call(
                "get_user_by_api_key", lambda: self._repository.get_user_by_api_key(api_key), deadline
            )
        except NotFound:
            raise Unauthorized("Invalid API key") from None

    @staticmethod
    def require(caller: Optional[User], action: Action, resource: Optional[Resource] = None) -> User:
        """
        Enforce an authorization decision.

        Returns:
            User: The caller, when allowed

        Raises:
            Unauthorized: If there is no caller
            Forbidden: If the caller may not perform the action
        """
        decision = authorize(caller, action, resource)
        if decision is Decision.UNAUTHORIZED:
            raise Unauthorized("Unauthorized request")
        if decision is Decision.FORBIDDEN:
            logger.info(f"Denied {action.value} for user {caller.id}")
            raise Forbidden("User does not have the required permissions to perform this action")
        return caller
