"""
User management service.

Every operation is reserved to admins. Roles are set at creation and never
changed afterwards.
"""
import logging
from typing import List, Optional

from ..auth.authorization import Action, Authorizer
from ..database.repository import TimeTrackerRepository, WriteMode
from ..schemas import User, UserRole, new_user
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class UserService:
    """Create, list, get and delete users."""

    def __init__(self, repository: TimeTrackerRepository, retry: Optional[RetryPolicy] = None):
        self._repository = repository
        self._retry = retry or RetryPolicy()

    # PUBLIC_INTERFACE
    def create(self, caller: User, username: str, role: UserRole = UserRole.USER) -> User:
        """
        Create a user with a freshly generated API key.

        The returned user is the only place the new key is handed out.

        Raises:
            Forbidden: If the caller is not an admin
            ValidationError: If the username is malformed
            Conflict: If the username is taken
        """
        Authorizer.require(caller, Action.USER_CREATE)
        user = new_user(username, role, created_by=caller.id)
        self._retry.call("put_user", lambda: self._repository.put_user(user, WriteMode.CREATE_ONLY))
        logger.info(f"Admin {caller.id} created {user.role.value} user {user.id}")
        return user

    # PUBLIC_INTERFACE
    def list(self, caller: User) -> List[User]:
        """All users. Present them with ``User.redacted`` to keep API keys private."""
        Authorizer.require(caller, Action.USER_LIST)
        return self._retry.call("list_users", self._repository.list_users)

    # PUBLIC_INTERFACE
    def get(self, caller: User, user_id: str) -> User:
        """Get a user by identifier."""
        Authorizer.require(caller, Action.USER_GET)
        return self._retry.call("get_user_by_id", lambda: self._repository.get_user_by_id(user_id))

    # PUBLIC_INTERFACE
    def delete(self, caller: User, user_id: str) -> None:
        """
        Delete a user together with their projects and time entries.

        Raises:
            Forbidden: If the caller is not an admin
            NotFound: If the user does not exist
        """
        Authorizer.require(caller, Action.USER_DELETE)
        self._retry.call("delete_user", lambda: self._repository.delete_user(user_id))
        logger.info(f"Admin {caller.id} deleted user {user_id}")
