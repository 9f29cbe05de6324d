"""
Authorization tests.

Tests cover the pure decision rules and API key resolution against the store.
"""
from datetime import datetime, timezone

import pytest

from timetrack.auth.authorization import USER_MANAGEMENT_ACTIONS, Action, Authorizer, Decision, authorize
from timetrack.errors import Forbidden, Unauthorized
from timetrack.schemas import UserRole, new_project, new_user, open_entry
from timetrack.schemas.user import SYSTEM

from .conftest import ALICE_API_KEY

OWNER = new_user("owner", UserRole.USER, created_by=SYSTEM)
OTHER = new_user("other", UserRole.USER, created_by=SYSTEM)
ADMIN = new_user("root", UserRole.ADMIN, created_by=SYSTEM)
PROJECT = new_project("demo", OWNER.id)
ENTRY = open_entry(OWNER.id, PROJECT.id, datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc))

RESOURCE_ACTIONS = [
    (Action.PROJECT_READ, PROJECT),
    (Action.PROJECT_UPDATE, PROJECT),
    (Action.PROJECT_DELETE, PROJECT),
    (Action.TIME_ENTRY_START, PROJECT),
    (Action.TIME_ENTRY_LIST, PROJECT),
    (Action.TIME_ENTRY_STOP, ENTRY),
    (Action.TIME_ENTRY_READ, ENTRY),
    (Action.TIME_ENTRY_DELETE, ENTRY),
]


class TestAuthorize:
    """Test cases for the authorization decision."""

    @pytest.mark.parametrize("action", list(Action))
    def test_no_caller_is_unauthorized(self, action):
        """Test that every action requires a caller."""
        assert authorize(None, action, PROJECT) is Decision.UNAUTHORIZED

    @pytest.mark.parametrize("action", sorted(USER_MANAGEMENT_ACTIONS))
    def test_user_management_requires_admin(self, action):
        """Test that only admins manage users."""
        assert authorize(ADMIN, action) is Decision.ALLOW
        assert authorize(OWNER, action) is Decision.FORBIDDEN

    def test_user_management_ignores_resource_ownership(self):
        """Test that owning a resource grants no user management rights."""
        assert authorize(OWNER, Action.USER_DELETE, PROJECT) is Decision.FORBIDDEN

    @pytest.mark.parametrize("action,resource", RESOURCE_ACTIONS)
    def test_owner_allowed(self, action, resource):
        """Test that the owner may act on their project and entries."""
        assert authorize(OWNER, action, resource) is Decision.ALLOW

    @pytest.mark.parametrize("action,resource", RESOURCE_ACTIONS)
    def test_non_owner_forbidden(self, action, resource):
        """Test that other users may not act on the resource."""
        assert authorize(OTHER, action, resource) is Decision.FORBIDDEN

    @pytest.mark.parametrize("action,resource", RESOURCE_ACTIONS)
    def test_admin_allowed(self, action, resource):
        """Test that admins may act on any resource."""
        assert authorize(ADMIN, action, resource) is Decision.ALLOW

    def test_project_create_open_to_any_caller(self):
        """Test that any user may create a project."""
        assert authorize(OTHER, Action.PROJECT_CREATE) is Decision.ALLOW

    def test_missing_resource_forbidden(self):
        """Test that resource actions without a resource are refused."""
        assert authorize(OWNER, Action.PROJECT_READ) is Decision.FORBIDDEN


class TestAuthorizer:
    """Test cases for caller resolution and enforcement."""

    @pytest.mark.parametrize("api_key", [None, "", "not-a-key", "!" * 32])
    def test_missing_or_malformed_key(self, authorizer, api_key):
        """Test that missing and malformed keys are unauthorized."""
        with pytest.raises(Unauthorized):
            authorizer.resolve(api_key)

    def test_unknown_key(self, authorizer, alice):
        """Test that a well formed but unknown key is unauthorized."""
        with pytest.raises(Unauthorized):
            authorizer.resolve("Unknown0000000000000000000000000")

    def test_known_key(self, authorizer, alice):
        """Test that a known key resolves to its user."""
        assert authorizer.resolve(ALICE_API_KEY) == alice

    def test_require(self):
        """Test that require raises for refused decisions."""
        assert Authorizer.require(OWNER, Action.PROJECT_DELETE, PROJECT) is OWNER
        with pytest.raises(Forbidden):
            Authorizer.require(OTHER, Action.PROJECT_DELETE, PROJECT)
        with pytest.raises(Unauthorized):
            Authorizer.require(None, Action.PROJECT_DELETE, PROJECT)
