"""
Project management service.

Any authenticated user may create projects and becomes their owner; the owner
or an admin may read, rename and delete them.
"""
import logging
from datetime import datetime
from typing import List, Optional

from ..auth.authorization import Action, Authorizer
from ..database.repository import TimeTrackerRepository, WriteMode
from ..errors import TooManyProjects
from ..schemas import Project, TimeEntryFilter, TimeEntryStatus, User, new_project, utc_now, validate_name
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROJECTS = 15


class ProjectService:
    """Create, list, rename and delete projects."""

    def __init__(
        self,
        repository: TimeTrackerRepository,
        retry: Optional[RetryPolicy] = None,
        max_projects: int = DEFAULT_MAX_PROJECTS,
    ):
        self._repository = repository
        self._retry = retry or RetryPolicy()
        self.max_projects = max_projects

    # PUBLIC_INTERFACE
    def create(self, caller: User, name: str, now: Optional[datetime] = None) -> Project:
        """
        Create a project owned by the caller.

        Non-admin users may own at most ``max_projects`` projects. Names are
        unique per owner.

        Raises:
            ValidationError: If the name is empty or too long
            TooManyProjects: If the caller reached the project limit
            Conflict: If the caller already owns a project with that name
        """
        Authorizer.require(caller, Action.PROJECT_CREATE)
        project = new_project(name, caller.id, now)

        if not caller.is_admin:
            existing = self._retry.call(
                "list_projects_by_owner", lambda: self._repository.list_projects_by_owner(caller.id)
            )
            if len(existing) >= self.max_projects:
                raise TooManyProjects(self.max_projects)

        self._retry.call("put_project", lambda: self._repository.put_project(project, WriteMode.CREATE_ONLY))
        logger.info(f"User {caller.id} created project {project.id}")
        return project

    # PUBLIC_INTERFACE
    def get(self, caller: User, project_id: str) -> Project:
        """Get a project the caller may read."""
        project = self._retry.call("get_project", lambda: self._repository.get_project(project_id))
        Authorizer.require(caller, Action.PROJECT_READ, project)
        return project

    # PUBLIC_INTERFACE
    def list(self, caller: User, owner_id: Optional[str] = None) -> List[Project]:
        """
        List the projects of an owner, the caller by default.

        Projects with tracking in progress come first, the rest ordered by
        most recent modification or creation.

        Raises:
            Forbidden: If a non-admin caller asks for another owner's projects
        """
        owner_id = owner_id or caller.id
        if owner_id != caller.id:
            # No resource to compare ownership against, so only admins pass
            Authorizer.require(caller, Action.PROJECT_READ)
        projects = self._retry.call(
            "list_projects_by_owner", lambda: self._repository.list_projects_by_owner(owner_id)
        )

        open_entries = self._repository.list_time_entries(
            TimeEntryFilter(user_id=owner_id, status=TimeEntryStatus.IN_PROGRESS)
        )
        tracking = self._retry.call("list_time_entries", lambda: {entry.project_id for entry in open_entries})

        def sort_key(project: Project):
            return (project.id not in tracking, -(project.modified_at or project.created_at).timestamp())

        return sorted(projects, key=sort_key)

    # PUBLIC_INTERFACE
    def rename(self, caller: User, project_id: str, name: str, now: Optional[datetime] = None) -> Project:
        """
        Rename a project.

        Raises:
            ValidationError: If the new name is malformed
            Forbidden: If the caller is neither the owner nor an admin
            Conflict: If the owner already has a project with that name
        """
        validate_name(name)
        project = self.get(caller, project_id)
        Authorizer.require(caller, Action.PROJECT_UPDATE, project)
        renamed = project.renamed(name, now or utc_now())
        self._retry.call("put_project", lambda: self._repository.put_project(renamed, WriteMode.OVERWRITE))
        return renamed

    # PUBLIC_INTERFACE
    def delete(self, caller: User, project_id: str) -> None:
        """
        Delete a project and its time entries.

        Raises:
            Forbidden: If the caller is neither the owner nor an admin
            Conflict: While time tracking is in progress on the project
        """
        project = self._retry.call("get_project", lambda: self._repository.get_project(project_id))
        Authorizer.require(caller, Action.PROJECT_DELETE, project)
        self._retry.call("delete_project", lambda: self._repository.delete_project(project.id))
        logger.info(f"User {caller.id} deleted project {project.id}")
