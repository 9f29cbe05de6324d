"""
Startup provisioning for the time tracker.

Runs once per process before any request is served. Every step is idempotent
and safe to run from several instances at the same time: the layout step
treats existing tables as done, and the default admin is written with a
create-only put whose Conflict means another instance got there first.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .database.repository import TimeTrackerRepository, WriteMode
from .errors import Conflict
from .schemas import UserRole, new_user
from .schemas.user import SYSTEM
from .services.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisioningReport:
    """What a provisioning run changed."""
    layout_created: bool
    admin_created: bool


# PUBLIC_INTERFACE
def provision(
    repository: TimeTrackerRepository,
    admin_username: str,
    admin_api_key: str,
    retry: Optional[RetryPolicy] = None,
) -> ProvisioningReport:
    """
    Ensure the storage layout and a default admin exist.

    Args:
        repository: Repository over the backing store
        admin_username: Username of the default admin
        admin_api_key: Fixed API key of the default admin
        retry: Retry policy for transient store faults

    Returns:
        ProvisioningReport: Which steps created something

    Raises:
        Conflict: If the default admin's name or key is held by a non-admin
            user and no admin exists
        StorageUnavailable: If the store stays unavailable
    """
    retry = retry or RetryPolicy()

    layout_created = retry.call("ensure_layout", repository.ensure_layout)
    if layout_created:
        logger.info("Storage layout created")
    else:
        logger.info("Storage layout already present")

    if retry.call("has_user_with_role", lambda: repository.has_user_with_role(UserRole.ADMIN)):
        return ProvisioningReport(layout_created=layout_created, admin_created=False)

    admin = new_user(admin_username, UserRole.ADMIN, created_by=SYSTEM, api_key=admin_api_key)
    try:
        retry.call("put_user", lambda: repository.put_user(admin, WriteMode.CREATE_ONLY))
    except Conflict:
        if not retry.call("has_user_with_role", lambda: repository.has_user_with_role(UserRole.ADMIN)):
            logger.error(f"Cannot create default admin '{admin_username}': name or API key taken by a non-admin user")
            raise
        logger.info("Default admin was created by another instance")
        return ProvisioningReport(layout_created=layout_created, admin_created=False)

    logger.warning(
        f"Created default admin user '{admin_username}'. "
        "Make sure to create your own ADMIN user and delete this one."
    )
    return ProvisioningReport(layout_created=layout_created, admin_created=True)
