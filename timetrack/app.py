"""
Application startup for the time tracker.

Builds the store handle once, provisions the store and wires the services
that share it.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .auth.authorization import Authorizer
from .config import Settings
from .database.connection import StoreHandle, create_store
from .database.repository import TimeTrackerRepository
from .database.sql_repository import SqlAlchemyRepository
from .provisioning import ProvisioningReport, provision
from .services.projects import ProjectService
from .services.retry import RetryPolicy
from .services.time_tracking import TimeTrackingService
from .services.users import UserService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Application:
    """Services sharing one store handle."""
    settings: Settings
    store: StoreHandle
    repository: TimeTrackerRepository
    authorizer: Authorizer
    users: UserService
    projects: ProjectService
    time_tracking: TimeTrackingService
    provisioning: ProvisioningReport

    def shutdown(self):
        """Release store connections."""
        logger.info("Shutting down time tracker...")
        self.store.dispose()


def configure_logging(level: str = "INFO"):
    """Configure root logging once per process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# PUBLIC_INTERFACE
def startup(settings: Optional[Settings] = None) -> Application:
    """
    Initialize the store, provision it and build the services.

    Args:
        settings: Process settings; read from the environment when omitted

    Returns:
        Application: Ready-to-serve services
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    logger.info("Starting up time tracker...")

    store = create_store(settings)
    repository = SqlAlchemyRepository(store)
    retry = RetryPolicy.from_settings(settings)

    try:
        report = provision(
            repository,
            admin_username=settings.default_admin_username,
            admin_api_key=settings.default_admin_api_key,
            retry=retry,
        )
    except Exception as e:
        logger.error(f"Failed to provision store: {e}")
        store.dispose()
        raise

    return Application(
        settings=settings,
        store=store,
        repository=repository,
        authorizer=Authorizer(repository, retry),
        users=UserService(repository, retry),
        projects=ProjectService(repository, retry, max_projects=settings.max_projects),
        time_tracking=TimeTrackingService(repository, retry),
        provisioning=report,
    )
