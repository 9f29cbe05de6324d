"""
Environment configuration for the time tracker.

Values are read from the process environment once at startup and handed to
the components that need them.
"""
import os
from dataclasses import dataclass


DEFAULT_ADMIN_USERNAME = "DEFAULT ADMIN"
# Replace by creating your own admin user and deleting the default one.
DEFAULT_ADMIN_API_KEY = "DefaultAdminApiKeyChangeMe000000"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class Settings:
    """Process-wide settings."""

    database_url: str = "sqlite:///./time_tracker.db"
    sql_echo: bool = False
    store_timeout_seconds: float = 5.0
    store_max_retries: int = 3
    store_retry_base_delay_ms: int = 50
    max_projects: int = 15
    default_admin_username: str = DEFAULT_ADMIN_USERNAME
    default_admin_api_key: str = DEFAULT_ADMIN_API_KEY
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            sql_echo=_env_bool("SQL_ECHO"),
            store_timeout_seconds=float(os.getenv("STORE_TIMEOUT_SECONDS", "5")),
            store_max_retries=int(os.getenv("STORE_MAX_RETRIES", "3")),
            store_retry_base_delay_ms=int(os.getenv("STORE_RETRY_BASE_DELAY_MS", "50")),
            max_projects=int(os.getenv("MAX_PROJECTS", "15")),
            default_admin_username=os.getenv("DEFAULT_ADMIN_USERNAME", DEFAULT_ADMIN_USERNAME),
            default_admin_api_key=os.getenv("DEFAULT_ADMIN_API_KEY", DEFAULT_ADMIN_API_KEY),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
