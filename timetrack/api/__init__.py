"""
HTTP seam for the time tracker.

Caller resolution from the ``x-api-key`` header and the mapping of domain
errors to HTTP responses, for use by a FastAPI transport.
"""
from .dependencies import api_key_header, get_application, get_current_user, install
from .error_handlers import STATUS_CODES, install_error_handlers

__all__ = [
    "api_key_header", "get_application", "get_current_user", "install",
    "STATUS_CODES", "install_error_handlers",
]
