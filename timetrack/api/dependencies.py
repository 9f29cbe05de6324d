"""
FastAPI dependencies for authenticating callers.
"""
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.security import APIKeyHeader

from ..app import Application
from ..schemas import User
from .error_handlers import install_error_handlers

api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


def install(app: FastAPI, application: Application) -> FastAPI:
    """Attach the services to a FastAPI app and register the error handlers."""
    app.state.timetrack = application
    install_error_handlers(app)
    return app


# PUBLIC_INTERFACE
def get_application(request: Request) -> Application:
    """Services attached to the running app by ``install``."""
    return request.app.state.timetrack


# PUBLIC_INTERFACE
def get_current_user(
    api_key: Optional[str] = Depends(api_key_header),
    application: Application = Depends(get_application),
) -> User:
    """
    Resolve the caller from the ``x-api-key`` header.

    Declared synchronous so FastAPI runs the store lookup in its threadpool.

    Raises:
        Unauthorized: If the key is missing, malformed or unknown
    """
    return application.authorizer.resolve(api_key)
