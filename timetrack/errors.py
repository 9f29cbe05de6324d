"""
Domain error taxonomy for the time tracker.

All business failures raised by the core derive from TimeTrackerError so the
transport layer can map them to responses in one place.
"""


class TimeTrackerError(Exception):
    """Base class for all time tracker errors."""

    retryable = False

    def __init__(self, detail: str = ""):
        self.detail = detail or self.__class__.__doc__
        super().__init__(self.detail)


class ValidationError(TimeTrackerError):
    """Malformed input"""


class Unauthorized(TimeTrackerError):
    """No valid credential supplied"""


class Forbidden(TimeTrackerError):
    """Caller lacks the permissions to perform this action"""


class NotFound(TimeTrackerError):
    """Referenced entity not found"""


class Conflict(TimeTrackerError):
    """State precondition violated"""


class StorageUnavailable(TimeTrackerError):
    """Backing store is temporarily unavailable"""

    retryable = True


class InternalError(TimeTrackerError):
    """An internal error occurred"""


# ============ Time tracking conflicts ============

class AlreadyTracking(Conflict):
    """Time tracking is already in progress"""

    def __init__(self, project_name: str):
        self.project_name = project_name
        super().__init__(f"Time tracking is already in progress on project '{project_name}'")


class NotTracking(Conflict):
    """No time tracking is in progress"""

    def __init__(self, project_name: str):
        self.project_name = project_name
        super().__init__(f"No time tracking is in progress for project '{project_name}'")


class TooManyProjects(Conflict):
    """The user has too many projects"""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"The user has too many projects (maximum {limit})")
