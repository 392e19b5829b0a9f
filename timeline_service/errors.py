"""
Error taxonomy for Timeline Service

Every error carries the HTTP status it maps to; the API layer renders them
through a single exception handler.
"""
from fastapi import status


class TimelineServiceError(Exception):
    """Base class for all service errors"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(TimelineServiceError):
    """Malformed or incomplete request payload (user-correctable)"""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(TimelineServiceError):
    """Missing or invalid caller identity"""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(detail)


class NotFoundError(TimelineServiceError):
    """Referenced post or user does not exist"""

    status_code = status.HTTP_404_NOT_FOUND


class DependencyError(TimelineServiceError):
    """An external store or service failed or timed out"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, dependency: str, detail: str):
        super().__init__(f"{dependency}: {detail}")
        self.dependency = dependency
