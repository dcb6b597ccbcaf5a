"""Authentication exceptions."""

from typing import Any

from .base import BaseAppException


class AuthenticationError(BaseAppException):
    """Raised when the bearer token is missing, malformed, expired or unverifiable."""

    def __init__(self, message: str = "Authentication failed", details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=401, error_code="UNAUTHORIZED", details=details)
        self.headers = {"WWW-Authenticate": "Bearer"}


class InactiveUserError(BaseAppException):
    def __init__(self, message: str = "User account is inactive"):
        super().__init__(message=message, status_code=403, error_code="USER_INACTIVE")
