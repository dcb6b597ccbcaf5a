# ruff: noqa: D107
"""Image provider and generation exceptions.

Only ``ProviderConfigInvalidError`` maps to a dedicated generation failure
reason (``CONFIG_INVALID``); every other provider exception is recorded as
``UNKNOWN`` by the dispatcher. Credential rejections by the remote service are
not exceptions at all: providers report them as ``CONFIG_ERROR`` results.
"""

from typing import Any

from .base import BaseAppException


class ProviderError(BaseAppException):
    """Base exception for image provider errors."""

    def __init__(
        self,
        message: str = "Image provider error occurred",
        error_code: str = "PROVIDER_ERROR",
        status_code: int = 502,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message, status_code=status_code, error_code=error_code, details=details
        )


class ProviderNotFoundError(ProviderError):
    """Raised when a provider identifier is not registered."""

    def __init__(self, provider_id: str, details: dict[str, Any] | None = None):
        super().__init__(
            f"Provider not found: {provider_id}", "PROVIDER_NOT_FOUND", 404, details
        )


class ModelNotFoundError(ProviderError):
    """Raised when a model identifier is not in the provider's catalog."""

    def __init__(self, provider_id: str, model_id: str, details: dict[str, Any] | None = None):
        super().__init__(
            f"Model {model_id} not found for provider {provider_id}", "MODEL_NOT_FOUND", 404, details
        )


class ProviderConfigInvalidError(ProviderError):
    """Raised when provider settings fail local schema validation."""

    def __init__(
        self,
        message: str = "Provider settings are invalid",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "PROVIDER_CONFIG_INVALID", 422, details)


class ProviderRequestError(ProviderError):
    """Raised when the provider answers with an unexpected error status or is unreachable."""

    def __init__(
        self,
        message: str = "Image provider request failed",
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        if details is None:
            details = {}
        if status is not None:
            details["status"] = status
        super().__init__(message, "PROVIDER_REQUEST_FAILED", 502, details)


class ProviderResponseError(ProviderError):
    """Raised when a provider response cannot be interpreted."""

    def __init__(
        self,
        message: str = "Malformed image provider response",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "PROVIDER_BAD_RESPONSE", 502, details)


class ProviderGenerationError(ProviderError):
    """Raised when the remote generation job itself reports failure."""

    def __init__(
        self,
        message: str = "Image generation failed",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "PROVIDER_GENERATION_FAILED", 502, details)


class ProviderTimeoutError(ProviderError):
    """Raised when a provider's poll ceiling is exceeded."""

    def __init__(
        self,
        message: str = "Image generation timeout exceeded",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "PROVIDER_TIMEOUT", 504, details)


class InvalidGenerationTransitionError(BaseAppException):
    """Raised when a generation is asked to move between states illegally."""

    def __init__(self, current: str, target: str, message: str | None = None):
        super().__init__(
            message=message or f"Cannot move generation from {current} to {target}",
            status_code=422,
            error_code="INVALID_GENERATION_TRANSITION",
            details={"current": current, "target": target},
        )
