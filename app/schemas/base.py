"""Base schemas and the response envelopes every endpoint returns."""

from datetime import UTC, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Base schema class with common configuration."""

    model_config = ConfigDict(from_attributes=True)


class BaseModelSchema(BaseSchema):
    """Base schema for database models."""

    id: UUID
    created_at: datetime
    updated_at: datetime


class ResponseSchema(BaseSchema):
    """Standard API response schema."""

    status: str
    message: Optional[str] = None
    data: Optional[dict[str, Any]] = None


class ErrorResponseSchema(BaseSchema):
    """Body rendered by the global exception handlers."""

    status: str = "error"
    message: str
    error_code: str
    details: Optional[Any] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    request_id: Optional[str] = None
