"""Generation schemas for status polling and background dispatch."""

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import Field

from .base import BaseModelSchema, BaseSchema


class GenerationPhase(str, Enum):
    """Client-facing phase derived from the persisted status. Never stored."""

    GENERATING = "generating"
    STALLED = "stalled"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationResponse(BaseModelSchema):
    """Generation record as returned to polling clients."""

    user_id: UUID
    type: str
    prompt: str
    provider: str
    model: str
    status: str
    phase: GenerationPhase
    file_ids: Optional[list[str]] = None
    error_reason: Optional[str] = None
    generation_time: Optional[int] = Field(None, description="Provider time in milliseconds")
    result_urls: Optional[list[str]] = None


class GenerationJob(BaseSchema):
    """Everything a dispatch needs to run outside the request that created it."""

    generation_id: UUID
    user_id: UUID
    chat_id: UUID
    prompt: str
    provider_id: str
    model_id: str
    user_images: Optional[list[str]] = Field(None, description="Data URIs supplied with the turn")
    exclude_message_id: Optional[UUID] = Field(
        None, description="Assistant message skipped when looking up reference images"
    )
