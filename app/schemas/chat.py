"""Chat schemas for request/response serialization."""

from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from pydantic import Field, field_validator

from models.message import MessageRole, MessageType

from .base import BaseModelSchema, BaseSchema
from .generation import GenerationResponse


class AttachmentCreate(BaseSchema):
    """An image uploaded with a message, as a data URI or bare base64 string."""

    data: str = Field(..., min_length=1, description="Base64 image data")
    type: Literal["image"] = Field(default="image")


class ChatCreate(BaseSchema):
    """Schema for creating a chat, optionally with its first message."""

    title: Optional[str] = Field(None, max_length=255)
    provider: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=255)
    content: Optional[str] = Field(None, description="First message of the chat")
    attachments: Optional[list[AttachmentCreate]] = None
    images: Optional[list[str]] = Field(None, description="Deprecated: use attachments")


class ChatUpdate(BaseSchema):
    """Schema for updating a chat (all fields optional)."""

    title: Optional[str] = Field(None, max_length=255)
    provider: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=255)


class MessageCreate(BaseSchema):
    """Schema for posting a user turn that triggers an image generation."""

    content: str = Field(..., min_length=1, max_length=10000, description="Prompt text")
    type: MessageType = Field(default=MessageType.TEXT)
    provider: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=255)
    attachments: Optional[list[AttachmentCreate]] = None
    images: Optional[list[str]] = Field(None, description="Deprecated: use attachments")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message content cannot be empty")
        return v

    @property
    def user_images(self) -> Optional[list[str]]:
        """Uploaded images in order, preferring attachments over the legacy field."""
        if self.attachments:
            return [attachment.data for attachment in self.attachments]
        return self.images or None


class AttachmentResponse(BaseSchema):
    id: UUID
    type: str
    url: Optional[str] = None


class MessageResponse(BaseModelSchema):
    """Schema for a chat message with its attachments and generation."""

    chat_id: UUID
    role: MessageRole
    type: MessageType
    content: str
    generation_id: Optional[UUID] = None
    generation: Optional[GenerationResponse] = None
    attachments: list[AttachmentResponse] = Field(default_factory=list)


class ChatResponse(BaseModelSchema):
    """Schema for chat list entries."""

    user_id: UUID
    title: Optional[str]
    provider: str
    model: str


class ChatDetailResponse(ChatResponse):
    messages: list[MessageResponse] = Field(default_factory=list)


class ChatListResponse(BaseSchema):
    chats: list[ChatResponse]
    total: int
    page: int
    size: int
    has_next: bool
    has_prev: bool


class CreateMessageResponse(BaseSchema):
    """The user turn and the pending assistant turn, in that order."""

    messages: list[MessageResponse]


class CreateChatResponse(BaseSchema):
    id: UUID
    messages: list[MessageResponse] = Field(default_factory=list)


class RegenerateResponse(BaseSchema):
    message_id: UUID
    generation_id: UUID
