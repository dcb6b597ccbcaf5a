"""
Message model for chat turns.
"""

import enum

from sqlalchemy import Column, Enum, ForeignKey, Index, Text
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class MessageRole(str, enum.Enum):
    """Message role enumeration."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageType(str, enum.Enum):
    """Message content type enumeration."""

    TEXT = "text"
    IMAGE = "image"


class Message(BaseModel):
    """
    Represents a single turn in a chat.

    Assistant image turns link to exactly one generation; user turns may
    carry uploaded attachments.
    """

    __tablename__ = "messages"
    __table_args__ = (Index("idx_messages_chat_created", "chat_id", "created_at"),)

    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    chat_id = Column(UUID(), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(MessageRole, name="message_role"), nullable=False)
    type = Column(Enum(MessageType, name="message_type"), nullable=False, default=MessageType.TEXT)
    content = Column(Text, nullable=False, default="")
    generation_id = Column(
        UUID(),
        ForeignKey("message_generations.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    chat = relationship("Chat", back_populates="messages")
    generation = relationship("MessageGeneration", back_populates="message")
    attachments = relationship(
        "MessageAttachment",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageAttachment.created_at",
    )
