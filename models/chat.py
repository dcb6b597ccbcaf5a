"""
Chat model for image-generation conversations.
"""

from sqlalchemy import Boolean, Column, ForeignKey, String
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class Chat(BaseModel):
    """
    Represents a conversation owned by a single user.

    ``provider`` and ``model`` are the defaults the client preselects for the
    next turn; each message records the pair it was actually generated with.
    Chats are never hard-deleted, only flagged.
    """

    __tablename__ = "chats"

    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    provider = Column(String(100), nullable=False)
    model = Column(String(255), nullable=False)
    deleted = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="chats")
    messages = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )
