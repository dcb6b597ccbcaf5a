"""
Attachment model linking uploaded files to user messages.
"""

from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class MessageAttachment(BaseModel):
    """
    Represents a file uploaded alongside a user message. Immutable.
    """

    __tablename__ = "message_attachments"

    message_id = Column(UUID(), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    file_id = Column(UUID(), ForeignKey("files.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), nullable=False, default="image")  # Only "image" for now

    message = relationship("Message", back_populates="attachments")
