"""
Generation model tracking one asynchronous image-production attempt.

A generation is created in ``pending`` together with its assistant message,
mutated in place by the dispatcher until it reaches a terminal state, and
reset back to ``pending`` (never replaced) when the user regenerates.
"""

import enum

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class GenerationStatus(str, enum.Enum):
    """Persisted generation states."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorReason(str, enum.Enum):
    """Reason codes recorded on failed generations."""

    CONFIG_ERROR = "CONFIG_ERROR"  # Provider rejected credentials or model
    CONFIG_INVALID = "CONFIG_INVALID"  # Settings failed local validation
    UNKNOWN = "UNKNOWN"


class MessageGeneration(BaseModel):
    """
    Represents the generation record behind an assistant image message.

    :ivar status: One of ``pending``, ``completed``, ``failed``.
    :type status: str
    :ivar file_ids: Ordered result file ids, set only when completed.
    :type file_ids: list[str]
    :ivar error_reason: Failure reason code, set only when failed.
    :type error_reason: str
    :ivar generation_time: Elapsed provider time in milliseconds.
    :type generation_time: int
    """

    __tablename__ = "message_generations"
    __table_args__ = (Index("idx_message_generations_status_updated", "status", "updated_at"),)

    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False, default="image")
    prompt = Column(Text, nullable=False, default="")
    provider = Column(String(100), nullable=False)
    model = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=GenerationStatus.PENDING.value)
    file_ids = Column(JSON, nullable=True)
    error_reason = Column(String(50), nullable=True)
    generation_time = Column(Integer, nullable=True)

    message = relationship("Message", back_populates="generation", uselist=False)
