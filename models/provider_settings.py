"""
Provider settings model for per-user provider configuration.

This module defines the ProviderSettings model which stores the raw settings
(API keys, endpoints, flags) a user has entered for one image provider. The
values are validated against the provider's schema only when a generation is
dispatched.
"""

from sqlalchemy import JSON, Boolean, Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class ProviderSettings(BaseModel):
    """
    Represents one user's configuration for one provider.

    :ivar user_id: Foreign key reference to the user.
    :type user_id: UUID
    :ivar provider_id: Registry identifier of the provider (e.g. ``openai``).
    :type provider_id: str
    :ivar enabled: Whether the user allows generations with this provider.
    :type enabled: bool
    :ivar settings: Raw key/value settings as entered by the user.
    :type settings: dict
    """

    __tablename__ = "provider_settings"
    __table_args__ = (UniqueConstraint("user_id", "provider_id", name="uq_provider_settings_user_provider"),)

    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider_id = Column(String(100), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    settings = Column(JSON, nullable=False, default=dict)

    user = relationship("User", back_populates="provider_settings")
