"""
Provides the User model for the application's database schema.

Users are provisioned on first authenticated request from the Clerk token
payload. Every chat, message, generation, stored file and provider
configuration belongs to exactly one user.

Relationships
-------------
chats : sqlalchemy.orm.relationship
    One-to-many relationship with the `Chat` model.
files : sqlalchemy.orm.relationship
    One-to-many relationship with the `File` model.
provider_settings : sqlalchemy.orm.relationship
    One-to-many relationship with the `ProviderSettings` model.
"""

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class User(BaseModel):
    """
    Represents a user entity in the application.

    :ivar clerk_user_id: Unique identifier for the user provided by Clerk.
    :type clerk_user_id: str
    :ivar email: Email address of the user. It must be unique.
    :type email: str
    :ivar username: Username of the user. This is optional.
    :type username: str
    :ivar is_active: Indicates whether the user account is active.
    :type is_active: bool
    """

    __tablename__ = "users"

    clerk_user_id = Column(String(255), unique=True, nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    username = Column(String(100))
    is_active = Column(Boolean, default=True)

    chats = relationship("Chat", back_populates="user", cascade="all, delete-orphan")
    files = relationship("File", back_populates="user", cascade="all, delete-orphan")
    provider_settings = relationship(
        "ProviderSettings", back_populates="user", cascade="all, delete-orphan"
    )
