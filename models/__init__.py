"""
Models package initialization.
"""

from .base import Base, BaseModel
from .chat import Chat
from .file import File
from .generation import ErrorReason, GenerationStatus, MessageGeneration
from .message import Message, MessageRole, MessageType
from .message_attachment import MessageAttachment
from .provider_settings import ProviderSettings
from .user import User

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "File",
    # Chat models
    "Chat",
    "Message",
    "MessageRole",
    "MessageType",
    "MessageAttachment",
    # Generation models
    "MessageGeneration",
    "GenerationStatus",
    "ErrorReason",
    "ProviderSettings",
]
