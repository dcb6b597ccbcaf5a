"""Chat and message exceptions."""

from .base import NotFoundError


class ChatNotFoundError(NotFoundError):
    """Raised when a chat is missing, deleted, or owned by someone else."""

    def __init__(self, message: str = "Chat not found"):
        super().__init__(message=message)
        self.error_code = "CHAT_NOT_FOUND"
        self.detail["error_code"] = self.error_code


class MessageNotFoundError(NotFoundError):
    """Raised when a message is missing or owned by someone else."""

    def __init__(self, message: str = "Message not found"):
        super().__init__(message=message)
        self.error_code = "MESSAGE_NOT_FOUND"
        self.detail["error_code"] = self.error_code


class FileNotFoundInStoreError(NotFoundError):
    """Raised when a signed file link points to a missing or foreign file."""

    def __init__(self, message: str = "File not found"):
        super().__init__(message=message)
        self.error_code = "FILE_NOT_FOUND"
        self.detail["error_code"] = self.error_code
