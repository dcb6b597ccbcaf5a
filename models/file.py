"""
File model for stored images.

Generated results and user uploads are both written to the file store; a row
here records where the bytes live and who owns them.
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class File(BaseModel):
    """
    Represents a stored file entity in the application.
    """

    __tablename__ = "files"

    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)  # Relative to settings.file_storage_path
    file_size = Column(Integer)
    mime_type = Column(String(100))

    user = relationship("User", back_populates="files")
