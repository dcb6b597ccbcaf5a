"""File storage service for generated and uploaded images.

Bytes are written to local disk under ``settings.file_storage_path``; each
file gets a ``File`` row owned by the uploading user. Clients never see raw
paths, only URLs carrying a signed, short-lived token.
"""

import asyncio
import logging
from pathlib import Path
from uuid import UUID, uuid4

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import create_file_token
from app.exceptions.base import InvalidParameterError
from app.exceptions.chat import FileNotFoundInStoreError
from app.shared.images import bytes_to_data_uri, extension_for, parse_data_uri
from models.file import File

logger = logging.getLogger(__name__)


class FileStorageService:
    """Service for persisting images and handing out signed URLs to them."""

    def __init__(self, db: AsyncSession, storage_root: str | Path | None = None):
        self.db = db
        self.storage_root = Path(storage_root or settings.file_storage_path)

    async def save_files(self, images: list[str], user_id: UUID) -> list[str]:
        """Store images (data URIs) and return their file ids in input order.

        Rows are only flushed; the caller's commit makes them durable.
        """
        decoded = []
        for index, image in enumerate(images):
            try:
                mime_type, data = parse_data_uri(image)
            except ValueError as e:
                raise InvalidParameterError(f"Image {index} is not valid image data") from e
            if len(data) > settings.max_file_size:
                raise InvalidParameterError(
                    f"Image {index} exceeds the maximum size of {settings.max_file_size} bytes"
                )
            decoded.append((mime_type, data))

        file_ids = []
        for mime_type, data in decoded:
            file_id = uuid4()
            filename = f"{file_id}.{extension_for(mime_type)}"
            relative_path = f"{user_id}/{filename}"
            await asyncio.to_thread(self._write, self.storage_root / relative_path, data)

            self.db.add(
                File(
                    id=file_id,
                    user_id=user_id,
                    filename=filename,
                    file_path=relative_path,
                    file_size=len(data),
                    mime_type=mime_type,
                )
            )
            file_ids.append(str(file_id))

        await self.db.flush()
        logger.debug(f"Stored {len(file_ids)} file(s) for user {user_id}")
        return file_ids

    async def get_file(self, file_id: UUID | str, user_id: UUID) -> File | None:
        try:
            file_uuid = file_id if isinstance(file_id, UUID) else UUID(str(file_id))
        except ValueError:
            return None
        result = await self.db.execute(
            select(File).where(and_(File.id == file_uuid, File.user_id == user_id))
        )
        return result.scalar_one_or_none()

    async def read_file(self, file_id: UUID | str, user_id: UUID) -> str | None:
        """Return a stored file as a data URI, or None if it is missing or not owned by the user."""
        file = await self.get_file(file_id, user_id)
        if not file:
            return None
        try:
            data = await asyncio.to_thread(self._read, self.storage_root / file.file_path)
        except OSError as e:
            logger.warning(f"Stored file {file_id} is unreadable: {e}")
            return None
        return bytes_to_data_uri(data, file.mime_type)

    def get_file_url(self, file_id: UUID | str, user_id: UUID) -> str:
        token = create_file_token(file_id, user_id)
        return f"{settings.public_base_url.rstrip('/')}/api/files/{file_id}?token={token}"

    async def open_file(self, file_id: UUID, user_id: UUID) -> tuple[File, Path]:
        """Resolve a file the user owns to its on-disk path."""
        file = await self.get_file(file_id, user_id)
        if not file:
            raise FileNotFoundInStoreError()
        path = self.storage_root / file.file_path
        if not path.is_file():
            logger.warning(f"File {file_id} has a row but no bytes at {path}")
            raise FileNotFoundInStoreError()
        return file, path

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    @staticmethod
    def _read(path: Path) -> bytes:
        return path.read_bytes()
