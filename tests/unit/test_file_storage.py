"""
Unit tests for FileStorageService.
"""

import uuid

import jwt
import pytest

from app.core.config import settings
from app.exceptions.base import InvalidParameterError
from app.exceptions.chat import FileNotFoundInStoreError
from app.services.file_storage import FileStorageService
from models import File
from tests.fakes import JPEG_DATA_URI, PNG_BYTES, PNG_DATA_URI


class TestFileStorageService:
    """Test cases for FileStorageService."""

    @pytest.mark.asyncio
    async def test_save_files_writes_bytes_and_rows(self, test_db, test_user, storage_root):
        service = FileStorageService(test_db, storage_root)

        file_ids = await service.save_files([PNG_DATA_URI, JPEG_DATA_URI], test_user.id)
        await test_db.commit()

        assert len(file_ids) == 2
        first = await test_db.get(File, uuid.UUID(file_ids[0]))
        second = await test_db.get(File, uuid.UUID(file_ids[1]))
        assert first.mime_type == "image/png"
        assert first.file_size == len(PNG_BYTES)
        assert second.filename.endswith(".jpg")
        assert (storage_root / first.file_path).read_bytes() == PNG_BYTES
        assert first.file_path.startswith(str(test_user.id))

    @pytest.mark.asyncio
    async def test_save_files_rejects_bad_data_before_writing(self, test_db, test_user, storage_root):
        service = FileStorageService(test_db, storage_root)

        with pytest.raises(InvalidParameterError, match="Image 1"):
            await service.save_files([PNG_DATA_URI, "data:image/png;base64,%%%"], test_user.id)

        assert not storage_root.exists()

    @pytest.mark.asyncio
    async def test_save_files_rejects_oversized(self, test_db, test_user, storage_root, monkeypatch):
        monkeypatch.setattr(settings, "max_file_size", 8)
        service = FileStorageService(test_db, storage_root)

        with pytest.raises(InvalidParameterError, match="maximum size"):
            await service.save_files([PNG_DATA_URI], test_user.id)

    @pytest.mark.asyncio
    async def test_read_file_returns_data_uri(self, test_db, test_user, storage_root):
        service = FileStorageService(test_db, storage_root)
        [file_id] = await service.save_files([JPEG_DATA_URI], test_user.id)

        assert await service.read_file(file_id, test_user.id) == JPEG_DATA_URI

    @pytest.mark.asyncio
    async def test_read_file_other_user(self, test_db, test_user, test_user_2, storage_root):
        service = FileStorageService(test_db, storage_root)
        [file_id] = await service.save_files([JPEG_DATA_URI], test_user.id)

        assert await service.read_file(file_id, test_user_2.id) is None

    @pytest.mark.asyncio
    async def test_read_file_missing_bytes(self, test_db, test_user, storage_root):
        service = FileStorageService(test_db, storage_root)
        [file_id] = await service.save_files([JPEG_DATA_URI], test_user.id)
        file = await service.get_file(file_id, test_user.id)
        (storage_root / file.file_path).unlink()

        assert await service.read_file(file_id, test_user.id) is None

    @pytest.mark.asyncio
    async def test_get_file_malformed_id(self, test_db, test_user, storage_root):
        service = FileStorageService(test_db, storage_root)

        assert await service.get_file("not-a-uuid", test_user.id) is None

    @pytest.mark.asyncio
    async def test_open_file(self, test_db, test_user, storage_root):
        service = FileStorageService(test_db, storage_root)
        [file_id] = await service.save_files([PNG_DATA_URI], test_user.id)

        file, path = await service.open_file(uuid.UUID(file_id), test_user.id)

        assert file.mime_type == "image/png"
        assert path.read_bytes() == PNG_BYTES

    @pytest.mark.asyncio
    async def test_open_file_not_owned(self, test_db, test_user, test_user_2, storage_root):
        service = FileStorageService(test_db, storage_root)
        [file_id] = await service.save_files([PNG_DATA_URI], test_user.id)

        with pytest.raises(FileNotFoundInStoreError):
            await service.open_file(uuid.UUID(file_id), test_user_2.id)

    @pytest.mark.asyncio
    async def test_get_file_url_carries_signed_token(self, test_user, storage_root):
        service = FileStorageService(None, storage_root)
        file_id = uuid.uuid4()

        url = service.get_file_url(file_id, test_user.id)

        assert f"/api/files/{file_id}?token=" in url
        token = url.split("token=", 1)[1]
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        assert claims["fid"] == str(file_id)
        assert claims["sub"] == str(test_user.id)
