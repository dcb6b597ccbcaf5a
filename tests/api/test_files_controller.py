"""
API tests for signed file downloads.
"""

import uuid

import pytest
import pytest_asyncio
from fastapi import status
from httpx import AsyncClient

from app.core.security import create_file_token
from app.services.file_storage import FileStorageService
from tests.fakes import JPEG_BYTES, JPEG_DATA_URI


@pytest_asyncio.fixture
async def stored_file_id(test_db, test_user):
    file_ids = await FileStorageService(test_db).save_files([JPEG_DATA_URI], test_user.id)
    await test_db.commit()
    return uuid.UUID(file_ids[0])


def path_of(url: str) -> str:
    """Signed URLs may carry an absolute base; the test client only needs the path and query."""
    return "/api/files/" + url.split("/api/files/", 1)[1]


class TestFilesController:
    """Test cases for GET /api/files/{id}."""

    @pytest.mark.asyncio
    async def test_download_with_signed_url(self, client: AsyncClient, test_db, test_user, stored_file_id):
        url = FileStorageService(test_db).get_file_url(stored_file_id, test_user.id)

        response = await client.get(path_of(url))

        assert response.status_code == status.HTTP_200_OK
        assert response.content == JPEG_BYTES
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["content-disposition"].startswith("inline")

    @pytest.mark.asyncio
    async def test_download_with_garbage_token(self, client: AsyncClient, stored_file_id):
        response = await client.get(f"/api/files/{stored_file_id}", params={"token": "not-a-token"})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "FILE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_download_with_token_for_other_file(self, client: AsyncClient, test_user, stored_file_id):
        token = create_file_token(uuid.uuid4(), test_user.id)

        response = await client.get(f"/api/files/{stored_file_id}", params={"token": token})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_download_with_token_for_other_user(self, client: AsyncClient, test_user_2, stored_file_id):
        token = create_file_token(stored_file_id, test_user_2.id)

        response = await client.get(f"/api/files/{stored_file_id}", params={"token": token})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_download_with_expired_token(self, client: AsyncClient, test_user, stored_file_id):
        token = create_file_token(stored_file_id, test_user.id, expires_minutes=-5)

        response = await client.get(f"/api/files/{stored_file_id}", params={"token": token})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_download_without_token(self, client: AsyncClient, stored_file_id):
        response = await client.get(f"/api/files/{stored_file_id}")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_generation_result_url_downloads(
        self, authenticated_client: AsyncClient, fake_provider_settings
    ):
        created = await authenticated_client.post(
            "/api/chats", json={"provider": "fake", "model": "fake-t2i", "content": "a cat"}
        )
        generation_id = created.json()["data"]["messages"][1]["generation_id"]
        poll = await authenticated_client.get(f"/api/generations/{generation_id}")
        url = poll.json()["data"]["result_urls"][0]

        response = await authenticated_client.get(path_of(url))

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")
