"""
API tests for generation status polling.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi import status
from httpx import AsyncClient

from app.domains.generation.service import GenerationService
from app.exceptions.base import NotFoundError
from models.base import utcnow
from models.generation import GenerationStatus
from tests.factories import GenerationFactory


async def add_generation(test_db, user, **kwargs):
    generation = GenerationFactory(user_id=user.id, **kwargs)
    test_db.add(generation)
    await test_db.commit()
    await test_db.refresh(generation)
    return generation


class TestGenerationController:
    """Test cases for GET /api/generations/{id}."""

    @pytest.mark.asyncio
    async def test_poll_pending(self, authenticated_client: AsyncClient, test_db, test_user):
        generation = await add_generation(test_db, test_user, prompt="a cat")

        response = await authenticated_client.get(f"/api/generations/{generation.id}")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["message"] == "Generation retrieved successfully"
        data = body["data"]
        assert data["id"] == str(generation.id)
        assert data["status"] == "pending"
        assert data["phase"] == "generating"
        assert data["prompt"] == "a cat"
        assert data["file_ids"] is None
        assert data["result_urls"] is None

    @pytest.mark.asyncio
    async def test_poll_stalled(self, authenticated_client: AsyncClient, test_db, test_user):
        generation = await add_generation(test_db, test_user, updated_at=utcnow() - timedelta(hours=1))

        response = await authenticated_client.get(f"/api/generations/{generation.id}")

        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["phase"] == "stalled"

    @pytest.mark.asyncio
    async def test_poll_completed(self, authenticated_client: AsyncClient, test_db, test_user):
        file_ids = [str(uuid.uuid4()), str(uuid.uuid4())]
        generation = await add_generation(
            test_db, test_user, status=GenerationStatus.COMPLETED.value, file_ids=file_ids, generation_time=321
        )

        response = await authenticated_client.get(f"/api/generations/{generation.id}")

        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["file_ids"] == file_ids
        assert data["generation_time"] == 321
        assert [url.split("?")[0] for url in data["result_urls"]] == [f"/api/files/{i}" for i in file_ids]

    @pytest.mark.asyncio
    async def test_poll_failed(self, authenticated_client: AsyncClient, test_db, test_user):
        generation = await add_generation(
            test_db, test_user, status=GenerationStatus.FAILED.value, error_reason="CONFIG_ERROR"
        )

        response = await authenticated_client.get(f"/api/generations/{generation.id}")

        data = response.json()["data"]
        assert data["status"] == "failed"
        assert data["phase"] == "failed"
        assert data["error_reason"] == "CONFIG_ERROR"
        assert data["result_urls"] is None

    @pytest.mark.asyncio
    async def test_poll_missing_generation(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get(f"/api/generations/{uuid.uuid4()}")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "success"
        assert body["message"] == "Generation not found"
        assert body["data"] is None

    @pytest.mark.asyncio
    async def test_poll_other_users_generation(self, authenticated_client: AsyncClient, test_db, test_user_2):
        generation = await add_generation(test_db, test_user_2)

        response = await authenticated_client.get(f"/api/generations/{generation.id}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] is None

    @pytest.mark.asyncio
    async def test_poll_invalid_id(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get("/api/generations/not-a-uuid")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_poll_requires_auth(self, client: AsyncClient):
        response = await client.get(f"/api/generations/{uuid.uuid4()}")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_poll_unexpected_error_returns_error_envelope(self, authenticated_client: AsyncClient):
        with patch.object(GenerationService, "get_status", side_effect=RuntimeError("connection reset")):
            response = await authenticated_client.get(f"/api/generations/{uuid.uuid4()}")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        body = response.json()
        assert body["status"] == "error"
        assert body["message"] == "Failed to retrieve generation"
        assert body["data"] is None

    @pytest.mark.asyncio
    async def test_poll_app_error_keeps_its_status(self, authenticated_client: AsyncClient):
        with patch.object(GenerationService, "get_status", side_effect=NotFoundError("Generation store offline")):
            response = await authenticated_client.get(f"/api/generations/{uuid.uuid4()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "NOT_FOUND"
