"""
Unit tests for Main Application module.

This module contains unit tests for the FastAPI application factory,
middleware, exception handlers, health endpoint and lifecycle.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.main import app, create_app, lifespan


class TestAppCreation:
    """Test cases for FastAPI application creation."""

    def test_create_app_returns_fastapi_instance(self):
        """Test that create_app returns a configured FastAPI instance."""
        test_app = create_app()

        assert test_app.title == settings.app_name
        assert test_app.version == settings.version

    def test_docs_disabled_outside_development(self):
        """Docs are only served in development; the suite runs as testing."""
        test_app = create_app()

        assert test_app.docs_url is None
        assert test_app.redoc_url is None

    def test_app_components_setup(self):
        """Test that all app components are set up correctly."""
        with patch("app.main.setup_middleware") as mock_middleware:
            with patch("app.main.setup_exception_handlers") as mock_handlers:
                with patch("app.main.setup_routers") as mock_routers:
                    test_app = create_app()

                    mock_middleware.assert_called_once_with(test_app)
                    mock_handlers.assert_called_once_with(test_app)
                    mock_routers.assert_called_once_with(test_app)

    def test_routes_registered(self):
        paths = {route.path for route in app.routes}

        assert "/api/chats" in paths
        assert "/api/chats/{chat_id}/messages" in paths
        assert "/api/messages/{message_id}/regenerate" in paths
        assert "/api/generations/{generation_id}" in paths
        assert "/api/providers" in paths
        assert "/api/files/{file_id}" in paths
        assert "/health" in paths


class TestMiddleware:
    """Test cases for application middleware."""

    @pytest.mark.asyncio
    async def test_request_id_middleware(self, client: AsyncClient):
        """Every response carries a fresh request id."""
        first = await client.get("/")
        second = await client.get("/")

        assert "X-Request-ID" in first.headers
        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_cors_preflight(self, client: AsyncClient):
        origin = settings.allowed_origins_list[0]

        response = await client.options(
            "/api/chats",
            headers={"Origin": origin, "Access-Control-Request-Method": "POST"},
        )

        assert response.headers.get("access-control-allow-origin") == origin


class TestExceptionHandlers:
    """Test cases for global exception handlers."""

    @pytest.mark.asyncio
    async def test_http_exception_handler(self, client: AsyncClient):
        response = await client.get("/does-not-exist")

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == "error"
        assert body["error_code"] == "HTTP_ERROR"
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_app_exception_keeps_error_code(self, authenticated_client: AsyncClient):
        """Structured application errors keep their code in the envelope."""
        response = await authenticated_client.get("/api/providers/midjourney")

        assert response.status_code == 404
        assert response.json()["error_code"] == "PROVIDER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_validation_exception_handler(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post("/api/chats", json={"title": "no provider"})

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert any(error["loc"][-1] == "provider" for error in body["details"])


class TestHealthEndpoint:
    """Test cases for the health endpoint."""

    @pytest.mark.asyncio
    async def test_health_check_success(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["database"] == "healthy"
        assert body["services"]["dispatcher"]["mode"] == settings.generation_dispatch_mode.value
        assert body["services"]["dispatcher"]["in_flight"] == 0

    @pytest.mark.asyncio
    async def test_health_check_with_database_error(self, client: AsyncClient):
        with patch("app.main.AsyncSessionLocal", side_effect=Exception("database down")):
            response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"
        assert response.json()["services"]["database"] == "unhealthy"


class TestRootEndpoint:
    @pytest.mark.asyncio
    async def test_root_endpoint(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == settings.app_name
        assert body["version"] == settings.version
        assert body["docs_url"] is None


class TestApplicationLifespan:
    """Test cases for startup and shutdown."""

    @pytest.mark.asyncio
    async def test_lifespan_drains_dispatcher_on_shutdown(self):
        dispatcher = AsyncMock()
        with patch("app.main.get_generation_dispatcher", return_value=dispatcher):
            with patch("app.main.engine") as mock_engine:
                mock_engine.dispose = AsyncMock()
                async with lifespan(app):
                    dispatcher.drain.assert_not_called()

        dispatcher.drain.assert_awaited_once()
        mock_engine.dispose.assert_awaited_once()
