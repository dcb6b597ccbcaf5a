"""
Unit tests for the Celery generation tasks.

The task bodies are driven directly; the worker engine is swapped for the
test database's session factory.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from app.celery_app import GENERATION_SOFT_TIME_LIMIT, celery_app
from app.schemas.generation import GenerationJob
from app.tasks.generation_tasks import (
    _dispatch_async,
    _expire_stale_async,
    dispatch_generation_task,
    expire_stale_generations_task,
)
from models.base import utcnow
from models.generation import ErrorReason, GenerationStatus
from tests.factories import GenerationFactory


@pytest.fixture
def worker_sessions(session_factory):
    @asynccontextmanager
    async def factory():
        yield session_factory

    with patch("app.tasks.generation_tasks.worker_session_factory", factory):
        yield


def make_job(generation, **overrides) -> GenerationJob:
    data = {
        "generation_id": generation.id,
        "user_id": generation.user_id,
        "chat_id": uuid.uuid4(),
        "prompt": generation.prompt,
        "provider_id": "fake",
        "model_id": "fake-t2i",
        **overrides,
    }
    return GenerationJob(**data)


class TestCeleryApp:
    def test_generation_tasks_registered(self):
        assert "app.tasks.generation_tasks.dispatch_generation_task" in celery_app.tasks
        assert "app.tasks.generation_tasks.expire_stale_generations_task" in celery_app.tasks

    def test_time_limits_cover_flux_polling(self):
        assert celery_app.conf.task_soft_time_limit == GENERATION_SOFT_TIME_LIMIT
        assert celery_app.conf.task_time_limit > GENERATION_SOFT_TIME_LIMIT
        assert "expire-stale-generations" in celery_app.conf.beat_schedule


class TestDispatchTask:
    def test_task_validates_payload_and_runs(self):
        job = GenerationJob(
            generation_id=uuid.uuid4(),
            user_id=uuid.uuid4(),
            chat_id=uuid.uuid4(),
            prompt="a cat",
            provider_id="fake",
            model_id="fake-t2i",
        )

        with patch("app.tasks.generation_tasks._dispatch_async", new=AsyncMock()) as run:
            result = dispatch_generation_task(job.model_dump(mode="json"))

        assert result == {"generation_id": str(job.generation_id)}
        run.assert_awaited_once_with(job)

    @pytest.mark.asyncio
    async def test_dispatch_completes_generation(
        self, worker_sessions, registry, test_db, test_user, fake_provider_settings
    ):
        generation = GenerationFactory(user_id=test_user.id, model="fake-t2i")
        test_db.add(generation)
        await test_db.commit()

        with patch("app.tasks.generation_tasks.get_provider_registry", return_value=registry):
            await _dispatch_async(make_job(generation))

        await test_db.refresh(generation)
        assert generation.status == GenerationStatus.COMPLETED.value
        assert len(generation.file_ids) == 1

    @pytest.mark.asyncio
    async def test_dispatch_records_config_invalid(self, worker_sessions, registry, test_db, test_user):
        generation = GenerationFactory(user_id=test_user.id, model="fake-t2i")
        test_db.add(generation)
        await test_db.commit()

        with patch("app.tasks.generation_tasks.get_provider_registry", return_value=registry):
            await _dispatch_async(make_job(generation))

        await test_db.refresh(generation)
        assert generation.status == GenerationStatus.FAILED.value
        assert generation.error_reason == ErrorReason.CONFIG_INVALID.value


class TestExpireStaleTask:
    def test_task_reports_count(self):
        with patch("app.tasks.generation_tasks._expire_stale_async", new=AsyncMock(return_value=2)):
            assert expire_stale_generations_task() == {"expired": 2}

    @pytest.mark.asyncio
    async def test_sweep_fails_stale_pending(self, worker_sessions, test_db, test_user):
        stale = GenerationFactory(user_id=test_user.id, updated_at=utcnow() - timedelta(hours=2))
        fresh = GenerationFactory(user_id=test_user.id)
        test_db.add_all([stale, fresh])
        await test_db.commit()

        assert await _expire_stale_async() == 1

        await test_db.refresh(stale)
        await test_db.refresh(fresh)
        assert stale.error_reason == ErrorReason.UNKNOWN.value
        assert fresh.status == GenerationStatus.PENDING.value
