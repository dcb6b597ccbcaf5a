"""Celery tasks for image generation."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import all models to ensure they're registered before creating session
import models  # noqa: F401

from app.celery_app import celery_app
from app.core.config import DispatchModeEnum
from app.database import engine_options, resolve_database_url
from app.domains.generation.dispatcher import GenerationDispatcher
from app.domains.generation.service import GenerationService
from app.providers.registry import get_provider_registry
from app.schemas.generation import GenerationJob

logger = logging.getLogger(__name__)


@asynccontextmanager
async def worker_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Session factory on an engine owned by the current event loop.

    Each task runs under its own ``asyncio.run`` loop, so the engine cannot be
    shared across tasks.
    """
    url = resolve_database_url()
    engine = create_async_engine(url, **engine_options(url))
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@celery_app.task(name="app.tasks.generation_tasks.dispatch_generation_task", bind=True, acks_late=True)
def dispatch_generation_task(self, job_data: dict[str, Any]) -> dict[str, Any]:
    """Run one generation dispatch on the worker.

    Failures are recorded on the generation by the dispatcher itself, so the
    task does not retry.
    """
    job = GenerationJob.model_validate(job_data)
    logger.info(f"🚀 Dispatching generation {job.generation_id} (Task ID: {self.request.id})")
    asyncio.run(_dispatch_async(job))
    return {"generation_id": str(job.generation_id)}


async def _dispatch_async(job: GenerationJob) -> None:
    async with worker_session_factory() as session_factory:
        dispatcher = GenerationDispatcher(
            session_factory, get_provider_registry(), mode=DispatchModeEnum.task
        )
        await dispatcher.run(job)


@celery_app.task(name="app.tasks.generation_tasks.expire_stale_generations_task", bind=True)
def expire_stale_generations_task(self) -> dict[str, Any]:
    """Fail generations stuck in pending past the stale window.

    Recovers records whose dispatch was lost along with its process.
    """
    logger.info(f"🧹 Expiring stale generations (Task ID: {self.request.id})")

    try:
        expired = asyncio.run(_expire_stale_async())
        logger.info(f"✅ Expired {expired} stale generation(s)")
        return {"expired": expired}
    except Exception as e:
        logger.error(f"❌ Stale generation sweep failed: {str(e)}")
        raise self.retry(exc=e, countdown=60, max_retries=3)


async def _expire_stale_async() -> int:
    async with worker_session_factory() as session_factory:
        async with session_factory() as session:
            return await GenerationService(session).expire_stale()
