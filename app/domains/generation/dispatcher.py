"""Background dispatcher for image generations.

A dispatch resolves reference images, calls the provider and records the
terminal state, in a database session of its own because it outlives the
request that scheduled it. Every failure is caught here and stored on the
generation as a reason code; clients that already received ``pending`` learn
about it by polling.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.background import BackgroundTasks

from app.core.config import DispatchModeEnum, settings
from app.domains.generation.references import ReferenceImageResolver
from app.domains.generation.service import GenerationService
from app.domains.provider.service import ProviderSettingsService
from app.exceptions.provider import ProviderConfigInvalidError
from app.providers.base import GenerateRequest
from app.providers.registry import ProviderRegistry
from app.schemas.generation import GenerationJob
from app.services.file_storage import FileStorageService
from models.generation import ErrorReason

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class GenerationDispatcher:
    """Runs generations outside the request/response cycle."""

    def __init__(
        self,
        session_factory: SessionFactory,
        registry: ProviderRegistry,
        mode: DispatchModeEnum | None = None,
        storage_root: str | Path | None = None,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.mode = mode or settings.generation_dispatch_mode
        self.storage_root = storage_root
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, job: GenerationJob, background_tasks: BackgroundTasks | None = None) -> None:
        """Start ``job`` without waiting for it. The caller has already committed the pending record."""
        if self.mode == DispatchModeEnum.celery:
            from app.tasks.generation_tasks import dispatch_generation_task

            dispatch_generation_task.delay(job.model_dump(mode="json"))
            logger.info(f"Queued generation {job.generation_id} on the worker")
            return

        if self.mode == DispatchModeEnum.deferred and background_tasks is not None:
            background_tasks.add_task(self.run, job)
            logger.debug(f"Deferred generation {job.generation_id} until after the response")
            return

        task = asyncio.create_task(self.run(job), name=f"generation-{job.generation_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Started generation {job.generation_id} as a background task")

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight task-mode dispatch to finish."""
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} in-flight generation(s)")
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def run(self, job: GenerationJob) -> None:
        """Resolve, generate and record the terminal state. Never raises."""
        try:
            async with self.session_factory() as db:
                try:
                    await self._execute(db, job)
                except Exception as e:
                    reason = (
                        ErrorReason.CONFIG_INVALID
                        if isinstance(e, ProviderConfigInvalidError)
                        else ErrorReason.UNKNOWN
                    )
                    logger.exception(f"Error generating image for generation {job.generation_id}: {e}")
                    await self._record_failure(db, job, reason)
        except Exception as e:
            # No session to record the failure with; the stale sweep fails the record later
            logger.exception(f"Database session unavailable for generation {job.generation_id}: {e}")

    async def _execute(self, db: AsyncSession, job: GenerationJob) -> None:
        generations = GenerationService(db)
        file_service = FileStorageService(db, self.storage_root)

        provider = self.registry.get(job.provider_id)
        model = provider.find_model(job.model_id)
        provider_settings = await ProviderSettingsService(db, self.registry).get_effective_settings(
            job.provider_id, job.user_id
        )
        images = await ReferenceImageResolver(db, file_service).resolve(
            chat_id=job.chat_id,
            user_id=job.user_id,
            model=model,
            user_images=job.user_images,
            exclude_message_id=job.exclude_message_id,
        )

        request = GenerateRequest(
            provider_id=job.provider_id,
            model_id=job.model_id,
            prompt=job.prompt,
            images=images,
        )
        started = time.perf_counter()
        result = await provider.generate(request, provider_settings)
        generation_time = int((time.perf_counter() - started) * 1000)

        if result.error_reason:
            logger.warning(f"Generation {job.generation_id} refused by {job.provider_id}: {result.error_reason}")
            await generations.mark_failed(job.generation_id, result.error_reason)
        elif not result.images:
            logger.error(f"Generation {job.generation_id}: {job.provider_id} returned no images")
            await generations.mark_failed(job.generation_id, ErrorReason.UNKNOWN)
        else:
            file_ids = await file_service.save_files(result.images, job.user_id)
            await generations.mark_completed(job.generation_id, file_ids, generation_time)
            logger.info(
                f"✅ Generation {job.generation_id} completed with {len(file_ids)} image(s) in {generation_time}ms"
            )
        await db.commit()

    async def _record_failure(self, db: AsyncSession, job: GenerationJob, reason: ErrorReason) -> None:
        try:
            await db.rollback()
            await GenerationService(db).mark_failed(job.generation_id, reason)
            await db.commit()
        except Exception as e:
            # Nothing left to tell; the stale sweep fails the record later
            logger.exception(f"Could not record failure for generation {job.generation_id}: {e}")
