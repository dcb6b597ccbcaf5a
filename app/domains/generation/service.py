"""Generation service: the persisted state machine behind assistant image turns.

Persisted states are ``pending``, ``completed`` and ``failed``. Whether a
pending generation is actively running is never stored; polling clients get a
derived ``phase`` instead.

    pending --mark_completed--> completed
    pending --mark_failed-----> failed
    completed|failed --reset_for_regeneration--> pending

Terminal writes are single-row updates keyed by id. A terminal write landing on
a record that is already terminal comes from a stale dispatch (the user
regenerated while it was in flight); it is logged and applied, so the last
writer wins.
"""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.exceptions.provider import InvalidGenerationTransitionError
from app.schemas.generation import GenerationPhase, GenerationResponse
from app.services.file_storage import FileStorageService
from models.base import utcnow
from models.generation import ErrorReason, GenerationStatus, MessageGeneration

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (GenerationStatus.COMPLETED.value, GenerationStatus.FAILED.value)


class GenerationService:
    """Service class for generation lifecycle transitions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_pending(
        self,
        user_id: UUID,
        prompt: str,
        provider: str,
        model: str,
    ) -> MessageGeneration:
        """Add a new pending generation to the session. The caller commits."""
        generation = MessageGeneration(
            user_id=user_id,
            type="image",
            prompt=prompt,
            provider=provider,
            model=model,
            status=GenerationStatus.PENDING.value,
        )
        self.db.add(generation)
        await self.db.flush()
        return generation

    async def get_generation(self, generation_id: UUID, user_id: UUID | None = None) -> MessageGeneration | None:
        conditions = [MessageGeneration.id == generation_id]
        if user_id is not None:
            conditions.append(MessageGeneration.user_id == user_id)
        # Pollers must see writes made by dispatches running in other sessions
        result = await self.db.execute(
            select(MessageGeneration)
            .where(and_(*conditions))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def is_stale(self, generation: MessageGeneration) -> bool:
        """A pending generation untouched for longer than the stale window has likely lost its dispatch."""
        window = timedelta(seconds=settings.generation_stale_after_seconds)
        return generation.updated_at is not None and utcnow() - generation.updated_at > window

    def reset_for_regeneration(self, generation: MessageGeneration, prompt: str | None = None) -> MessageGeneration:
        """Move a terminal (or stale pending) generation back to pending, clearing its results."""
        if generation.status == GenerationStatus.PENDING.value and not self.is_stale(generation):
            raise InvalidGenerationTransitionError(
                generation.status,
                GenerationStatus.PENDING.value,
                "Generation is still in progress",
            )

        generation.status = GenerationStatus.PENDING.value
        generation.file_ids = None
        generation.error_reason = None
        generation.generation_time = None
        generation.updated_at = utcnow()
        if prompt is not None:
            generation.prompt = prompt
        return generation

    async def mark_completed(
        self,
        generation_id: UUID,
        file_ids: list[str],
        generation_time: int | None,
    ) -> MessageGeneration | None:
        if not file_ids:
            raise InvalidGenerationTransitionError(
                GenerationStatus.PENDING.value,
                GenerationStatus.COMPLETED.value,
                "A completed generation needs at least one image",
            )

        generation = await self._load_for_terminal_write(generation_id, GenerationStatus.COMPLETED)
        if generation is None:
            return None
        generation.status = GenerationStatus.COMPLETED.value
        generation.file_ids = list(file_ids)
        generation.error_reason = None
        generation.generation_time = generation_time
        generation.updated_at = utcnow()
        await self.db.flush()
        return generation

    async def mark_failed(self, generation_id: UUID, reason: ErrorReason) -> MessageGeneration | None:
        generation = await self._load_for_terminal_write(generation_id, GenerationStatus.FAILED)
        if generation is None:
            return None
        generation.status = GenerationStatus.FAILED.value
        generation.file_ids = None
        generation.error_reason = ErrorReason(reason).value
        generation.generation_time = None
        generation.updated_at = utcnow()
        await self.db.flush()
        return generation

    async def _load_for_terminal_write(
        self, generation_id: UUID, target: GenerationStatus
    ) -> MessageGeneration | None:
        generation = await self.get_generation(generation_id)
        if generation is None:
            logger.warning(f"Generation {generation_id} vanished before it could be marked {target.value}")
            return None
        if generation.status in TERMINAL_STATUSES:
            logger.warning(
                f"Stale dispatch: generation {generation_id} is already {generation.status}, "
                f"overwriting with {target.value}"
            )
        return generation

    def phase_of(self, generation: MessageGeneration) -> GenerationPhase:
        if generation.status == GenerationStatus.COMPLETED.value:
            return GenerationPhase.COMPLETED
        if generation.status == GenerationStatus.FAILED.value:
            return GenerationPhase.FAILED
        return GenerationPhase.STALLED if self.is_stale(generation) else GenerationPhase.GENERATING

    def to_response(self, generation: MessageGeneration, file_service: FileStorageService) -> GenerationResponse:
        """Project a generation for clients, attaching signed result URLs."""
        result_urls = None
        if generation.file_ids:
            result_urls = [
                file_service.get_file_url(file_id, generation.user_id) for file_id in generation.file_ids
            ]
        return GenerationResponse(
            id=generation.id,
            created_at=generation.created_at,
            updated_at=generation.updated_at,
            user_id=generation.user_id,
            type=generation.type,
            prompt=generation.prompt,
            provider=generation.provider,
            model=generation.model,
            status=generation.status,
            phase=self.phase_of(generation),
            file_ids=generation.file_ids,
            error_reason=generation.error_reason,
            generation_time=generation.generation_time,
            result_urls=result_urls,
        )

    async def get_status(
        self,
        generation_id: UUID,
        user_id: UUID,
        file_service: FileStorageService,
    ) -> GenerationResponse | None:
        """Poll a generation. Returns None when it does not exist or belongs to someone else."""
        generation = await self.get_generation(generation_id, user_id)
        if generation is None:
            return None
        return self.to_response(generation, file_service)

    async def expire_stale(self) -> int:
        """Fail every pending generation older than the stale window. Returns how many were failed."""
        cutoff = utcnow() - timedelta(seconds=settings.generation_stale_after_seconds)
        result = await self.db.execute(
            select(MessageGeneration).where(
                and_(
                    MessageGeneration.status == GenerationStatus.PENDING.value,
                    MessageGeneration.updated_at < cutoff,
                )
            )
        )
        stale = result.scalars().all()
        for generation in stale:
            generation.status = GenerationStatus.FAILED.value
            generation.error_reason = ErrorReason.UNKNOWN.value
            generation.updated_at = utcnow()
        if stale:
            await self.db.commit()
            logger.info(f"Expired {len(stale)} stale generation(s)")
        return len(stale)
