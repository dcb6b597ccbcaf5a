"""Reference-image resolution for image-to-image turns."""

import logging
from uuid import UUID

from sqlalchemy import and_, desc, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.providers.base import Ability, ModelDescriptor
from app.services.file_storage import FileStorageService
from models.message import Message, MessageRole, MessageType

logger = logging.getLogger(__name__)


def select_reference_file_ids(file_ids: list[str] | None, max_images: int | None) -> list[str]:
    """Pick the last ``max_images`` (default 1) result ids, oldest first."""
    if not file_ids:
        return []
    return list(file_ids[-(max_images or 1):])


class ReferenceImageResolver:
    """Decides which images accompany a generation request.

    Images the user uploaded with the turn always win. Otherwise, for models
    that can edit, the newest assistant image in the chat that actually has
    results is carried forward.
    """

    def __init__(self, db: AsyncSession, file_service: FileStorageService):
        self.db = db
        self.file_service = file_service

    async def resolve(
        self,
        chat_id: UUID,
        user_id: UUID,
        model: ModelDescriptor,
        user_images: list[str] | None = None,
        exclude_message_id: UUID | None = None,
    ) -> list[str] | None:
        if user_images:
            return list(user_images)
        if model.ability == Ability.T2I:
            return None

        file_ids = await self._latest_result_file_ids(chat_id, exclude_message_id)
        selected = select_reference_file_ids(file_ids, model.max_input_images)
        if not selected:
            return None

        images = []
        for file_id in selected:
            data = await self.file_service.read_file(file_id, user_id)
            if data is None:
                logger.warning(f"Reference image {file_id} is missing, skipping it")
                continue
            images.append(data)
        return images or None

    async def _latest_result_file_ids(self, chat_id: UUID, exclude_message_id: UUID | None) -> list[str]:
        conditions = [
            Message.chat_id == chat_id,
            Message.role == MessageRole.ASSISTANT,
            Message.type == MessageType.IMAGE,
        ]
        if exclude_message_id is not None:
            conditions.append(Message.id != exclude_message_id)

        stmt = (
            select(Message)
            .options(selectinload(Message.generation))
            .where(and_(*conditions))
            .order_by(desc(Message.created_at))
        )
        result = await self.db.execute(stmt)
        for message in result.scalars():
            if message.generation is not None and message.generation.file_ids:
                return list(message.generation.file_ids)
        return []
