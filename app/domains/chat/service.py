"""Chat service layer: conversations whose assistant turns are image generations."""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import and_, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from starlette.background import BackgroundTasks

from app.core.config import settings
from app.domains.generation.dispatcher import GenerationDispatcher
from app.domains.generation.service import GenerationService
from app.domains.provider.service import ProviderSettingsService
from app.exceptions.base import InvalidParameterError
from app.exceptions.chat import ChatNotFoundError, MessageNotFoundError
from app.exceptions.provider import (
    InvalidGenerationTransitionError,
    ModelNotFoundError,
    ProviderNotFoundError,
)
from app.providers.registry import ProviderRegistry
from app.schemas.chat import (
    AttachmentResponse,
    ChatCreate,
    ChatDetailResponse,
    ChatResponse,
    ChatUpdate,
    CreateChatResponse,
    CreateMessageResponse,
    MessageCreate,
    MessageResponse,
    RegenerateResponse,
)
from app.schemas.generation import GenerationJob, GenerationResponse
from app.services.file_storage import FileStorageService
from app.shared.pagination import Page, PaginationParams, paginate
from models.base import utcnow
from models.chat import Chat
from models.message import Message, MessageRole, MessageType
from models.message_attachment import MessageAttachment

logger = logging.getLogger(__name__)


class ChatService:
    """Service class for chat, message and regeneration operations."""

    def __init__(
        self,
        db: AsyncSession,
        registry: ProviderRegistry,
        dispatcher: GenerationDispatcher | None = None,
        background_tasks: BackgroundTasks | None = None,
    ):
        """Initialize chat service.

        Args:
            db: Async database session for data operations.
            registry: Provider registry used to validate provider/model pairs.
            dispatcher: Starts generations after their pending records are committed.
            background_tasks: Request-scoped tasks for deferred dispatch, when available.
        """
        self.db = db
        self.registry = registry
        self.dispatcher = dispatcher
        self.background_tasks = background_tasks
        self.file_service = FileStorageService(db)
        self.generations = GenerationService(db)
        self.provider_settings = ProviderSettingsService(db, registry)

    # ----- Chats -----

    async def create_chat(self, data: ChatCreate, user_id: UUID) -> CreateChatResponse:
        """Create a chat; when ``content`` is given, also post it as the first turn."""
        self._validate_model(data.provider, data.model)

        chat = Chat(user_id=user_id, title=data.title, provider=data.provider, model=data.model)
        try:
            self.db.add(chat)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

        messages: list[MessageResponse] = []
        if data.content:
            first_turn = MessageCreate(
                content=data.content,
                type=MessageType.TEXT,
                provider=data.provider,
                model=data.model,
                attachments=data.attachments,
                images=data.images,
            )
            messages = (await self.create_message(chat.id, first_turn, user_id)).messages

        logger.info(f"Created chat {chat.id} for user {user_id}")
        return CreateChatResponse(id=chat.id, messages=messages)

    async def get_chats(self, user_id: UUID, pagination: PaginationParams | None = None) -> Page:
        """List the user's chats that are not deleted, newest first."""
        stmt = (
            select(Chat)
            .where(and_(Chat.user_id == user_id, Chat.deleted.is_(False)))
            .order_by(desc(Chat.created_at))
        )
        return await paginate(self.db, stmt, pagination or PaginationParams())

    async def get_chat_by_id(self, chat_id: UUID, user_id: UUID) -> ChatDetailResponse:
        """Get a chat with its messages, attachment URLs and generation result URLs.

        Raises:
            ChatNotFoundError: If the chat is missing, deleted, or not the user's
        """
        stmt = (
            select(Chat)
            .options(
                selectinload(Chat.messages).selectinload(Message.generation),
                selectinload(Chat.messages).selectinload(Message.attachments),
            )
            .where(and_(Chat.id == chat_id, Chat.user_id == user_id, Chat.deleted.is_(False)))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        chat = result.scalar_one_or_none()
        if not chat:
            raise ChatNotFoundError()

        return ChatDetailResponse(
            id=chat.id,
            created_at=chat.created_at,
            updated_at=chat.updated_at,
            user_id=chat.user_id,
            title=chat.title,
            provider=chat.provider,
            model=chat.model,
            messages=[
                self._message_response(message, message.attachments, message.generation)
                for message in chat.messages
            ],
        )

    async def update_chat(self, chat_id: UUID, data: ChatUpdate, user_id: UUID) -> ChatResponse:
        chat = await self._get_owned_chat(chat_id, user_id)

        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if "provider" in update_data or "model" in update_data:
            self._validate_model(
                update_data.get("provider", chat.provider), update_data.get("model", chat.model)
            )

        try:
            for field, value in update_data.items():
                setattr(chat, field, value)
            await self.db.commit()
            await self.db.refresh(chat)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e
        return ChatResponse.model_validate(chat)

    async def delete_chat(self, chat_id: UUID, user_id: UUID) -> None:
        """Soft-delete a chat; it disappears from listings but its rows stay."""
        chat = await self._get_owned_chat(chat_id, user_id)
        try:
            chat.deleted = True
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    # ----- Messages -----

    async def create_message(self, chat_id: UUID, data: MessageCreate, user_id: UUID) -> CreateMessageResponse:
        """Post a user turn and start generating the assistant image turn.

        The user message, its attachments, the pending generation and the
        assistant message are committed together before the generation is
        scheduled, so the dispatcher always finds its record.

        Raises:
            ChatNotFoundError: If the chat is missing, deleted, or not the user's
            InvalidParameterError: For an unknown or disabled provider/model, or bad attachments
        """
        chat = await self._get_owned_chat(chat_id, user_id)
        self._validate_model(data.provider, data.model)
        if not await self.provider_settings.is_enabled(data.provider, user_id):
            raise InvalidParameterError(f"Provider {data.provider} is disabled")

        user_images = data.user_images
        if user_images and len(user_images) > settings.max_attachments_per_message:
            raise InvalidParameterError(
                f"At most {settings.max_attachments_per_message} images can be attached to a message"
            )

        now = utcnow()
        try:
            user_message = Message(
                user_id=user_id,
                chat_id=chat.id,
                role=MessageRole.USER,
                type=data.type,
                content=data.content,
                created_at=now,
                updated_at=now,
            )
            self.db.add(user_message)
            await self.db.flush()

            attachments = []
            if data.attachments:
                file_ids = await self.file_service.save_files(user_images, user_id)
                for file_id in file_ids:
                    attachment = MessageAttachment(message_id=user_message.id, file_id=UUID(file_id), type="image")
                    self.db.add(attachment)
                    attachments.append(attachment)

            chat.updated_at = now
            generation = await self.generations.create_pending(
                user_id=user_id, prompt=data.content, provider=data.provider, model=data.model
            )
            assistant_message = Message(
                user_id=user_id,
                chat_id=chat.id,
                role=MessageRole.ASSISTANT,
                type=MessageType.IMAGE,
                content="",
                generation_id=generation.id,
                # Keeps the pair ordered even within one clock tick
                created_at=now + timedelta(microseconds=1),
                updated_at=now,
            )
            self.db.add(assistant_message)
            await self.db.commit()
        except (SQLAlchemyError, InvalidParameterError) as e:
            await self.db.rollback()
            raise e

        self._schedule(
            GenerationJob(
                generation_id=generation.id,
                user_id=user_id,
                chat_id=chat.id,
                prompt=data.content,
                provider_id=data.provider,
                model_id=data.model,
                user_images=user_images,
                exclude_message_id=assistant_message.id,
            )
        )

        return CreateMessageResponse(
            messages=[
                self._message_response(user_message, attachments, None),
                self._message_response(assistant_message, [], generation),
            ]
        )

    async def delete_message(self, message_id: UUID, user_id: UUID) -> None:
        """Delete a message with its attachments and generation.

        Raises:
            MessageNotFoundError: If the message is missing or not the user's
        """
        message = await self._get_owned_message(message_id, user_id)
        if not message:
            raise MessageNotFoundError()

        chat = await self.db.get(Chat, message.chat_id)
        try:
            generation = message.generation
            await self.db.delete(message)
            if generation is not None:
                await self.db.delete(generation)
            if chat is not None:
                chat.updated_at = utcnow()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e
        logger.info(f"Deleted message {message_id}")

    # ----- Generations -----

    async def get_generation_status(self, generation_id: UUID, user_id: UUID) -> GenerationResponse | None:
        return await self.generations.get_status(generation_id, user_id, self.file_service)

    async def regenerate_message(self, message_id: UUID, user_id: UUID) -> RegenerateResponse:
        """Reset an assistant image turn's generation to pending and dispatch it again.

        The same generation row is reused. A dispatch still in flight for the
        previous attempt is not cancelled; whichever finishes last is recorded.

        Raises:
            MessageNotFoundError: If the message is not the user's assistant image turn
            InvalidParameterError: If it has no generation or one is still running
        """
        message = await self._get_owned_message(message_id, user_id)
        if not message or message.role != MessageRole.ASSISTANT or message.type != MessageType.IMAGE:
            raise MessageNotFoundError("Message not found or not regeneratable")
        generation = message.generation
        if generation is None:
            raise InvalidParameterError("Message has no generation to regenerate")

        chat = await self._get_owned_chat(message.chat_id, user_id)
        try:
            self.generations.reset_for_regeneration(generation)
        except InvalidGenerationTransitionError as e:
            raise InvalidParameterError(e.message, details=e.details) from e

        try:
            message.content = ""
            chat.updated_at = utcnow()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

        self._schedule(
            GenerationJob(
                generation_id=generation.id,
                user_id=user_id,
                chat_id=chat.id,
                prompt=generation.prompt,
                provider_id=generation.provider,
                model_id=generation.model,
                user_images=None,
                exclude_message_id=message.id,
            )
        )
        logger.info(f"Regenerating message {message_id} (generation {generation.id})")
        return RegenerateResponse(message_id=message.id, generation_id=generation.id)

    # ----- Helpers -----

    def _validate_model(self, provider_id: str, model_id: str) -> None:
        try:
            self.registry.find_model(provider_id, model_id)
        except (ProviderNotFoundError, ModelNotFoundError) as e:
            raise InvalidParameterError(e.message, details={"provider": provider_id, "model": model_id}) from e

    def _schedule(self, job: GenerationJob) -> None:
        if self.dispatcher is None:
            raise RuntimeError("ChatService needs a dispatcher to start generations")
        self.dispatcher.schedule(job, self.background_tasks)

    async def _get_owned_chat(self, chat_id: UUID, user_id: UUID) -> Chat:
        result = await self.db.execute(
            select(Chat).where(and_(Chat.id == chat_id, Chat.user_id == user_id, Chat.deleted.is_(False)))
        )
        chat = result.scalar_one_or_none()
        if not chat:
            raise ChatNotFoundError()
        return chat

    async def _get_owned_message(self, message_id: UUID, user_id: UUID) -> Message | None:
        result = await self.db.execute(
            select(Message)
            .options(selectinload(Message.generation), selectinload(Message.attachments))
            .where(and_(Message.id == message_id, Message.user_id == user_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _message_response(self, message: Message, attachments, generation) -> MessageResponse:
        return MessageResponse(
            id=message.id,
            created_at=message.created_at,
            updated_at=message.updated_at,
            chat_id=message.chat_id,
            role=message.role,
            type=message.type,
            content=message.content,
            generation_id=message.generation_id,
            generation=self.generations.to_response(generation, self.file_service) if generation else None,
            attachments=[
                AttachmentResponse(
                    id=attachment.id,
                    type=attachment.type,
                    url=self.file_service.get_file_url(attachment.file_id, message.user_id),
                )
                for attachment in attachments
            ],
        )
