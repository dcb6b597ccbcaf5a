"""Chat and message API controllers with FastAPI endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Path, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import (
    get_current_user,
    get_db,
    get_generation_dispatcher,
    get_provider_registry,
    validate_token,
)
from app.domains.chat.service import ChatService
from app.domains.generation.dispatcher import GenerationDispatcher
from app.exceptions.base import BaseAppException
from app.providers.registry import ProviderRegistry
from app.schemas.base import ResponseSchema
from app.schemas.chat import ChatCreate, ChatListResponse, ChatResponse, ChatUpdate, MessageCreate
from app.shared.pagination import PaginationParams
from models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/chats",
    tags=["chats"],
    dependencies=[Depends(validate_token)],
)

message_router = APIRouter(
    prefix="/api/messages",
    tags=["messages"],
    dependencies=[Depends(validate_token)],
)


def _server_error(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ResponseSchema(status="error", message=message, data=None).model_dump(),
    )


@router.post("", response_model=ResponseSchema, status_code=201)
async def create_chat(
    _request: Request,
    background_tasks: BackgroundTasks,
    chat_data: ChatCreate = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
    dispatcher: GenerationDispatcher = Depends(get_generation_dispatcher),
):
    """Create a chat, optionally posting its first message.

    Returns:
        The new chat id and, when a first message was given, the user turn and
        the pending assistant turn
    """
    try:
        service = ChatService(db, registry, dispatcher, background_tasks)
        result = await service.create_chat(chat_data, current_user.id)

        return ResponseSchema(
            status="success",
            message="Chat created successfully",
            data=result.model_dump(mode="json"),
        )
    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error creating chat: {str(e)}")
        return _server_error("Failed to create chat")


@router.get("", response_model=ResponseSchema)
async def get_chats(
    _request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """Get the current user's chats, newest first."""
    try:
        service = ChatService(db, registry)
        result = await service.get_chats(current_user.id, PaginationParams(page=page, size=size))

        chats = ChatListResponse(
            chats=[ChatResponse.model_validate(chat) for chat in result.items],
            total=result.total,
            page=result.page,
            size=result.size,
            has_next=result.has_next,
            has_prev=result.has_prev,
        )
        return ResponseSchema(
            status="success",
            message="Chats retrieved successfully",
            data=chats.model_dump(mode="json"),
        )
    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Error retrieving chats: {str(e)}")
        return _server_error("Failed to retrieve chats")


@router.get("/{chat_id}", response_model=ResponseSchema)
async def get_chat(
    _request: Request,
    chat_id: UUID = Path(..., description="Chat ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """Get a chat with all messages, attachment URLs and generation results."""
    service = ChatService(db, registry)
    chat = await service.get_chat_by_id(chat_id, current_user.id)

    return ResponseSchema(
        status="success",
        message="Chat retrieved successfully",
        data=chat.model_dump(mode="json"),
    )


@router.patch("/{chat_id}", response_model=ResponseSchema)
async def update_chat(
    _request: Request,
    chat_id: UUID = Path(..., description="Chat ID"),
    chat_data: ChatUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """Rename a chat or change its default provider and model."""
    service = ChatService(db, registry)
    chat = await service.update_chat(chat_id, chat_data, current_user.id)

    return ResponseSchema(
        status="success",
        message="Chat updated successfully",
        data=chat.model_dump(mode="json"),
    )


@router.delete("/{chat_id}", response_model=ResponseSchema)
async def delete_chat(
    _request: Request,
    chat_id: UUID = Path(..., description="Chat ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """Delete a chat. The chat is hidden, not erased."""
    service = ChatService(db, registry)
    await service.delete_chat(chat_id, current_user.id)

    return ResponseSchema(status="success", message="Chat deleted successfully", data=None)


@router.post("/{chat_id}/messages", response_model=ResponseSchema, status_code=201)
async def create_message(
    _request: Request,
    background_tasks: BackgroundTasks,
    chat_id: UUID = Path(..., description="Chat ID"),
    message_data: MessageCreate = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
    dispatcher: GenerationDispatcher = Depends(get_generation_dispatcher),
):
    """Send a prompt. The assistant turn comes back immediately with a pending generation.

    Args:
        chat_id: Chat to post into
        message_data: Prompt, provider/model and optional image attachments

    Returns:
        The user message followed by the assistant message
    """
    try:
        service = ChatService(db, registry, dispatcher, background_tasks)
        result = await service.create_message(chat_id, message_data, current_user.id)

        return ResponseSchema(
            status="success",
            message="Message sent successfully",
            data=result.model_dump(mode="json"),
        )
    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error sending message: {str(e)}")
        return _server_error("An unexpected error occurred")


@message_router.delete("/{message_id}", response_model=ResponseSchema)
async def delete_message(
    _request: Request,
    message_id: UUID = Path(..., description="Message ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """Delete a message along with its attachments and generation."""
    service = ChatService(db, registry)
    await service.delete_message(message_id, current_user.id)

    return ResponseSchema(status="success", message="Message deleted successfully", data=None)


@message_router.post("/{message_id}/regenerate", response_model=ResponseSchema)
async def regenerate_message(
    _request: Request,
    background_tasks: BackgroundTasks,
    message_id: UUID = Path(..., description="Assistant message ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
    dispatcher: GenerationDispatcher = Depends(get_generation_dispatcher),
):
    """Run an assistant image turn's generation again."""
    try:
        service = ChatService(db, registry, dispatcher, background_tasks)
        result = await service.regenerate_message(message_id, current_user.id)

        return ResponseSchema(
            status="success",
            message="Regeneration started",
            data=result.model_dump(mode="json"),
        )
    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error regenerating message: {str(e)}")
        return _server_error("Failed to regenerate message")
