"""Generation status API controller."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db, validate_token
from app.domains.generation.service import GenerationService
from app.exceptions.base import BaseAppException
from app.schemas.base import ResponseSchema
from app.services.file_storage import FileStorageService
from models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/generations",
    tags=["generations"],
    dependencies=[Depends(validate_token)],
)


@router.get("/{generation_id}", response_model=ResponseSchema)
async def get_generation_status(
    _request: Request,
    generation_id: UUID = Path(..., description="Generation ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Poll a generation until it reaches ``completed`` or ``failed``.

    A generation that does not exist, or belongs to another user, yields
    ``data: null`` rather than an error so pollers can stop quietly.
    """
    try:
        service = GenerationService(db)
        result = await service.get_status(generation_id, current_user.id, FileStorageService(db))

        if result is None:
            return ResponseSchema(status="success", message="Generation not found", data=None)

        return ResponseSchema(
            status="success",
            message="Generation retrieved successfully",
            data=result.model_dump(mode="json"),
        )
    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Error retrieving generation {generation_id}: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ResponseSchema(status="error", message="Failed to retrieve generation", data=None).model_dump(),
        )
