"""Signed file download endpoint.

Image URLs handed to clients carry a short-lived token instead of requiring
the bearer header, so they can be used directly as ``<img src>``.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import verify_file_token
from app.database import get_db
from app.exceptions.chat import FileNotFoundInStoreError
from app.services.file_storage import FileStorageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("/{file_id}")
async def download_file(
    file_id: UUID = Path(..., description="File ID"),
    token: str = Query(..., description="Signed access token from the file URL"),
    db: AsyncSession = Depends(get_db),
):
    user_id = verify_file_token(token, file_id)
    if user_id is None:
        logger.debug(f"Rejected file token for {file_id}")
        raise FileNotFoundInStoreError()

    file, path = await FileStorageService(db).open_file(file_id, user_id)
    return FileResponse(
        path,
        media_type=file.mime_type or "application/octet-stream",
        filename=file.filename,
        content_disposition_type="inline",
        headers={"Cache-Control": "private, max-age=3600"},
    )
