"""Provider controller endpoints for per-user provider configuration."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_provider_registry, validate_token
from app.database import get_db
from app.domains.provider.service import ProviderSettingsService
from app.providers.registry import ProviderRegistry
from app.schemas.base import ResponseSchema
from app.schemas.provider import ProviderSettingsUpdate
from models.user import User

router = APIRouter(
    prefix="/api/providers",
    tags=["Providers"],
    dependencies=[Depends(validate_token)],
)


@router.get("", response_model=ResponseSchema)
async def list_providers(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """List every image provider with the current user's settings and enabled flag."""
    service = ProviderSettingsService(db, registry)
    providers = await service.list_providers(current_user.id)

    return ResponseSchema(
        status="success",
        message="Providers retrieved successfully",
        data={"providers": [provider.model_dump(mode="json") for provider in providers]},
    )


@router.get("/{provider_id}", response_model=ResponseSchema)
async def get_provider(
    provider_id: str = Path(..., description="Provider ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    service = ProviderSettingsService(db, registry)
    provider = await service.get_provider(provider_id, current_user.id)

    return ResponseSchema(
        status="success",
        message="Provider retrieved successfully",
        data=provider.model_dump(mode="json"),
    )


@router.put("/{provider_id}", response_model=ResponseSchema)
async def update_provider(
    update_data: ProviderSettingsUpdate,
    provider_id: str = Path(..., description="Provider ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """Update current user's settings for a provider.

    Values are stored as entered and checked against the provider's schema
    when a generation runs, so a bad key only fails that generation.
    """
    service = ProviderSettingsService(db, registry)
    provider = await service.update_provider(provider_id, current_user.id, update_data)

    return ResponseSchema(
        status="success",
        message="Provider settings updated successfully",
        data=provider.model_dump(mode="json"),
    )
