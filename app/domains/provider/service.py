# app/domains/provider/service.py
"""Provider settings service for managing per-user provider configuration."""

from typing import Any
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions.base import InvalidParameterError
from app.providers.base import AiProvider
from app.providers.registry import ProviderRegistry
from app.schemas.provider import (
    ProviderModelResponse,
    ProviderResponse,
    ProviderSettingResponse,
    ProviderSettingsUpdate,
)
from models import ProviderSettings


class ProviderSettingsService:
    """Service for reading and updating a user's provider configuration."""

    def __init__(self, db: AsyncSession, registry: ProviderRegistry):
        """Initialize service with a database session and the provider registry."""
        self.db = db
        self.registry = registry

    async def get_record(self, provider_id: str, user_id: UUID) -> ProviderSettings | None:
        result = await self.db.execute(
            select(ProviderSettings).where(
                and_(ProviderSettings.user_id == user_id, ProviderSettings.provider_id == provider_id)
            )
        )
        return result.scalar_one_or_none()

    async def list_providers(self, user_id: UUID) -> list[ProviderResponse]:
        """
        List every registered provider with the user's stored configuration.

        Args:
            user_id: The user's unique identifier

        Returns:
            list[ProviderResponse]: Providers in registration order
        """
        result = await self.db.execute(select(ProviderSettings).where(ProviderSettings.user_id == user_id))
        records = {record.provider_id: record for record in result.scalars().all()}
        return [self._to_response(provider, records.get(provider.id)) for provider in self.registry.list()]

    async def get_provider(self, provider_id: str, user_id: UUID) -> ProviderResponse:
        """
        Get one provider with the user's stored configuration.

        Raises:
            ProviderNotFoundError: If the provider is not registered
        """
        provider = self.registry.get(provider_id)
        return self._to_response(provider, await self.get_record(provider_id, user_id))

    async def update_provider(
        self, provider_id: str, user_id: UUID, data: ProviderSettingsUpdate
    ) -> ProviderResponse:
        """
        Update the user's configuration for a provider, creating it on first write.

        Setting values are stored as entered; they are validated against the
        provider's schema only when a generation runs. A ``None`` value removes
        the stored value so the schema default applies again.

        Raises:
            ProviderNotFoundError: If the provider is not registered
            InvalidParameterError: If a setting key is not part of the provider's schema
        """
        provider = self.registry.get(provider_id)
        known_keys = {item.key for item in provider.settings()}
        unknown_keys = sorted(set(data.settings or {}) - known_keys)
        if unknown_keys:
            raise InvalidParameterError(
                f"Unknown settings for {provider_id}: {', '.join(unknown_keys)}",
                details={"keys": unknown_keys},
            )

        record = await self.get_record(provider_id, user_id)
        if record is None:
            record = ProviderSettings(
                user_id=user_id,
                provider_id=provider_id,
                enabled=provider.enabled_by_default,
                settings={},
            )
            self.db.add(record)

        try:
            if data.enabled is not None:
                record.enabled = data.enabled
            if data.settings is not None:
                # Reassign so the JSON column is flagged dirty
                merged = dict(record.settings or {})
                for key, value in data.settings.items():
                    if value is None:
                        merged.pop(key, None)
                    else:
                        merged[key] = value
                record.settings = merged

            await self.db.commit()
            await self.db.refresh(record)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

        return self._to_response(provider, record)

    async def get_effective_settings(self, provider_id: str, user_id: UUID) -> dict[str, Any]:
        """Stored value, else schema default, for every settings key that has either."""
        provider = self.registry.get(provider_id)
        record = await self.get_record(provider_id, user_id)
        stored = (record.settings if record else None) or {}

        effective = {}
        for item in provider.settings():
            value = stored.get(item.key)
            if value is None:
                value = item.default_value
            if value is not None:
                effective[item.key] = value
        return effective

    async def is_enabled(self, provider_id: str, user_id: UUID) -> bool:
        provider = self.registry.get(provider_id)
        record = await self.get_record(provider_id, user_id)
        return record.enabled if record else provider.enabled_by_default

    @staticmethod
    def _to_response(provider: AiProvider, record: ProviderSettings | None) -> ProviderResponse:
        stored = (record.settings if record else None) or {}
        return ProviderResponse(
            id=provider.id,
            name=provider.name,
            support_cors=provider.support_cors,
            enabled=record.enabled if record else provider.enabled_by_default,
            settings=[
                ProviderSettingResponse(
                    key=item.key,
                    type=item.type,
                    required=item.required,
                    default_value=item.default_value,
                    value=stored.get(item.key),
                )
                for item in provider.settings()
            ],
            models=[ProviderModelResponse.model_validate(model.model_dump()) for model in provider.models],
        )
