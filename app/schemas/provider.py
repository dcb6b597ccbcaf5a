"""Provider Pydantic schemas for request/response validation."""

from typing import Any, Optional

from pydantic import Field

from app.providers.base import Ability, SettingType

from .base import BaseSchema


class ProviderSettingResponse(BaseSchema):
    """A settings-schema entry merged with the caller's stored value."""

    key: str
    type: SettingType
    required: bool
    default_value: Optional[Any] = None
    value: Optional[Any] = None


class ProviderModelResponse(BaseSchema):
    id: str
    name: str
    ability: Ability
    max_input_images: Optional[int] = None
    enabled_by_default: bool


class ProviderResponse(BaseSchema):
    """Provider descriptor as seen by one user."""

    id: str
    name: str
    support_cors: bool
    enabled: bool
    settings: list[ProviderSettingResponse]
    models: list[ProviderModelResponse]


class ProviderSettingsUpdate(BaseSchema):
    """Schema for updating a user's provider configuration (all fields optional)."""

    enabled: Optional[bool] = Field(None, description="Allow generations with this provider")
    settings: Optional[dict[str, Any]] = Field(
        None, description="Raw setting values keyed by setting key; null clears a value"
    )
