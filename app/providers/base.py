"""Provider capability contract.

Every image provider describes itself with a static settings schema and model
catalog and exposes a single ``generate`` coroutine. Settings arrive as the raw
key/value mapping a user stored and are validated here, against the provider's
own schema, right before a generation runs.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, create_model
from pydantic import ValidationError as PydanticValidationError

from app.exceptions.provider import ModelNotFoundError, ProviderConfigInvalidError
from models.generation import ErrorReason

logger = logging.getLogger(__name__)


class Ability(str, Enum):
    T2I = "t2i"  # Text to image
    I2I = "i2i"  # Image to image


class SettingType(str, Enum):
    PASSWORD = "password"
    STRING = "string"
    URL = "url"
    BOOLEAN = "boolean"
    NUMBER = "number"


class SettingsItem(BaseModel):
    """One entry of a provider's settings schema."""

    model_config = ConfigDict(frozen=True)

    key: str
    type: SettingType
    required: bool = False
    default_value: Optional[Any] = None


class ModelDescriptor(BaseModel):
    """One entry of a provider's model catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    ability: Ability
    max_input_images: Optional[int] = Field(None, ge=1)
    enabled_by_default: bool = True


class ProviderDescriptor(BaseModel):
    id: str
    name: str
    support_cors: bool
    enabled_by_default: bool
    settings: list[SettingsItem]
    models: list[ModelDescriptor]


class GenerateRequest(BaseModel):
    """A single generation call as seen by a provider."""

    provider_id: str
    model_id: str
    prompt: str
    images: Optional[list[str]] = Field(None, description="Ordered reference images as data URIs")
    n: int = Field(default=1, ge=1)


class GenerateResult(BaseModel):
    """Images produced by a provider, or the reason it refused."""

    images: list[str] = Field(default_factory=list)
    error_reason: Optional[ErrorReason] = None

    @classmethod
    def config_error(cls) -> "GenerateResult":
        return cls(images=[], error_reason=ErrorReason.CONFIG_ERROR)


class ProviderRuntime(BaseModel):
    """Process-wide facts providers may depend on, read from configuration once."""

    builtin_credentials: bool = False
    cloudflare_account_id: Optional[str] = None
    cloudflare_api_token: Optional[str] = None
    request_timeout: float = 120.0
    poll_interval: float = 0.5
    max_poll_attempts: int = 120


_SETTING_TYPES: dict[SettingType, Any] = {
    SettingType.PASSWORD: str,
    SettingType.STRING: str,
    SettingType.URL: AnyHttpUrl,
    SettingType.BOOLEAN: bool,
    SettingType.NUMBER: float,
}


def parse_settings(raw: dict[str, Any] | None, schema: list[SettingsItem]) -> BaseModel:
    """Validate raw settings against a settings schema.

    Missing or empty required keys and mistyped values raise
    ``ProviderConfigInvalidError``. Defaults are applied to absent optional keys
    and unknown keys are ignored.
    """
    fields: dict[str, Any] = {}
    for item in schema:
        annotation = _SETTING_TYPES[item.type]
        constraints = {"min_length": 1} if annotation is str and item.required else {}
        if item.required and item.default_value is None:
            fields[item.key] = (annotation, Field(..., **constraints))
        else:
            fields[item.key] = (Optional[annotation], Field(item.default_value, **constraints))

    settings_model = create_model(
        "ProviderSettings",
        __config__=ConfigDict(extra="ignore", str_strip_whitespace=True),
        **fields,
    )

    values = {key: value for key, value in (raw or {}).items() if value is not None}
    try:
        return settings_model.model_validate(values)
    except PydanticValidationError as e:
        invalid_keys = sorted({str(error["loc"][0]) for error in e.errors() if error["loc"]})
        raise ProviderConfigInvalidError(
            f"Invalid provider settings: {', '.join(invalid_keys) or 'unknown'}",
            details={"keys": invalid_keys},
        ) from e


def choose_ability(request: GenerateRequest, model_ability: Ability) -> Ability:
    """Pick the generation mode: image-to-image only with an i2i model and at least one image."""
    if model_ability == Ability.I2I and request.images:
        return Ability.I2I
    return Ability.T2I


class AiProvider(ABC):
    """Base class for image providers.

    Subclasses declare ``id``, ``name``, ``models`` and a settings schema, and
    implement ``generate``. Authentication and not-found class refusals are
    returned as ``GenerateResult.config_error()``; anything else is raised.
    """

    id: str
    name: str
    support_cors: bool = False
    enabled_by_default: bool = True
    models: list[ModelDescriptor] = []
    settings_schema: list[SettingsItem] = []

    def __init__(
        self,
        runtime: ProviderRuntime | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.runtime = runtime or ProviderRuntime()
        self._transport = transport

    def settings(self) -> list[SettingsItem]:
        return self.settings_schema

    def parse_settings(self, raw: dict[str, Any] | None) -> BaseModel:
        return parse_settings(raw, self.settings())

    def find_model(self, model_id: str) -> ModelDescriptor:
        for model in self.models:
            if model.id == model_id:
                return model
        raise ModelNotFoundError(self.id, model_id)

    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            id=self.id,
            name=self.name,
            support_cors=self.support_cors,
            enabled_by_default=self.enabled_by_default,
            settings=self.settings(),
            models=self.models,
        )

    def http_client(self, **kwargs) -> httpx.AsyncClient:
        """HTTP client for provider calls, honoring the configured timeout."""
        kwargs.setdefault("timeout", self.runtime.request_timeout)
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    @abstractmethod
    async def generate(self, request: GenerateRequest, settings: dict[str, Any] | None) -> GenerateResult:
        """Produce images for ``request`` using the caller's raw ``settings``."""
