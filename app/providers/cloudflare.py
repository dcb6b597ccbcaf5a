"""Cloudflare Workers AI image provider."""

import logging
from typing import Any

import httpx

from app.exceptions.provider import ProviderRequestError, ProviderResponseError
from app.providers.base import (
    Ability,
    AiProvider,
    GenerateRequest,
    GenerateResult,
    ModelDescriptor,
    SettingsItem,
    SettingType,
)
from app.shared.images import base64_to_data_uri, bytes_to_data_uri

logger = logging.getLogger(__name__)

CLOUDFLARE_API_URL = "https://api.cloudflare.com/client/v4"

# Used when the host has no Cloudflare credentials of its own
CREDENTIALS_SETTINGS = [
    SettingsItem(key="account_id", type=SettingType.PASSWORD, required=True),
    SettingsItem(key="api_key", type=SettingType.PASSWORD, required=True),
]

# Used when the host offers its own credentials; users may still bring theirs
BUILTIN_SETTINGS = [
    SettingsItem(key="builtin", type=SettingType.BOOLEAN, required=True, default_value=True),
    SettingsItem(key="account_id", type=SettingType.PASSWORD, required=False),
    SettingsItem(key="api_key", type=SettingType.PASSWORD, required=False),
]


class CloudflareProvider(AiProvider):
    id = "cloudflare"
    name = "Cloudflare AI"
    support_cors = False
    enabled_by_default = True
    models = [
        ModelDescriptor(id="@cf/black-forest-labs/flux-1-schnell", name="FLUX.1-schnell", ability=Ability.T2I),
        ModelDescriptor(id="@cf/lykon/dreamshaper-8-lcm", name="DreamShaper 8 LCM", ability=Ability.T2I),
        ModelDescriptor(
            id="@cf/bytedance/stable-diffusion-xl-lightning",
            name="Stable Diffusion XL Lightning",
            ability=Ability.T2I,
        ),
        ModelDescriptor(
            id="@cf/stabilityai/stable-diffusion-xl-base-1.0",
            name="Stable Diffusion XL Base 1.0",
            ability=Ability.T2I,
        ),
    ]

    def settings(self) -> list[SettingsItem]:
        return BUILTIN_SETTINGS if self.runtime.builtin_credentials else CREDENTIALS_SETTINGS

    def _credentials(self, parsed) -> tuple[str | None, str | None]:
        if self.runtime.builtin_credentials and getattr(parsed, "builtin", False):
            return self.runtime.cloudflare_account_id, self.runtime.cloudflare_api_token
        return parsed.account_id, parsed.api_key

    async def generate(self, request: GenerateRequest, settings: dict[str, Any] | None) -> GenerateResult:
        parsed = self.parse_settings(settings)
        account_id, api_key = self._credentials(parsed)
        if not account_id or not api_key:
            # Built-in credentials switched off without personal ones supplied
            return GenerateResult.config_error()

        url = f"{CLOUDFLARE_API_URL}/accounts/{account_id}/ai/run/{request.model_id}"
        try:
            async with self.http_client() as client:
                response = await client.post(
                    url,
                    headers={"Authorization": f"Bearer {api_key}"},
                    json={"prompt": request.prompt},
                )
        except httpx.HTTPError as e:
            raise ProviderRequestError(f"Cloudflare request failed: {e}") from e

        if response.status_code in (401, 404):
            logger.info(f"Cloudflare rejected configuration with {response.status_code}")
            return GenerateResult.config_error()
        if response.is_error:
            raise ProviderRequestError(
                f"Cloudflare API error: {response.status_code} - {response.text}",
                status=response.status_code,
            )

        if "image/png" in response.headers.get("content-type", ""):
            return GenerateResult(images=[bytes_to_data_uri(response.content, "image/png")])

        try:
            image = response.json()["result"]["image"]
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderResponseError("Cloudflare response has no image") from e
        return GenerateResult(images=[base64_to_data_uri(image)])
