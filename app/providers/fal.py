"""Fal image provider (synchronous ``fal.run`` endpoint)."""

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
    choose_ability,
)
from app.shared.images import fetch_url_to_data_uri

logger = logging.getLogger(__name__)

FAL_RUN_URL = "https://fal.run"


class FalProvider(AiProvider):
    id = "fal"
    name = "Fal"
    support_cors = True
    enabled_by_default = True
    settings_schema = [SettingsItem(key="api_key", type=SettingType.PASSWORD, required=True)]
    models = [
        ModelDescriptor(id="fal-ai/flux-pro/kontext/max", name="FLUX.1 Kontext [max]", ability=Ability.I2I),
        ModelDescriptor(id="fal-ai/flux-pro/kontext", name="FLUX.1 Kontext [pro]", ability=Ability.I2I),
        ModelDescriptor(id="fal-ai/qwen-image", name="Qwen Image", ability=Ability.I2I),
    ]

    def endpoint_for(self, request: GenerateRequest, ability: Ability) -> str:
        """Model-specific route suffix for the chosen generation mode."""
        if request.model_id == "fal-ai/qwen-image":
            return "-edit" if ability == Ability.I2I else ""
        if ability == Ability.T2I:
            return "/text-to-image"

        max_images = self.find_model(request.model_id).max_input_images or 1
        if len(request.images or []) > 1 and max_images > 1:
            return "/multi"
        return ""

    @staticmethod
    def build_input(request: GenerateRequest, ability: Ability) -> dict[str, Any]:
        payload: dict[str, Any] = {"prompt": request.prompt}
        if ability == Ability.I2I:
            if len(request.images) == 1:
                payload["image_url"] = request.images[0]
            else:
                payload["image_urls"] = request.images
        return payload

    async def generate(self, request: GenerateRequest, settings: dict[str, Any] | None) -> GenerateResult:
        parsed = self.parse_settings(settings)
        ability = choose_ability(request, self.find_model(request.model_id).ability)
        url = f"{FAL_RUN_URL}/{request.model_id}{self.endpoint_for(request, ability)}"

        async with self.http_client() as client:
            try:
                response = await client.post(
                    url,
                    headers={"Authorization": f"Key {parsed.api_key}"},
                    json=self.build_input(request, ability),
                )
            except httpx.HTTPError as e:
                raise ProviderRequestError(f"Fal request failed: {e}") from e

            if response.status_code in (401, 404):
                logger.info(f"Fal rejected configuration with {response.status_code}")
                return GenerateResult.config_error()
            if response.is_error:
                raise ProviderRequestError(
                    f"Fal API error: {response.status_code} - {response.text}",
                    status=response.status_code,
                )

            try:
                results = response.json().get("images") or []
            except (ValueError, AttributeError) as e:
                raise ProviderResponseError("Fal response is not valid JSON") from e

            images = []
            for image in results:
                image_url = image.get("url") if isinstance(image, dict) else None
                if not image_url:
                    continue
                try:
                    images.append(await fetch_url_to_data_uri(image_url, client))
                except httpx.HTTPError as e:
                    logger.error(f"Fal image fetch error: {e}")
            return GenerateResult(images=images)
