"""OpenAI Images provider built on the official ``openai`` SDK."""

import logging
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

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
from app.shared.images import base64_to_data_uri, extension_for, fetch_url_to_data_uri, parse_data_uri

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


def data_uri_to_upload(value: str, index: int = 0) -> tuple[str, bytes, str]:
    """Turn a data URI into the ``(filename, content, mime_type)`` tuple the SDK uploads."""
    mime_type, data = parse_data_uri(value)
    return f"image-{index}.{extension_for(mime_type)}", data, mime_type


class OpenAIProvider(AiProvider):
    id = "openai"
    name = "OpenAI"
    support_cors = True
    enabled_by_default = True
    settings_schema = [
        SettingsItem(key="api_key", type=SettingType.PASSWORD, required=True),
        SettingsItem(key="base_url", type=SettingType.URL, required=False, default_value=DEFAULT_BASE_URL),
    ]
    models = [
        ModelDescriptor(id="gpt-image-1", name="GPT Image 1", ability=Ability.I2I, max_input_images=3),
    ]

    def client(self, api_key: str, base_url: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=self.runtime.request_timeout,
            max_retries=0,
            http_client=self.http_client(),
        )

    async def generate(self, request: GenerateRequest, settings: dict[str, Any] | None) -> GenerateResult:
        parsed = self.parse_settings(settings)
        ability = choose_ability(request, self.find_model(request.model_id).ability)

        async with self.client(parsed.api_key, str(parsed.base_url).rstrip("/")) as client:
            try:
                if ability == Ability.T2I:
                    response = await client.images.generate(
                        model=request.model_id,
                        prompt=request.prompt,
                        n=request.n,
                    )
                else:
                    response = await client.images.edit(
                        model=request.model_id,
                        image=[data_uri_to_upload(image, i) for i, image in enumerate(request.images)],
                        prompt=request.prompt,
                        n=request.n,
                    )
            except (openai.AuthenticationError, openai.NotFoundError) as e:
                logger.info(f"OpenAI rejected configuration: {e}")
                return GenerateResult.config_error()

            images = []
            for image in response.data or []:
                if image.b64_json:
                    images.append(base64_to_data_uri(image.b64_json))
                elif image.url:
                    try:
                        async with self.http_client() as fetcher:
                            images.append(await fetch_url_to_data_uri(image.url, fetcher))
                    except httpx.HTTPError as e:
                        logger.error(f"OpenAI image fetch error: {e}")
            return GenerateResult(images=images)
