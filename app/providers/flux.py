"""Black Forest Labs Flux provider.

Generation is a submit-then-poll flow: the submit call returns a polling URL
which is queried at a fixed interval until the job is ``Ready``, fails, or the
attempt ceiling is reached.
"""

import asyncio
import logging
from typing import Any

import httpx
from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_attempt, wait_fixed

from app.exceptions.provider import (
    ProviderGenerationError,
    ProviderRequestError,
    ProviderResponseError,
    ProviderTimeoutError,
)
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

FLUX_API_URL = "https://api.bfl.ai/v1"

READY = "Ready"
FAILED_STATUSES = ("Error", "Failed")


class FluxProvider(AiProvider):
    id = "flux"
    name = "Flux"
    support_cors = False
    enabled_by_default = True
    settings_schema = [SettingsItem(key="api_key", type=SettingType.PASSWORD, required=True)]
    models = [
        ModelDescriptor(id="flux-kontext-max", name="FLUX.1 Kontext [max]", ability=Ability.I2I),
        ModelDescriptor(id="flux-kontext-pro", name="FLUX.1 Kontext [pro]", ability=Ability.I2I),
        ModelDescriptor(id="flux-pro-1.1-ultra", name="FLUX1.1 [pro] Ultra", ability=Ability.T2I),
        ModelDescriptor(id="flux-pro-1.1", name="FLUX1.1 [pro]", ability=Ability.T2I),
        ModelDescriptor(id="flux-pro", name="FLUX.1 [pro]", ability=Ability.T2I),
        ModelDescriptor(id="flux-dev", name="FLUX.1 [dev]", ability=Ability.T2I),
    ]

    async def generate(self, request: GenerateRequest, settings: dict[str, Any] | None) -> GenerateResult:
        parsed = self.parse_settings(settings)
        ability = choose_ability(request, self.find_model(request.model_id).ability)

        body: dict[str, Any] = {"prompt": request.prompt}
        if ability == Ability.I2I:
            body["input_image"] = request.images[0]

        headers = {"accept": "application/json", "x-key": parsed.api_key}
        async with self.http_client(headers=headers) as client:
            try:
                response = await client.post(f"{FLUX_API_URL}/{request.model_id}", json=body)
            except httpx.HTTPError as e:
                raise ProviderRequestError(f"Flux request failed: {e}") from e

            if response.status_code in (401, 403, 404):
                logger.info(f"Flux rejected configuration with {response.status_code}")
                return GenerateResult.config_error()
            if response.is_error:
                raise ProviderRequestError(
                    f"Flux API error: {response.status_code} - {response.text}",
                    status=response.status_code,
                )

            try:
                submitted = response.json()
                request_id, polling_url = submitted["id"], submitted["polling_url"]
            except (ValueError, KeyError, TypeError) as e:
                raise ProviderResponseError("Flux submit response is missing the polling URL") from e

            result = await self._poll(client, polling_url, request_id)
            sample = (result.get("result") or {}).get("sample")
            if not sample:
                raise ProviderResponseError("Flux result has no sample")

            try:
                return GenerateResult(images=[await fetch_url_to_data_uri(sample, client)])
            except httpx.HTTPError as e:
                logger.error(f"Flux image fetch error: {e}")
                return GenerateResult(images=[])

    async def _poll(self, client: httpx.AsyncClient, polling_url: str, request_id: str) -> dict:
        """Poll until the job leaves the queue. Returns the final poll payload."""

        async def poll_once() -> dict:
            try:
                response = await client.get(polling_url, params={"id": request_id})
            except httpx.HTTPError as e:
                raise ProviderRequestError(f"Flux polling failed: {e}") from e
            if response.is_error:
                raise ProviderRequestError(
                    f"Flux polling error: {response.status_code}", status=response.status_code
                )
            try:
                data = response.json()
            except ValueError as e:
                raise ProviderResponseError("Flux poll response is not valid JSON") from e

            status = data.get("status")
            if status in FAILED_STATUSES:
                raise ProviderGenerationError(
                    f"Flux generation failed: {data.get('error') or 'Unknown error'}"
                )
            return data

        retrying = AsyncRetrying(
            wait=wait_fixed(self.runtime.poll_interval),
            stop=stop_after_attempt(self.runtime.max_poll_attempts),
            retry=retry_if_result(lambda data: data.get("status") != READY),
        )
        # The first poll also waits one interval after submission
        await asyncio.sleep(self.runtime.poll_interval)
        try:
            return await retrying(poll_once)
        except RetryError as e:
            raise ProviderTimeoutError(
                "Flux generation timeout exceeded",
                details={"attempts": self.runtime.max_poll_attempts},
            ) from e

