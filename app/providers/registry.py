"""Provider registry.

The registry is built once per process from the static provider list and
never changes afterwards.
"""

import logging
from functools import lru_cache

from app.core.config import Settings, settings as app_settings
from app.exceptions.provider import ProviderNotFoundError
from app.providers.base import AiProvider, ModelDescriptor, ProviderRuntime
from app.providers.cloudflare import CloudflareProvider
from app.providers.fal import FalProvider
from app.providers.flux import FluxProvider
from app.providers.openai_images import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: tuple[type[AiProvider], ...] = (
    CloudflareProvider,
    OpenAIProvider,
    FluxProvider,
    FalProvider,
)


class ProviderRegistry:
    """Lookup of providers by identifier, in registration order."""

    def __init__(self, providers: list[AiProvider]):
        self._providers: dict[str, AiProvider] = {}
        for provider in providers:
            if provider.id in self._providers:
                raise ValueError(f"Duplicate provider id: {provider.id}")
            self._providers[provider.id] = provider

    def get(self, provider_id: str) -> AiProvider:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise ProviderNotFoundError(provider_id) from None

    def find_model(self, provider_id: str, model_id: str) -> ModelDescriptor:
        return self.get(provider_id).find_model(model_id)

    def list(self) -> list[AiProvider]:
        return list(self._providers.values())

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._providers


def runtime_from_settings(config: Settings) -> ProviderRuntime:
    return ProviderRuntime(
        builtin_credentials=config.has_builtin_cloudflare,
        cloudflare_account_id=config.cloudflare_account_id,
        cloudflare_api_token=config.cloudflare_api_token,
        request_timeout=config.provider_request_timeout,
        poll_interval=config.flux_poll_interval,
        max_poll_attempts=config.flux_max_poll_attempts,
    )


def build_default_registry(config: Settings | None = None) -> ProviderRegistry:
    runtime = runtime_from_settings(config or app_settings)
    registry = ProviderRegistry([provider_class(runtime) for provider_class in PROVIDER_CLASSES])
    logger.info(f"Registered image providers: {', '.join(p.id for p in registry.list())}")
    return registry


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    return build_default_registry()
