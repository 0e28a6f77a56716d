"""Explicit registry of constructed providers, passed into each component."""

from collections.abc import Iterator

import structlog

from approvalhub.core.config import Settings
from approvalhub.models.message import ProviderName
from approvalhub.providers.base import MessagingProvider
from approvalhub.providers.meta_cloud import MetaCloudProvider
from approvalhub.providers.n8n_evolution import N8NEvolutionProvider

logger = structlog.get_logger(__name__)


class ProviderRegistry:
    """Providers keyed by name. Built once at startup; lookups are read-only."""

    def __init__(self, providers: list[MessagingProvider] | None = None) -> None:
        self._providers: dict[ProviderName, MessagingProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: MessagingProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: ProviderName | str | None) -> MessagingProvider | None:
        if name is None:
            return None
        try:
            return self._providers.get(ProviderName(name))
        except ValueError:
            return None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, (str, ProviderName)) and self.get(name) is not None

    def __iter__(self) -> Iterator[MessagingProvider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)

    def names(self) -> list[ProviderName]:
        return list(self._providers)

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()


def build_provider_registry(settings: Settings) -> ProviderRegistry:
    """Construct every provider whose credentials are present in settings."""
    registry = ProviderRegistry()

    access_token = settings.meta_access_token.get_secret_value()
    if access_token and settings.meta_phone_number_id:
        registry.register(
            MetaCloudProvider(
                access_token=access_token,
                phone_number_id=settings.meta_phone_number_id,
                api_version=settings.meta_api_version,
                template_language=settings.meta_template_language,
                default_country_code=settings.meta_default_country_code,
                timeout=settings.provider_timeout_seconds,
            )
        )

    if settings.n8n_webhook_url:
        registry.register(
            N8NEvolutionProvider(
                webhook_url=settings.n8n_webhook_url,
                auth_token=settings.n8n_auth_token.get_secret_value(),
                timeout=settings.provider_timeout_seconds,
            )
        )

    logger.info("Providers registered", providers=[p.value for p in registry.names()])
    return registry


__all__ = ["ProviderRegistry", "build_provider_registry"]
