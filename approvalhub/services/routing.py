"""Provider routing: configuration value, per-day caps and the selection policy."""

from collections import defaultdict
from collections.abc import Callable
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
import structlog
import yaml

from approvalhub.core.config import Settings
from approvalhub.core.exceptions import ConfigValidationFailed, NoProviderConfigured
from approvalhub.models.message import Priority, ProviderName
from approvalhub.providers.base import MessagingProvider
from approvalhub.providers.registry import ProviderRegistry

logger = structlog.get_logger(__name__)


class CostOptimization(BaseModel):
    """Which priorities go to the critical (paid) or bulk (cheap) provider."""

    model_config = ConfigDict(frozen=True)

    use_critical_provider_for: frozenset[Priority] = Field(default_factory=frozenset)
    use_bulk_provider_for: frozenset[Priority] = Field(default_factory=frozenset)
    critical_provider: ProviderName = ProviderName.META_CLOUD_API
    bulk_provider: ProviderName = ProviderName.N8N_EVOLUTION_API


class ProviderConfig(BaseModel):
    """Routing configuration. Immutable; changes replace the whole value."""

    model_config = ConfigDict(frozen=True)

    active_provider: ProviderName
    fallback_provider: ProviderName | None = None
    cost_optimization: CostOptimization = Field(default_factory=CostOptimization)
    daily_send_caps: dict[ProviderName, int] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderConfig":
        return cls(
            active_provider=settings.active_provider,
            fallback_provider=settings.fallback_provider,
            cost_optimization=CostOptimization(
                use_critical_provider_for=settings.use_critical_provider_for,
                use_bulk_provider_for=settings.use_bulk_provider_for,
            ),
            daily_send_caps=settings.daily_send_caps,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ProviderConfig":
        """Load routing configuration from a YAML document.

        Example:
            active_provider: n8n_evolution_api
            fallback_provider: meta_cloud_api
            cost_optimization:
              use_critical_provider_for: [high, urgent]
              use_bulk_provider_for: [low, medium]
        """
        path = Path(path)
        try:
            raw: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigValidationFailed(f"Cannot read provider config {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigValidationFailed(f"Provider config {path} must be a mapping")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise ConfigValidationFailed(f"Invalid provider config {path}: {e}") from e


def load_provider_config(settings: Settings) -> ProviderConfig:
    if settings.provider_config_path:
        config = ProviderConfig.from_yaml(settings.provider_config_path)
        logger.info("Provider config loaded from file", path=settings.provider_config_path)
        return config
    return ProviderConfig.from_settings(settings)


class ProviderConfigHolder:
    """Shared, read-only view of the current ProviderConfig.

    Readers take one reference per request; `replace` swaps the reference so
    no reader ever sees a half-applied configuration.
    """

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config

    @property
    def current(self) -> ProviderConfig:
        return self._config

    def replace(self, config: ProviderConfig) -> ProviderConfig:
        previous, self._config = self._config, config
        logger.info(
            "Provider config replaced",
            previous_active=previous.active_provider.value,
            active_provider=config.active_provider.value,
            fallback_provider=config.fallback_provider.value if config.fallback_provider else None,
        )
        return previous


class DailySendCounter:
    """In-process count of successful sends per provider per UTC day.

    Advisory cost control only; counts are not shared between workers.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._counts: defaultdict[tuple[ProviderName, date], int] = defaultdict(int)

    def _today(self) -> date:
        return self._clock().date()

    def record(self, provider: ProviderName) -> None:
        self._counts[(provider, self._today())] += 1

    def sent_today(self, provider: ProviderName) -> int:
        return self._counts.get((provider, self._today()), 0)

    def is_capped(self, provider: ProviderName, caps: dict[ProviderName, int]) -> bool:
        cap = caps.get(provider)
        return cap is not None and self.sent_today(provider) >= cap


class RoutingPolicy:
    """Select a provider from configuration, priority and an explicit preference.

    No I/O: selection only reads the registry, the config holder and the
    in-process send counter.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        config: ProviderConfigHolder,
        counter: DailySendCounter | None = None,
    ) -> None:
        self.registry = registry
        self.config = config
        self.counter = counter or DailySendCounter()

    def select(
        self,
        priority: Priority | str = Priority.MEDIUM,
        preferred_provider: ProviderName | str | None = None,
    ) -> MessagingProvider:
        """Return the provider for a send.

        Order: preferred (if registered), critical tier, bulk tier, active
        provider. A tier whose provider reached its daily cap is skipped while
        another candidate remains.

        Raises:
            NoProviderConfigured: If no candidate is registered.
        """
        preferred = self.registry.get(preferred_provider)
        if preferred is not None:
            return preferred

        config = self.config.current
        priority = Priority(priority)
        optimization = config.cost_optimization

        candidates: list[ProviderName] = []
        if priority in optimization.use_critical_provider_for:
            candidates.append(optimization.critical_provider)
        if priority in optimization.use_bulk_provider_for:
            candidates.append(optimization.bulk_provider)
        candidates.append(config.active_provider)

        registered = [p for p in (self.registry.get(name) for name in candidates) if p is not None]
        if not registered:
            raise NoProviderConfigured(
                f"No registered provider for priority '{priority.value}' "
                f"(candidates: {[c.value for c in candidates]})"
            )

        for provider in registered:
            if not self.counter.is_capped(provider.name, config.daily_send_caps):
                return provider

        logger.warning(
            "All candidate providers reached their daily cap",
            priority=priority.value,
            provider=registered[-1].name.value,
        )
        return registered[-1]

    def replace_config(self, config: ProviderConfig) -> ProviderConfig:
        """Swap in a new routing configuration; returns the one it replaced.

        Raises:
            ConfigValidationFailed: If the active provider is not registered.
        """
        if config.active_provider not in self.registry:
            raise ConfigValidationFailed(
                f"Active provider '{config.active_provider.value}' is not configured"
            )
        if config.fallback_provider is not None and config.fallback_provider not in self.registry:
            logger.warning(
                "Fallback provider is not configured and will be skipped",
                fallback_provider=config.fallback_provider.value,
            )
        return self.config.replace(config)

    def fallback_for(self, failed: MessagingProvider) -> MessagingProvider | None:
        """Configured fallback provider, if registered and distinct from the one that failed."""
        fallback = self.registry.get(self.config.current.fallback_provider)
        if fallback is None or fallback.name is failed.name:
            return None
        return fallback


__all__ = [
    "CostOptimization",
    "DailySendCounter",
    "ProviderConfig",
    "ProviderConfigHolder",
    "RoutingPolicy",
    "load_provider_config",
]
