"""Pytest configuration and shared fixtures."""

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient
import pytest

from approvalhub.container import Services, build_services
from approvalhub.core import Settings
from approvalhub.core.exceptions import ProviderError
from approvalhub.factory import create_app
from approvalhub.models.message import Button, ProviderName, ProviderReceipt
from approvalhub.providers.base import MessagingProvider
from approvalhub.providers.registry import ProviderRegistry
from approvalhub.services.approvals import ApprovalWorkflowEngine
from approvalhub.services.dispatcher import MessageDispatcher
from approvalhub.services.recipients import StaticRecipientDirectory
from approvalhub.services.routing import (
    CostOptimization,
    DailySendCounter,
    ProviderConfig,
    ProviderConfigHolder,
    RoutingPolicy,
)
from approvalhub.services.side_effects import default_side_effects
from approvalhub.storage.memory import InMemoryApprovalStore

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

APPROVERS = ["919800000001", "919800000002"]


class FakeClock:
    """Settable clock shared by every component under test."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeProvider(MessagingProvider):
    """In-memory provider that records calls and fails on demand."""

    def __init__(self, name: ProviderName, *, interactive: bool = False) -> None:
        self.name = name
        self.supports_interactive = interactive
        super().__init__()
        self.fail = False
        self.sent: list[tuple[str, str, str]] = []

    def _deliver(self, kind: str, to: str, content: str) -> ProviderReceipt:
        if self.fail:
            raise ProviderError(self.name.value, "simulated outage", status_code=503)
        self.sent.append((kind, to, content))
        return ProviderReceipt(content=content, provider_message_id=f"{self.name.value}-{len(self.sent)}")

    async def send_text(self, to: str, body: str) -> ProviderReceipt:
        return self._deliver("text", to, body)

    async def send_template(self, to: str, name: str, params: dict[str, str]) -> ProviderReceipt:
        return self._deliver("template", to, f"Template: {name}")

    async def send_interactive(
        self, to: str, title: str, body: str, buttons: list[Button]
    ) -> ProviderReceipt:
        return self._deliver("interactive", to, body)

    async def validate_config(self) -> bool:
        return not self.fail


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def meta_provider() -> FakeProvider:
    return FakeProvider(ProviderName.META_CLOUD_API, interactive=True)


@pytest.fixture
def n8n_provider() -> FakeProvider:
    return FakeProvider(ProviderName.N8N_EVOLUTION_API)


@pytest.fixture
def registry(meta_provider: FakeProvider, n8n_provider: FakeProvider) -> ProviderRegistry:
    return ProviderRegistry([meta_provider, n8n_provider])


@pytest.fixture
def provider_config() -> ProviderConfig:
    """Bulk traffic on n8n, critical traffic on Meta, Meta as fallback."""
    return ProviderConfig(
        active_provider=ProviderName.N8N_EVOLUTION_API,
        fallback_provider=ProviderName.META_CLOUD_API,
        cost_optimization=CostOptimization(
            use_critical_provider_for=frozenset({"urgent", "high"}),
            use_bulk_provider_for=frozenset({"low", "medium"}),
        ),
    )


@pytest.fixture
def routing(
    registry: ProviderRegistry, provider_config: ProviderConfig, clock: FakeClock
) -> RoutingPolicy:
    return RoutingPolicy(registry, ProviderConfigHolder(provider_config), DailySendCounter(clock))


@pytest.fixture
def store() -> InMemoryApprovalStore:
    return InMemoryApprovalStore()


@pytest.fixture
def dispatcher(
    routing: RoutingPolicy, store: InMemoryApprovalStore, clock: FakeClock
) -> MessageDispatcher:
    return MessageDispatcher(routing, store, send_timeout=1.0, clock=clock)


@pytest.fixture
def order_actions() -> AsyncMock:
    """OrderActions double; every operation is an AsyncMock."""
    return AsyncMock()


@pytest.fixture
def engine(
    store: InMemoryApprovalStore,
    dispatcher: MessageDispatcher,
    order_actions: AsyncMock,
    clock: FakeClock,
) -> ApprovalWorkflowEngine:
    return ApprovalWorkflowEngine(
        store,
        dispatcher,
        StaticRecipientDirectory({"managers": APPROVERS}),
        default_side_effects(order_actions),
        clock=clock,
    )


@pytest.fixture
def test_settings() -> Settings:
    """Settings that never touch the network or disk."""
    return Settings(
        environment="development",
        debug=True,
        log_level="DEBUG",
        meta_webhook_verify_token="verify-me",  # type: ignore[arg-type]
        active_provider="n8n_evolution_api",
        fallback_provider="meta_cloud_api",
        use_critical_provider_for=["urgent", "high"],
        use_bulk_provider_for=["low", "medium"],
        recipient_groups={"managers": APPROVERS},
        provider_config_path="",
        database_path="",
    )


@pytest.fixture
def services(
    test_settings: Settings,
    registry: ProviderRegistry,
    order_actions: AsyncMock,
    clock: FakeClock,
) -> Services:
    return build_services(
        test_settings,
        registry=registry,
        store=InMemoryApprovalStore(),
        order_actions=order_actions,
        clock=clock,
    )


@pytest.fixture
def client(test_settings: Settings, services: Services) -> Generator[TestClient, None, None]:
    """Test client for an app wired to fake providers and an in-memory store."""
    app = create_app(settings=test_settings, services=services)
    with TestClient(app) as test_client:
        yield test_client


# Sample payloads


@pytest.fixture
def rejection_payload() -> dict:
    return {"ct_numbers": ["AB12CD34EF56GH", "ZX98CV76BN54ML"], "rejection_reason": "Scratched housing"}


def meta_button_reply(reply_id: str, sender: str = APPROVERS[0]) -> dict:
    """Meta Cloud webhook envelope carrying one button reply."""
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA-1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "messages": [
                                {
                                    "from": sender,
                                    "id": "wamid.test",
                                    "type": "interactive",
                                    "interactive": {
                                        "type": "button_reply",
                                        "button_reply": {"id": reply_id, "title": "Approve"},
                                    },
                                }
                            ],
                        },
                    }
                ],
            }
        ],
    }


@pytest.fixture
def meta_reply():
    """Builder for Meta button-reply envelopes."""
    return meta_button_reply
