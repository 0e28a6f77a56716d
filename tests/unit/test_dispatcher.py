"""Tests for MessageDispatcher: routing, single fallback, audit rows, degradation."""

import asyncio

import httpx
import pytest

from approvalhub.core.exceptions import NoProviderConfigured, SendFailed
from approvalhub.models.message import (
    Button,
    MessageKind,
    MessageStatus,
    Priority,
    ProviderName,
)
from approvalhub.providers.meta_cloud import MetaCloudProvider
from approvalhub.providers.registry import ProviderRegistry
from approvalhub.services.dispatcher import MessageDispatcher
from approvalhub.services.routing import ProviderConfig, ProviderConfigHolder, RoutingPolicy

BUTTONS = [Button(id="wf-1:approve", title="Yes"), Button(id="wf-1:reject", title="No")]


class TestSend:
    """Tests for plain text sends."""

    @pytest.mark.asyncio
    async def test_success_records_one_sent_row(self, dispatcher, store, n8n_provider, clock) -> None:
        """Test that a successful send records a single sent row."""
        message = await dispatcher.send("919800000001", "Order ready", priority=Priority.LOW)

        assert message.status is MessageStatus.SENT
        assert message.provider is ProviderName.N8N_EVOLUTION_API
        assert message.provider_message_id == "n8n_evolution_api-1"
        assert message.sent_at == clock.now
        assert n8n_provider.sent == [("text", "919800000001", "Order ready")]
        rows = await store.list_messages()
        assert [r.id for r in rows] == [message.id]

    @pytest.mark.asyncio
    async def test_primary_failure_uses_fallback_once(
        self, dispatcher, store, n8n_provider, meta_provider
    ) -> None:
        """Test that a primary failure is retried once on the fallback."""
        n8n_provider.fail = True

        message = await dispatcher.send("919800000001", "Order ready", priority=Priority.MEDIUM)

        assert message.provider is ProviderName.META_CLOUD_API
        assert message.status is MessageStatus.SENT
        rows = await store.list_messages()
        assert len(rows) == 2
        assert rows[0].provider is ProviderName.N8N_EVOLUTION_API
        assert rows[0].status is MessageStatus.FAILED
        assert "simulated outage" in rows[0].error
        assert rows[1].status is MessageStatus.SENT
        assert len(meta_provider.sent) == 1

    @pytest.mark.asyncio
    async def test_both_fail_raises_send_failed(self, dispatcher, store, n8n_provider, meta_provider) -> None:
        """Test that SendFailed is raised when both attempts fail."""
        n8n_provider.fail = True
        meta_provider.fail = True

        with pytest.raises(SendFailed) as exc_info:
            await dispatcher.send("919800000001", "Order ready")

        rows = await store.list_messages()
        assert len(rows) == 2
        assert all(r.status is MessageStatus.FAILED for r in rows)
        assert exc_info.value.message.id == rows[1].id

    @pytest.mark.asyncio
    async def test_fallback_disabled(self, dispatcher, store, n8n_provider, meta_provider) -> None:
        """Test that allow_fallback=False skips the fallback."""
        n8n_provider.fail = True

        with pytest.raises(SendFailed):
            await dispatcher.send("919800000001", "Order ready", allow_fallback=False)

        assert len(await store.list_messages()) == 1
        assert meta_provider.sent == []

    @pytest.mark.asyncio
    async def test_no_fallback_when_fallback_is_the_failed_provider(
        self, dispatcher, store, meta_provider
    ) -> None:
        """Test that the failed provider is never retried as its own fallback."""
        meta_provider.fail = True

        with pytest.raises(SendFailed):
            await dispatcher.send("919800000001", "Stock alert", priority=Priority.URGENT)

        assert len(await store.list_messages()) == 1

    @pytest.mark.asyncio
    async def test_no_provider_configured(self, store) -> None:
        """Test that nothing is recorded when no provider is routable."""
        routing = RoutingPolicy(
            ProviderRegistry(),
            ProviderConfigHolder(ProviderConfig(active_provider=ProviderName.META_CLOUD_API)),
        )
        dispatcher = MessageDispatcher(routing, store)

        with pytest.raises(NoProviderConfigured):
            await dispatcher.send("919800000001", "hello")

        assert await store.list_messages() == []

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, routing, store, n8n_provider, meta_provider) -> None:
        """Test that a provider call exceeding send_timeout counts as a failure."""
        async def hang(to: str, body: str):
            await asyncio.sleep(5)

        n8n_provider.send_text = hang  # type: ignore[method-assign]
        dispatcher = MessageDispatcher(routing, store, send_timeout=0.05)

        message = await dispatcher.send("919800000001", "Order ready")

        assert message.provider is ProviderName.META_CLOUD_API
        rows = await store.list_messages()
        assert rows[0].status is MessageStatus.FAILED
        assert "no response within" in rows[0].error

    @pytest.mark.asyncio
    async def test_unusual_meta_error_body_falls_back(self, store, n8n_provider) -> None:
        """A Meta 500 with a string error body still triggers the fallback."""
        transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "upstream down"}))
        meta = MetaCloudProvider(
            access_token="t",
            phone_number_id="1",
            http_client=httpx.AsyncClient(transport=transport),
        )
        routing = RoutingPolicy(
            ProviderRegistry([meta, n8n_provider]),
            ProviderConfigHolder(
                ProviderConfig(
                    active_provider=ProviderName.META_CLOUD_API,
                    fallback_provider=ProviderName.N8N_EVOLUTION_API,
                )
            ),
        )
        dispatcher = MessageDispatcher(routing, store)

        message = await dispatcher.send("919800000001", "hi")

        assert message.provider is ProviderName.N8N_EVOLUTION_API
        assert message.status is MessageStatus.SENT
        rows = await store.list_messages()
        assert [(r.provider, r.status) for r in rows] == [
            (ProviderName.META_CLOUD_API, MessageStatus.FAILED),
            (ProviderName.N8N_EVOLUTION_API, MessageStatus.SENT),
        ]
        assert "upstream down" in rows[0].error

    @pytest.mark.asyncio
    async def test_successful_sends_count_toward_caps(self, dispatcher, routing, n8n_provider) -> None:
        """Test that only successful sends count toward daily caps."""
        await dispatcher.send("919800000001", "one")
        n8n_provider.fail = True
        await dispatcher.send("919800000001", "two")

        assert routing.counter.sent_today(ProviderName.N8N_EVOLUTION_API) == 1
        assert routing.counter.sent_today(ProviderName.META_CLOUD_API) == 1

    @pytest.mark.asyncio
    async def test_workflow_id_is_recorded(self, dispatcher, store) -> None:
        """Test that the workflow id is stored on the message row."""
        await dispatcher.send("919800000001", "hi", workflow_id="wf-7")

        assert [m.workflow_id for m in await store.list_messages(workflow_id="wf-7")] == ["wf-7"]


class TestSendTemplate:
    """Tests for template sends."""

    @pytest.mark.asyncio
    async def test_template_content_recorded(self, dispatcher, store) -> None:
        """Test the content recorded for a template send."""
        message = await dispatcher.send_template(
            "919800000001", "order_ready", {"order": "ORD-1"}, priority=Priority.HIGH
        )

        assert message.kind is MessageKind.TEMPLATE
        assert message.provider is ProviderName.META_CLOUD_API
        assert message.content == "Template: order_ready"


class TestSendInteractive:
    """Tests for reply-button sends."""

    @pytest.mark.asyncio
    async def test_interactive_provider_gets_buttons(self, dispatcher, meta_provider) -> None:
        """Test that an interactive-capable provider receives buttons."""
        message = await dispatcher.send_interactive(
            "919800000001", "Approval", "Approve order?", BUTTONS, priority=Priority.HIGH
        )

        assert message.kind is MessageKind.INTERACTIVE
        assert message.content == "Approve order?"
        assert meta_provider.sent == [("interactive", "919800000001", "Approve order?")]

    @pytest.mark.asyncio
    async def test_degrades_to_numbered_text(self, dispatcher, n8n_provider) -> None:
        """Test degradation to numbered-reply text for text-only providers."""
        message = await dispatcher.send_interactive(
            "919800000001", "Approval", "Approve order?", BUTTONS, priority=Priority.LOW
        )

        expected = (
            "Approval\n"
            "\n"
            "Approve order?\n"
            "\n"
            "Reply with the number of your choice:\n"
            "1. Yes\n"
            "2. No"
        )
        assert message.kind is MessageKind.TEXT
        assert message.content == expected
        assert n8n_provider.sent == [("text", "919800000001", expected)]

    @pytest.mark.asyncio
    async def test_fallback_to_interactive_provider_sends_buttons(
        self, dispatcher, store, n8n_provider, meta_provider
    ) -> None:
        """Test that the fallback attempt is planned for the fallback's capabilities."""
        n8n_provider.fail = True

        message = await dispatcher.send_interactive(
            "919800000001", "Approval", "Approve order?", BUTTONS, priority=Priority.LOW
        )

        rows = await store.list_messages()
        assert rows[0].kind is MessageKind.TEXT
        assert message.kind is MessageKind.INTERACTIVE
        assert meta_provider.sent[0][0] == "interactive"
