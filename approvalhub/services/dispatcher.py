"""Message dispatcher: route, send, fall back once, record every attempt."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import structlog

from approvalhub.core.exceptions import ProviderError, SendFailed
from approvalhub.models.message import (
    Button,
    Message,
    MessageKind,
    MessageStatus,
    Priority,
    ProviderName,
    ProviderReceipt,
)
from approvalhub.providers.base import MessagingProvider
from approvalhub.services.routing import RoutingPolicy
from approvalhub.services.text import compose_numbered_reply_text
from approvalhub.storage.base import ApprovalStore

logger = structlog.get_logger(__name__)

# What a provider should send: (kind, content to record, the send call).
SendPlan = tuple[MessageKind, str, Callable[[], Awaitable[ProviderReceipt]]]


class MessageDispatcher:
    """Sends messages through the routed provider.

    On a ProviderError the send is retried exactly once through the
    configured fallback provider, when one is registered and differs from
    the provider that failed. Each attempt is stored as its own Message row.
    """

    def __init__(
        self,
        routing: RoutingPolicy,
        store: ApprovalStore,
        *,
        send_timeout: float = 10.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            routing: Provider selection policy.
            store: Where Message audit rows are written.
            send_timeout: Upper bound in seconds for a single provider call.
            clock: Source of timestamps; defaults to UTC now.
        """
        self.routing = routing
        self.store = store
        self.send_timeout = send_timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def send(
        self,
        to: str,
        content: str,
        *,
        priority: Priority | str = Priority.MEDIUM,
        preferred_provider: ProviderName | str | None = None,
        allow_fallback: bool = True,
        workflow_id: str | None = None,
    ) -> Message:
        """Send a text message.

        Returns:
            The Message of the attempt that succeeded.

        Raises:
            NoProviderConfigured: If routing finds no registered provider.
            SendFailed: If every allowed attempt failed.
        """

        def plan(provider: MessagingProvider) -> SendPlan:
            return MessageKind.TEXT, content, lambda: provider.send_text(to, content)

        return await self._dispatch(
            to,
            plan,
            priority=priority,
            preferred_provider=preferred_provider,
            allow_fallback=allow_fallback,
            workflow_id=workflow_id,
        )

    async def send_template(
        self,
        to: str,
        template_name: str,
        params: dict[str, str],
        *,
        priority: Priority | str = Priority.MEDIUM,
        preferred_provider: ProviderName | str | None = None,
        allow_fallback: bool = True,
        workflow_id: str | None = None,
    ) -> Message:
        """Send a named template; routing and fallback as for `send`."""

        def plan(provider: MessagingProvider) -> SendPlan:
            return (
                MessageKind.TEMPLATE,
                f"Template: {template_name}",
                lambda: provider.send_template(to, template_name, params),
            )

        return await self._dispatch(
            to,
            plan,
            priority=priority,
            preferred_provider=preferred_provider,
            allow_fallback=allow_fallback,
            workflow_id=workflow_id,
        )

    async def send_interactive(
        self,
        to: str,
        title: str,
        body: str,
        buttons: list[Button],
        *,
        priority: Priority | str = Priority.MEDIUM,
        preferred_provider: ProviderName | str | None = None,
        allow_fallback: bool = True,
        workflow_id: str | None = None,
    ) -> Message:
        """Send a message with reply buttons.

        Providers without button support receive the numbered-reply text
        instead, so callers never branch on provider capability.
        """

        def plan(provider: MessagingProvider) -> SendPlan:
            if provider.supports_interactive:
                return (
                    MessageKind.INTERACTIVE,
                    body,
                    lambda: provider.send_interactive(to, title, body, buttons),
                )
            text = compose_numbered_reply_text(title, body, buttons)
            return MessageKind.TEXT, text, lambda: provider.send_text(to, text)

        return await self._dispatch(
            to,
            plan,
            priority=priority,
            preferred_provider=preferred_provider,
            allow_fallback=allow_fallback,
            workflow_id=workflow_id,
        )

    async def _dispatch(
        self,
        to: str,
        plan: Callable[[MessagingProvider], SendPlan],
        *,
        priority: Priority | str,
        preferred_provider: ProviderName | str | None,
        allow_fallback: bool,
        workflow_id: str | None,
    ) -> Message:
        provider = self.routing.select(priority, preferred_provider)
        message, error = await self._attempt(provider, to, plan, workflow_id)
        if error is None:
            return message

        fallback = self.routing.fallback_for(provider) if allow_fallback else None
        if fallback is None:
            raise SendFailed(error, message)

        logger.warning(
            "Primary provider failed, using fallback",
            provider=provider.name.value,
            fallback_provider=fallback.name.value,
            error=str(error),
            workflow_id=workflow_id,
        )
        message, error = await self._attempt(fallback, to, plan, workflow_id)
        if error is not None:
            raise SendFailed(error, message)
        return message

    async def _attempt(
        self,
        provider: MessagingProvider,
        to: str,
        plan: Callable[[MessagingProvider], SendPlan],
        workflow_id: str | None,
    ) -> tuple[Message, ProviderError | None]:
        kind, content, call = plan(provider)
        message = Message(
            provider=provider.name,
            recipient=to,
            kind=kind,
            content=content,
            workflow_id=workflow_id,
        )
        error: ProviderError | None = None
        try:
            receipt = await asyncio.wait_for(call(), timeout=self.send_timeout)
        except ProviderError as e:
            error = e
        except asyncio.TimeoutError:
            error = ProviderError(provider.name.value, f"no response within {self.send_timeout}s")

        if error is None:
            message.status = MessageStatus.SENT
            message.content = receipt.content
            message.provider_message_id = receipt.provider_message_id
            message.sent_at = self._clock()
            self.routing.counter.record(provider.name)
            logger.info(
                "Message sent",
                provider=provider.name.value,
                kind=kind.value,
                message_id=message.id,
                workflow_id=workflow_id,
            )
        else:
            message.status = MessageStatus.FAILED
            message.error = str(error)
            logger.warning(
                "Message send failed",
                provider=provider.name.value,
                kind=kind.value,
                message_id=message.id,
                error=str(error),
                workflow_id=workflow_id,
            )

        await self.store.insert_message(message)
        return message, error


__all__ = ["MessageDispatcher"]
