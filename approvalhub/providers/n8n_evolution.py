"""n8n / Evolution API provider: posts message envelopes to an n8n webhook."""

import re
from typing import Any

import httpx
import structlog

from approvalhub.core.exceptions import ConfigValidationFailed, ProviderError
from approvalhub.middleware.circuit_breaker import CircuitBreaker
from approvalhub.models.message import Button, ProviderName, ProviderReceipt
from approvalhub.providers.base import MessagingProvider
from approvalhub.services.text import compose_numbered_reply_text

logger = structlog.get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(template: str, params: dict[str, str]) -> str:
    """Substitute `{{key}}` placeholders; unknown keys are left as written."""
    return _PLACEHOLDER.sub(lambda m: params.get(m.group(1), m.group(0)), template)


class N8NEvolutionProvider(MessagingProvider):
    """Low-cost bridge through an n8n workflow driving the Evolution API.

    The channel has no reply buttons; direct calls to `send_interactive`
    degrade to the numbered-reply text.
    """

    name = ProviderName.N8N_EVOLUTION_API
    supports_interactive = False

    def __init__(
        self,
        *,
        webhook_url: str,
        auth_token: str = "",
        extra_headers: dict[str, str] | None = None,
        timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(timeout=timeout, http_client=http_client, circuit_breaker=circuit_breaker)
        self.webhook_url = webhook_url
        self.auth_token = auth_token
        self.extra_headers = dict(extra_headers or {})

    @property
    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        headers.update(self.extra_headers)
        return headers

    def _envelope(self, message_type: str, content: str, recipients: list[str], **extra: Any) -> dict[str, Any]:
        return {
            "messageType": message_type,
            "content": content,
            "recipients": recipients,
            "recipientGroups": [],
            "triggeredBy": "system",
            "priority": "medium",
            **extra,
        }

    async def _post(self, payload: dict[str, Any], content: str) -> ProviderReceipt:
        response = await self._request("POST", self.webhook_url, json=payload, headers=self._headers)
        provider_message_id: str | None = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            provider_message_id = body.get("messageId") or body.get("id")
        return ProviderReceipt(content=content, provider_message_id=provider_message_id)

    async def send_text(self, to: str, body: str) -> ProviderReceipt:
        return await self._post(self._envelope("manual", body, [to]), body)

    async def send_template(self, to: str, name: str, params: dict[str, str]) -> ProviderReceipt:
        content = render_template(name, params)
        payload = self._envelope(
            "template",
            content,
            [to],
            templateName=name,
            templateParameters=params,
        )
        return await self._post(payload, content)

    async def send_interactive(
        self, to: str, title: str, body: str, buttons: list[Button]
    ) -> ProviderReceipt:
        return await self.send_text(to, compose_numbered_reply_text(title, body, buttons))

    async def validate_config(self) -> bool:
        if not self.webhook_url:
            raise ConfigValidationFailed("n8n provider requires a webhook URL")
        payload = self._envelope("validation", "Configuration validation test", [])
        payload["triggeredBy"] = "system-validation"
        payload["priority"] = "low"
        try:
            await self._request("POST", self.webhook_url, json=payload, headers=self._headers)
        except ProviderError as e:
            logger.warning("n8n config validation failed", error=str(e))
            return False
        return True


__all__ = ["N8NEvolutionProvider", "render_template"]
