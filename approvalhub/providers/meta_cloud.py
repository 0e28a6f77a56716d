"""Meta WhatsApp Cloud API provider (Graph API messages endpoint)."""

import re
from typing import Any

import httpx
import structlog

from approvalhub.core.exceptions import ConfigValidationFailed, ProviderError
from approvalhub.middleware.circuit_breaker import CircuitBreaker
from approvalhub.models.message import Button, ProviderName, ProviderReceipt
from approvalhub.providers.base import MessagingProvider

logger = structlog.get_logger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com"

# Cloud API limits for reply-button messages.
MAX_BUTTONS = 3
MAX_BUTTON_TITLE = 20
MAX_HEADER_TEXT = 60
MAX_BODY_TEXT = 1024

_NON_DIGITS = re.compile(r"\D")


class MetaCloudProvider(MessagingProvider):
    """Official WhatsApp Business Cloud API.

    Supports native reply buttons, so approval requests sent through it carry
    the `<workflow_id>:<button_id>` ids that come back in button_reply events.
    """

    name = ProviderName.META_CLOUD_API
    supports_interactive = True

    def __init__(
        self,
        *,
        access_token: str,
        phone_number_id: str,
        api_version: str = "v21.0",
        template_language: str = "en",
        default_country_code: str = "91",
        timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        super().__init__(timeout=timeout, http_client=http_client, circuit_breaker=circuit_breaker)
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.template_language = template_language
        self.default_country_code = default_country_code

    @property
    def messages_url(self) -> str:
        return f"{GRAPH_API_BASE}/{self.api_version}/{self.phone_number_id}/messages"

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def format_phone_number(self, phone_number: str) -> str:
        """Digits only, with the default country code added to bare national numbers."""
        cleaned = _NON_DIGITS.sub("", phone_number)
        if len(cleaned) == 10 and not cleaned.startswith(self.default_country_code):
            return f"{self.default_country_code}{cleaned}"
        return cleaned

    def _envelope(self, to: str, message_type: str, **content: Any) -> dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": self.format_phone_number(to),
            "type": message_type,
            **content,
        }

    async def _post_message(self, payload: dict[str, Any], content: str) -> ProviderReceipt:
        response = await self._request("POST", self.messages_url, json=payload, headers=self._headers)
        try:
            provider_message_id = response.json()["messages"][0]["id"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name.value, "unexpected response body") from e
        logger.debug(
            "Meta message accepted",
            message_type=payload["type"],
            provider_message_id=provider_message_id,
        )
        return ProviderReceipt(content=content, provider_message_id=provider_message_id)

    async def send_text(self, to: str, body: str) -> ProviderReceipt:
        payload = self._envelope(to, "text", text={"body": body})
        return await self._post_message(payload, body)

    async def send_template(self, to: str, name: str, params: dict[str, str]) -> ProviderReceipt:
        # Cloud API templates take positional body parameters; dict order is the position.
        template: dict[str, Any] = {
            "name": name,
            "language": {"code": self.template_language},
        }
        if params:
            template["components"] = [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": value} for value in params.values()],
                }
            ]
        payload = self._envelope(to, "template", template=template)
        return await self._post_message(payload, f"Template: {name}")

    async def send_interactive(
        self, to: str, title: str, body: str, buttons: list[Button]
    ) -> ProviderReceipt:
        if not buttons:
            raise ProviderError(self.name.value, "interactive message needs at least one button")
        if len(buttons) > MAX_BUTTONS:
            raise ProviderError(self.name.value, f"at most {MAX_BUTTONS} reply buttons are allowed")

        interactive = {
            "type": "button",
            "header": {"type": "text", "text": title[:MAX_HEADER_TEXT]},
            "body": {"text": body[:MAX_BODY_TEXT]},
            "action": {
                "buttons": [
                    {
                        "type": "reply",
                        "reply": {"id": button.id, "title": button.title[:MAX_BUTTON_TITLE]},
                    }
                    for button in buttons
                ]
            },
        }
        payload = self._envelope(to, "interactive", interactive=interactive)
        return await self._post_message(payload, body)

    async def validate_config(self) -> bool:
        if not self.access_token or not self.phone_number_id:
            raise ConfigValidationFailed(
                "Meta Cloud API requires an access token and a phone number id"
            )
        url = f"{GRAPH_API_BASE}/{self.api_version}/{self.phone_number_id}"
        try:
            await self._request("GET", url, headers=self._headers)
        except ProviderError as e:
            logger.warning("Meta config validation failed", error=str(e))
            return False
        return True

    def _describe_error(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            detail = error.get("message")
        elif isinstance(error, str):
            detail = error
        else:
            detail = None
        return f"Meta API error: {detail or response.reason_phrase} (HTTP {response.status_code})"


__all__ = ["MetaCloudProvider"]
