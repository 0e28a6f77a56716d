"""Provider interface shared by all outbound messaging backends."""

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from approvalhub.core.exceptions import ProviderError
from approvalhub.middleware.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from approvalhub.models.message import Button, ProviderName, ProviderReceipt

logger = structlog.get_logger(__name__)


def is_backend_failure(error: Exception) -> bool:
    """Whether an error says the backend is unhealthy, as opposed to rejecting one request."""
    if isinstance(error, ProviderError) and error.status_code is not None:
        return error.status_code >= 500 or error.status_code in (408, 429)
    return True


class MessagingProvider(ABC):
    """Capability set implemented once per messaging backend.

    Providers perform exactly one HTTP call per send and never retry; the
    dispatcher owns the single fallback attempt. Every failure surfaces as
    ProviderError.
    """

    name: ProviderName
    supports_interactive: bool = False

    def __init__(
        self,
        *,
        timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            label=self.name.value, trips_on=is_backend_failure
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client instance."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    @abstractmethod
    async def send_text(self, to: str, body: str) -> ProviderReceipt:
        """Send a plain text message."""

    @abstractmethod
    async def send_template(self, to: str, name: str, params: dict[str, str]) -> ProviderReceipt:
        """Send a named, pre-registered template with its parameters."""

    @abstractmethod
    async def send_interactive(
        self, to: str, title: str, body: str, buttons: list[Button]
    ) -> ProviderReceipt:
        """Send a message with reply buttons."""

    @abstractmethod
    async def validate_config(self) -> bool:
        """Check the provider's credentials against its backend.

        Raises:
            ConfigValidationFailed: If required configuration is missing.
        """

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Perform one guarded HTTP call and translate failures into ProviderError."""
        try:
            async with self._circuit_breaker:
                response = await self.client.request(method, url, json=json, headers=headers)
                if response.is_error:
                    raise ProviderError(
                        self.name.value,
                        self._describe_error(response),
                        status_code=response.status_code,
                    )
                return response
        except CircuitBreakerOpen as e:
            logger.warning(
                "Provider circuit open",
                provider=self.name.value,
                retry_after=e.retry_after,
            )
            raise ProviderError(self.name.value, "circuit breaker open") from e
        except httpx.TimeoutException as e:
            raise ProviderError(self.name.value, f"timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name.value, f"transport error: {e}") from e
        except ProviderError:
            raise
        except Exception as e:
            logger.error(
                "Unexpected provider failure",
                provider=self.name.value,
                error=str(e),
                exc_info=True,
            )
            raise ProviderError(self.name.value, f"unexpected error: {e}") from e

    def _describe_error(self, response: httpx.Response) -> str:
        return f"HTTP {response.status_code} {response.reason_phrase}"

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


__all__ = ["MessagingProvider", "is_backend_failure"]
