"""Tests for the per-provider circuit breaker."""

import asyncio

import pytest

from approvalhub.middleware import CircuitBreaker, CircuitBreakerOpen, CircuitState


async def _fail(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        try:
            async with breaker:
                raise ValueError("Simulated failure")
        except ValueError:
            pass


class TestCircuitBreaker:
    """Tests for the CircuitBreaker."""

    @pytest.fixture
    def breaker(self) -> CircuitBreaker:
        """Create a circuit breaker for testing."""
        return CircuitBreaker(
            label="meta_cloud_api",
            failure_threshold=3,
            recovery_timeout=0.1,  # 100ms for fast tests
            half_open_max_calls=2,
            success_threshold=2,
        )

    def test_initial_state_closed(self, breaker: CircuitBreaker) -> None:
        """Test that the circuit starts closed."""
        assert breaker.state == CircuitState.CLOSED
        assert breaker.is_open is False

    @pytest.mark.asyncio
    async def test_success_keeps_closed(self, breaker: CircuitBreaker) -> None:
        """Test that successful calls keep the circuit closed."""
        async with breaker:
            pass

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failures_open_circuit(self, breaker: CircuitBreaker) -> None:
        """Test that reaching the failure threshold opens the circuit."""
        await _fail(breaker, 3)

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker: CircuitBreaker) -> None:
        """Test that a success clears the consecutive failure count."""
        await _fail(breaker, 2)
        async with breaker:
            pass
        await _fail(breaker, 2)

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_open_circuit_rejects_calls(self, breaker: CircuitBreaker) -> None:
        """Test that an open circuit rejects calls with retry_after."""
        await _fail(breaker, 3)

        with pytest.raises(CircuitBreakerOpen) as exc_info:
            async with breaker:
                pass

        assert exc_info.value.breaker == "meta_cloud_api"
        assert exc_info.value.retry_after >= 0

    @pytest.mark.asyncio
    async def test_recovery_to_half_open(self, breaker: CircuitBreaker) -> None:
        """Test transition to half-open after the recovery timeout."""
        await _fail(breaker, 3)
        assert breaker.state == CircuitState.OPEN

        await asyncio.sleep(0.15)

        assert breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self, breaker: CircuitBreaker) -> None:
        """Test that a successful half-open call closes the circuit."""
        await _fail(breaker, 3)
        await asyncio.sleep(0.15)

        for _ in range(2):  # success_threshold = 2
            async with breaker:
                pass

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker: CircuitBreaker) -> None:
        """Test that a failed half-open call reopens the circuit."""
        await _fail(breaker, 3)
        await asyncio.sleep(0.15)
        assert breaker.state == CircuitState.HALF_OPEN

        await _fail(breaker, 1)

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_reset(self, breaker: CircuitBreaker) -> None:
        """Test manual reset of the circuit breaker."""
        await _fail(breaker, 3)

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_ignored_errors_do_not_count(self) -> None:
        """Test that errors rejected by trips_on do not count as failures."""
        breaker = CircuitBreaker(
            label="n8n_evolution_api",
            failure_threshold=2,
            trips_on=lambda error: not isinstance(error, ValueError),
        )

        await _fail(breaker, 5)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0
