"""Middleware module."""

from approvalhub.middleware.circuit_breaker import CircuitBreaker, CircuitBreakerOpen, CircuitState

__all__ = ["CircuitBreaker", "CircuitBreakerOpen", "CircuitState"]
