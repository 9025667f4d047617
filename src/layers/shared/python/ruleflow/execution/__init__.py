"""Fault-tolerant action execution."""

from ruleflow.execution.action_executor import ActionExecutor, is_retryable
from ruleflow.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitOpenError,
    CircuitState,
    get_circuit_breaker_registry,
)
from ruleflow.execution.retry_policy import RetryConfig, RetryPolicy, with_retry

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitOpenError",
    "CircuitState",
    "get_circuit_breaker_registry",
    # Retry
    "RetryConfig",
    "RetryPolicy",
    "with_retry",
    # Executor
    "ActionExecutor",
    "is_retryable",
]
