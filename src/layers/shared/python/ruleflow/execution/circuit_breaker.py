"""Circuit breaker for fault-tolerant action execution.

Implements the Circuit Breaker pattern so a failing action type is not
hammered by every rule that uses it. Each breaker guards one resource key
(``action:{action_id}``).

States:
- CLOSED: Normal operation, calls pass through
- OPEN: Resource is failing, calls are rejected immediately
- HALF_OPEN: One trial call is probing for recovery

Transitions:
- CLOSED → OPEN: After failure_threshold consecutive failures
- OPEN → HALF_OPEN: Once recovery_timeout seconds have passed since the last failure
- HALF_OPEN → CLOSED: Trial call succeeds (failure count reset)
- HALF_OPEN → OPEN: Trial call fails (last failure time refreshed)
"""

import inspect
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from ruleflow.utils.exceptions import RuleflowError

logger = structlog.get_logger()

T = TypeVar("T")

OpenHook = Callable[["CircuitBreaker"], Awaitable[Any] | Any]


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for a circuit breaker."""

    failure_threshold: int = 5  # Consecutive failures before opening
    recovery_timeout: float = 60.0  # Seconds after the last failure before a trial call


@dataclass
class CircuitMetrics:
    """Counters for a circuit breaker."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0


class CircuitOpenError(RuleflowError):
    """Raised when a call is rejected without being attempted."""

    def __init__(self, name: str, state: CircuitState, failure_count: int = 0):
        self.name = name
        self.state = state
        self.failure_count = failure_count
        super().__init__(
            message=f"Circuit breaker '{name}' is {state.value}",
            error_code="CIRCUIT_OPEN",
            status_code=503,
            details={"circuit": name, "state": state.value, "failure_count": failure_count},
        )


class CircuitBreaker:
    """Failure-threshold tripwire for a single resource.

    Example:
        breaker = CircuitBreaker("action:send_email")
        result = await breaker.execute(lambda: send_email(params))
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_open: OpenHook | None = None,
    ):
        """Initialize circuit breaker.

        Args:
            name: Resource key (e.g. "action:send_email").
            config: Thresholds; defaults to 5 failures / 60 seconds.
            clock: Monotonic time source in seconds.
            on_open: Hook invoked each time the breaker opens.
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.clock = clock
        self.on_open = on_open

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: float | None = None
        self.metrics = CircuitMetrics()
        self._trial_in_flight = False

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an operation under circuit breaker protection.

        Args:
            operation: Zero-argument coroutine function.

        Returns:
            The operation's result.

        Raises:
            CircuitOpenError: If the call is rejected. The operation is not invoked.
        """
        is_trial = self._admit()

        try:
            result = await operation()
        except Exception:
            if self.record_failure():
                await self._notify_open()
            raise
        else:
            self.record_success()
            return result
        finally:
            if is_trial:
                self._trial_in_flight = False

    def _admit(self) -> bool:
        """Decide whether a call may proceed.

        Returns:
            True if the admitted call is the half-open trial.

        Raises:
            CircuitOpenError: If the call is rejected.
        """
        if self.state == CircuitState.OPEN:
            elapsed = self.clock() - (self.last_failure_time or 0.0)
            if elapsed > self.config.recovery_timeout:
                self._transition_to(CircuitState.HALF_OPEN)
            else:
                self._reject()

        if self.state == CircuitState.HALF_OPEN:
            if self._trial_in_flight:
                self._reject()
            self._trial_in_flight = True
            self.metrics.total_calls += 1
            return True

        self.metrics.total_calls += 1
        return False

    def _reject(self) -> None:
        self.metrics.rejected_calls += 1
        logger.debug(
            "Circuit breaker rejected call",
            circuit=self.name,
            state=self.state.value,
            failure_count=self.failure_count,
        )
        raise CircuitOpenError(self.name, self.state, self.failure_count)

    def record_success(self) -> None:
        """Record a successful call."""
        self.metrics.successful_calls += 1

        if self.state == CircuitState.HALF_OPEN:
            self.failure_count = 0
            self._transition_to(CircuitState.CLOSED)
        elif self.state == CircuitState.CLOSED:
            self.failure_count = 0

    def record_failure(self) -> bool:
        """Record a failed call.

        Returns:
            True if this failure opened the circuit.
        """
        self.metrics.failed_calls += 1
        self.failure_count += 1
        self.last_failure_time = self.clock()

        if self.state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
            return True

        if self.state == CircuitState.CLOSED and self.failure_count >= self.config.failure_threshold:
            self._transition_to(CircuitState.OPEN)
            return True

        return False

    def reset(self) -> None:
        """Force the breaker back to closed with a clean slate."""
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time = None
        self._trial_in_flight = False
        logger.info("Circuit breaker manually reset", circuit=self.name)

    def snapshot(self) -> dict[str, Any]:
        """Get the breaker's current state.

        Returns:
            Dict of state and counters.
        """
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time,
            "metrics": {
                "total_calls": self.metrics.total_calls,
                "successful_calls": self.metrics.successful_calls,
                "failed_calls": self.metrics.failed_calls,
                "rejected_calls": self.metrics.rejected_calls,
            },
            "config": {
                "failure_threshold": self.config.failure_threshold,
                "recovery_timeout": self.config.recovery_timeout,
            },
        }

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self.state
        self.state = new_state

        logger.info(
            "Circuit breaker state transition",
            circuit=self.name,
            old_state=old_state.value,
            new_state=new_state.value,
            failure_count=self.failure_count,
        )

    async def _notify_open(self) -> None:
        if self.on_open is None:
            return
        try:
            outcome = self.on_open(self)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(
                "Circuit breaker open hook failed",
                circuit=self.name,
                error=str(e),
            )


class CircuitBreakerRegistry:
    """Registry holding one circuit breaker per resource key.

    Breakers are created lazily and kept for the lifetime of the registry.
    Lookups and inserts are guarded by a lock so the registry can be shared
    across threads as well as tasks.

    Example:
        registry = CircuitBreakerRegistry()
        breaker = registry.get_for_action("send_email")
        result = await breaker.execute(operation)
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_open: OpenHook | None = None,
    ):
        """Initialize the circuit breaker registry.

        Args:
            default_config: Configuration for new circuit breakers.
            clock: Time source shared by all breakers.
            on_open: Hook invoked whenever any breaker opens.
        """
        self.default_config = default_config or CircuitBreakerConfig()
        self.clock = clock
        self.on_open = on_open

        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(service="circuit_breaker_registry")

    def get(self, name: str, config: CircuitBreakerConfig | None = None) -> CircuitBreaker:
        """Get or create a circuit breaker.

        Args:
            name: Resource key.
            config: Optional configuration for a newly created breaker.

        Returns:
            CircuitBreaker instance.
        """
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(
                    name,
                    config=config or self.default_config,
                    clock=self.clock,
                    on_open=self._dispatch_open,
                )
                self._breakers[name] = breaker
                self.logger.debug("Circuit breaker created", circuit=name)
            return breaker

    def get_for_action(self, action_id: str) -> CircuitBreaker:
        """Get the breaker guarding an action type.

        Args:
            action_id: Action identifier.

        Returns:
            CircuitBreaker keyed "action:{action_id}".
        """
        return self.get(f"action:{action_id}")

    def is_open(self, name: str) -> bool:
        """Check if a circuit is open.

        Args:
            name: Resource key.

        Returns:
            True if the breaker exists and is open.
        """
        with self._lock:
            breaker = self._breakers.get(name)
        return breaker is not None and breaker.state == CircuitState.OPEN

    def reset(self, name: str) -> None:
        """Reset a circuit breaker to closed state.

        Args:
            name: Resource key.
        """
        with self._lock:
            breaker = self._breakers.get(name)
        if breaker is not None:
            breaker.reset()

    def get_all(self) -> dict[str, dict[str, Any]]:
        """Get status of all circuit breakers.

        Returns:
            Dict of breaker snapshots by name.
        """
        with self._lock:
            breakers = list(self._breakers.values())
        return {breaker.name: breaker.snapshot() for breaker in breakers}

    def _dispatch_open(self, breaker: CircuitBreaker) -> Awaitable[Any] | Any:
        # Resolved at call time so the hook can be wired after construction
        if self.on_open is None:
            return None
        return self.on_open(breaker)


# Singleton instance
_circuit_breaker_registry: CircuitBreakerRegistry | None = None


def get_circuit_breaker_registry() -> CircuitBreakerRegistry:
    """Get the global CircuitBreakerRegistry instance.

    Returns:
        CircuitBreakerRegistry instance.
    """
    global _circuit_breaker_registry
    if _circuit_breaker_registry is None:
        _circuit_breaker_registry = CircuitBreakerRegistry()
    return _circuit_breaker_registry
