"""Safe execution of actions.

Composes the circuit breaker, retry executor, activity log, error logger
and dead letter queue into one call. This is the only place that decides a
failure is terminal and the only writer to the DLQ.
"""

import asyncio
import time
from typing import Any

import structlog

from ruleflow.catalog.base import ActionExecutionResult
from ruleflow.catalog.registry import Catalog, get_catalog
from ruleflow.dlq.store import DeadLetterQueueStore
from ruleflow.execution.circuit_breaker import (
    CircuitBreakerRegistry,
    CircuitOpenError,
    get_circuit_breaker_registry,
)
from ruleflow.execution.retry_policy import RetryConfig, Sleeper, with_retry
from ruleflow.models.rule import Rule
from ruleflow.services.activity_log import ActivityLog
from ruleflow.services.error_logger import ErrorLogger
from ruleflow.utils.exceptions import action_error

logger = structlog.get_logger()

MANUAL_ACTION = "Manual Action"

# Error messages that signal a permanent failure
PERMANENT_ERROR_MARKERS = ("not found", "invalid parameters")


def is_retryable(error: Exception) -> bool:
    """Retry predicate: refuse missing resources and bad parameters.

    Args:
        error: Failure from an attempt.

    Returns:
        True if the error looks transient.
    """
    message = str(error).lower()
    return not any(marker in message for marker in PERMANENT_ERROR_MARKERS)


class ActionExecutor:
    """Run actions with retries, circuit breaking and DLQ escalation."""

    def __init__(
        self,
        catalog: Catalog | None = None,
        breakers: CircuitBreakerRegistry | None = None,
        error_logger: ErrorLogger | None = None,
        activity_log: ActivityLog | None = None,
        dlq_store: DeadLetterQueueStore | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize action executor.

        Args:
            catalog: Available actions.
            breakers: Circuit breaker registry shared by all callers.
            error_logger: Error logger for terminal failures.
            activity_log: Activity log for executions and retries.
            dlq_store: Dead letter queue for failed rule actions.
            retry_config: Default retry settings.
            sleep: Coroutine used for backoff waits.
        """
        self.catalog = catalog or get_catalog()
        self.breakers = breakers or get_circuit_breaker_registry()
        self.error_logger = error_logger or ErrorLogger()
        self.activity_log = activity_log or ActivityLog()
        self.dlq_store = dlq_store or DeadLetterQueueStore()
        self.retry_config = retry_config or RetryConfig()
        self.sleep = sleep
        self.logger = logger.bind(service="action_executor")

    async def execute_action_safely(
        self,
        action_id: str,
        parameters: dict[str, Any],
        rule: Rule | None = None,
        *,
        max_retries: int | None = None,
        is_retry: bool = False,
        context: dict[str, Any] | None = None,
    ) -> ActionExecutionResult:
        """Execute an action, retrying transient failures.

        Args:
            action_id: Action to run.
            parameters: Action parameters.
            rule: Rule that triggered the action. Without one the call is ad
                hoc and failures never reach the DLQ.
            max_retries: Retries after the first attempt; defaults to the
                configured value.
            is_retry: True when reprocessing a DLQ item. The item is updated
                by the caller, so no new DLQ item is created.
            context: Originating event payload, stored with DLQ items.

        Returns:
            ActionExecutionResult of the first successful attempt.

        Raises:
            WorkflowError: Action-kind error whose message ends with
                "(Error ID: <id>)".
        """
        context = context or {}
        rule_name = rule.name if rule else MANUAL_ACTION
        action = self.catalog.get_action(action_id)

        if action is None:
            error = action_error(f"Action with ID {action_id} not found", action_id, parameters)
            error_id = await self.error_logger.log_error(
                error, rule_name, {"action_id": action_id, "parameters": parameters}
            )
            raise error.with_error_id(error_id)

        retries = self.retry_config.max_retries if max_retries is None else max_retries
        config = RetryConfig(
            max_retries=retries,
            base_delay=self.retry_config.base_delay,
            backoff_multiplier=self.retry_config.backoff_multiplier,
        )
        breaker = self.breakers.get_for_action(action_id)
        started = time.monotonic()

        async def attempt() -> ActionExecutionResult:
            result = await action.run(parameters)
            await self.activity_log.action(
                f'Action "{action.name}" executed successfully',
                rule_name,
                action_id=action_id,
                parameters=parameters,
                result=result.to_dict(),
                execution_time_ms=int((time.monotonic() - started) * 1000),
                is_retry=is_retry,
            )
            return result

        async def on_retry(error: Exception, attempt_number: int) -> None:
            await self.activity_log.error(
                f'Retry attempt {attempt_number}/{retries} for action "{action.name}"',
                rule_name,
                action_id=action_id,
                parameters=parameters,
                error=str(error),
                attempt=attempt_number,
            )

        async def retried() -> ActionExecutionResult:
            return await with_retry(
                attempt,
                config,
                retry_condition=is_retryable,
                on_retry=on_retry,
                sleep=self.sleep,
            )

        try:
            return await breaker.execute(retried)
        except Exception as e:
            error = action_error(
                str(e) or "Action execution failed",
                action_id,
                parameters,
                cause=e,
            )
            error_id = await self.error_logger.log_error(
                error,
                rule_name,
                {
                    "action_id": action_id,
                    "parameters": parameters,
                    "rule": rule.to_ref().model_dump() if rule else None,
                    "context": context,
                    "circuit_open": isinstance(e, CircuitOpenError),
                    "is_retry": is_retry,
                },
            )

            if rule is not None and not is_retry:
                await self.dlq_store.add_to_dead_letter_queue(rule, error, context)

            self.logger.warning(
                "Action failed",
                action_id=action_id,
                rule_id=rule.id if rule else None,
                error_id=error_id,
                error=error.message,
            )
            raise error.with_error_id(error_id) from e
