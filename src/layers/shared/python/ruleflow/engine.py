"""Rule engine composition root.

Builds one instance of every collaborator from ``EngineSettings`` and wires
them together: the circuit breaker registry, the action executor, the
delayed action scheduler, the trigger dispatcher and the DLQ processor.
Workers and tests talk to the engine through ``RuleEngine`` only.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable

import structlog

from ruleflow.catalog.base import ActionExecutionResult
from ruleflow.catalog.registry import Catalog, get_catalog
from ruleflow.config import EngineSettings
from ruleflow.dlq.processor import BatchResult, DeadLetterQueueProcessor, ItemResult
from ruleflow.dlq.store import DeadLetterQueueStore
from ruleflow.execution.action_executor import ActionExecutor
from ruleflow.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from ruleflow.execution.retry_policy import RetryConfig, Sleeper
from ruleflow.models.base import utc_now
from ruleflow.models.rule import Rule
from ruleflow.models.scheduled_action import ScheduledAction
from ruleflow.repositories.dead_letter_queue import DeadLetterQueueRepository
from ruleflow.repositories.lease import LeaseRepository
from ruleflow.repositories.log import LogRepository
from ruleflow.repositories.rule import RuleRepository
from ruleflow.repositories.scheduled_action import ScheduledActionRepository
from ruleflow.services.activity_log import ActivityLog
from ruleflow.services.error_logger import ErrorLogger
from ruleflow.services.scheduler import DelayedActionScheduler
from ruleflow.services.trigger_dispatcher import DispatchResult, TriggerDispatcher
from ruleflow.utils.exceptions import configuration_error

logger = structlog.get_logger()


class RuleEngine:
    """Entry point for dispatching triggers and recovering failed actions.

    Example:
        engine = RuleEngine(EngineSettings.from_env())
        result = await engine.dispatch_trigger("guest_checkin", {"guestId": "g-1"})
        await engine.process_dlq_batch(limit=20)
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        catalog: Catalog | None = None,
        breakers: CircuitBreakerRegistry | None = None,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the engine.

        Args:
            settings: Engine settings; defaults to the environment.
            catalog: Trigger and action catalog.
            breakers: Circuit breaker registry. A private one is built from
                the settings when omitted.
            sleep: Coroutine used for backoff and delay waits.
            clock: Current UTC time.
        """
        self.settings = settings or EngineSettings.from_env()
        self.catalog = catalog or get_catalog()
        self.breakers = breakers or CircuitBreakerRegistry(
            CircuitBreakerConfig(
                failure_threshold=self.settings.circuit_failure_threshold,
                recovery_timeout=self.settings.circuit_recovery_timeout,
            )
        )
        self.breakers.on_open = self._on_circuit_open

        table_name = self.settings.table_name
        self.rule_repo = RuleRepository(table_name)
        self.log_repo = LogRepository(table_name)
        self.dlq_repo = DeadLetterQueueRepository(table_name)
        self.job_repo = ScheduledActionRepository(table_name)

        self.activity_log = ActivityLog(self.log_repo)
        self.error_logger = ErrorLogger(self.log_repo)
        self.dlq_store = DeadLetterQueueStore(self.dlq_repo)

        self.executor = ActionExecutor(
            catalog=self.catalog,
            breakers=self.breakers,
            error_logger=self.error_logger,
            activity_log=self.activity_log,
            dlq_store=self.dlq_store,
            retry_config=RetryConfig(
                max_retries=self.settings.max_retries,
                base_delay=self.settings.retry_base_delay,
                backoff_multiplier=self.settings.backoff_multiplier,
            ),
            sleep=sleep,
        )
        self.scheduler = DelayedActionScheduler(
            self.executor,
            job_repo=self.job_repo,
            rule_repo=self.rule_repo,
            activity_log=self.activity_log,
            error_logger=self.error_logger,
            inprocess_horizon=self.settings.inprocess_delay_horizon,
            stale_running_minutes=self.settings.scheduled_stale_running_minutes,
            clock=clock,
            sleep=sleep,
        )
        self.dispatcher = TriggerDispatcher(
            self.executor,
            self.scheduler,
            catalog=self.catalog,
            rule_repo=self.rule_repo,
            activity_log=self.activity_log,
            error_logger=self.error_logger,
        )
        self.dlq_processor = DeadLetterQueueProcessor(
            self.executor,
            store=self.dlq_store,
            rule_repo=self.rule_repo,
            activity_log=self.activity_log,
            error_logger=self.error_logger,
            lease_repo=LeaseRepository(table_name) if self.settings.use_sweep_lease else None,
            max_retry_attempts=self.settings.dlq_max_retry_attempts,
            stale_processing_minutes=self.settings.dlq_stale_processing_minutes,
            lease_seconds=self.settings.sweep_lease_seconds,
            clock=clock,
        )

        self.logger = logger.bind(service="rule_engine")

    async def dispatch_trigger(self, trigger_id: str, parameters: dict[str, Any]) -> DispatchResult:
        """Fire a trigger against every enabled rule listening for it."""
        return await self.dispatcher.dispatch(trigger_id, parameters)

    async def execute_action_safely(
        self,
        action_id: str,
        parameters: dict[str, Any],
        rule: Rule | None = None,
        **options: Any,
    ) -> ActionExecutionResult:
        """Run one action with retries, circuit breaking and DLQ escalation.

        Options are passed through to ``ActionExecutor.execute_action_safely``.
        """
        return await self.executor.execute_action_safely(action_id, parameters, rule, **options)

    async def process_dlq_batch(self, limit: int | None = None, **options: Any) -> BatchResult:
        """Sweep the dead letter queue.

        Args:
            limit: Maximum items; defaults to the configured batch limit.
            **options: older_than_minutes, specific_ids, max_retry_attempts.

        Returns:
            BatchResult for the sweep.
        """
        options.setdefault("older_than_minutes", self.settings.dlq_older_than_minutes)
        return await self.dlq_processor.process_batch(
            limit=self.settings.dlq_batch_limit if limit is None else limit, **options
        )

    async def retry_dlq_item(self, item_id: str) -> ItemResult:
        """Retry one DLQ item now.

        Raises:
            NotFoundError: If no such item exists.
            ConflictError: If the item cannot be retried.
        """
        return await self.dlq_processor.retry_item(item_id)

    async def run_due_actions(self, limit: int = 100) -> list[ScheduledAction]:
        """Run delayed actions whose time has come."""
        return await self.scheduler.run_due_actions(limit)

    async def shutdown(self) -> None:
        """Cancel in-process timers. Their jobs remain for run_due_actions."""
        await self.scheduler.shutdown()

    async def _on_circuit_open(self, breaker: CircuitBreaker) -> None:
        error = configuration_error(
            f"Circuit breaker opened for {breaker.name} after {breaker.failure_count} failures"
        )
        await self.error_logger.log_error(
            error,
            "System",
            {
                "circuit_breaker_name": breaker.name,
                "failure_count": breaker.failure_count,
            },
        )


# Singleton instance
_rule_engine: RuleEngine | None = None


def get_rule_engine() -> RuleEngine:
    """Get the global RuleEngine instance.

    Returns:
        RuleEngine built from the environment.
    """
    global _rule_engine
    if _rule_engine is None:
        _rule_engine = RuleEngine()
    return _rule_engine
