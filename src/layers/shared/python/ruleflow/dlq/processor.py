"""Dead letter queue reprocessing.

A sweep selects pending items oldest first and runs each one again through
the action executor, one at a time, with a single extra attempt. Each item
is replayed with the rule's *current* action and parameters, so fixing a
rule and retrying its DLQ items is the normal recovery path.

Only one sweep runs at a time: an in-process lock covers concurrent calls in
one process, and an optional table lease covers concurrent workers.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

import structlog
from botocore.exceptions import ClientError

from ruleflow.dlq.store import DeadLetterQueueStore
from ruleflow.execution.action_executor import ActionExecutor
from ruleflow.models.base import utc_now
from ruleflow.models.dlq_item import DLQItem, DLQStatus
from ruleflow.repositories.lease import LeaseRepository
from ruleflow.repositories.rule import RuleRepository
from ruleflow.services.activity_log import ActivityLog
from ruleflow.services.error_logger import ErrorLogger
from ruleflow.utils.exceptions import (
    ConflictError,
    NotFoundError,
    RuleflowError,
    WorkflowError,
    configuration_error,
    database_error,
    rule_evaluation_error,
)

logger = structlog.get_logger()

SWEEP_LEASE_NAME = "dlq_sweep"


class SweepInProgressError(RuleflowError):
    """Raised when a DLQ sweep is requested while another one is running."""

    def __init__(self):
        super().__init__(
            message="A dead letter queue sweep is already in progress",
            error_code="SWEEP_IN_PROGRESS",
            status_code=409,
        )


@dataclass
class ItemResult:
    """Outcome of reprocessing one DLQ item."""

    item_id: str
    rule_name: str
    success: bool
    status: str
    result: dict[str, Any] | None = None
    error: str | None = None
    error_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "rule_name": self.rule_name,
            "success": self.success,
            "status": self.status,
            "result": self.result,
            "error": self.error,
            "error_id": self.error_id,
        }


@dataclass
class BatchResult:
    """Outcome of a DLQ sweep."""

    processed: int
    results: list[ItemResult]

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "results": [result.to_dict() for result in self.results],
        }


class DeadLetterQueueProcessor:
    """Reprocesses DLQ items through the action executor."""

    def __init__(
        self,
        executor: ActionExecutor,
        store: DeadLetterQueueStore | None = None,
        rule_repo: RuleRepository | None = None,
        activity_log: ActivityLog | None = None,
        error_logger: ErrorLogger | None = None,
        lease_repo: LeaseRepository | None = None,
        max_retry_attempts: int = 3,
        stale_processing_minutes: int = 30,
        lease_seconds: int = 300,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize DLQ processor.

        Args:
            executor: Action executor used for replays.
            store: DLQ store.
            rule_repo: Rule store, read for the latest rule definition.
            activity_log: Activity log.
            error_logger: Error logger.
            lease_repo: Table lease for cross-process single-flight; None
                relies on the in-process lock alone.
            max_retry_attempts: Attempts after which an item is failed.
            stale_processing_minutes: Age after which a processing item is
                considered abandoned.
            lease_seconds: Sweep lease lifetime.
            clock: Current UTC time.
        """
        self.executor = executor
        self.store = store or DeadLetterQueueStore()
        self.rule_repo = rule_repo or RuleRepository()
        self.activity_log = activity_log or ActivityLog()
        self.error_logger = error_logger or ErrorLogger()
        self.lease_repo = lease_repo
        self.max_retry_attempts = max_retry_attempts
        self.stale_processing_minutes = stale_processing_minutes
        self.lease_seconds = lease_seconds
        self.clock = clock

        self._sweep_lock = asyncio.Lock()
        self.logger = logger.bind(service="dlq_processor")

    async def process_batch(
        self,
        limit: int = 10,
        older_than_minutes: int = 5,
        specific_ids: list[str] | None = None,
        max_retry_attempts: int | None = None,
    ) -> BatchResult:
        """Run one sweep.

        Args:
            limit: Maximum items to process.
            older_than_minutes: Only items that failed at least this long ago;
                0 disables the age filter.
            specific_ids: Restrict the sweep to these item ids.
            max_retry_attempts: Skip items with this many attempts already.

        Returns:
            BatchResult with one ItemResult per processed item.

        Raises:
            SweepInProgressError: If another sweep holds the lock or lease.
        """
        if self._sweep_lock.locked():
            raise SweepInProgressError()

        async with self._sweep_lock:
            owner = None
            if self.lease_repo is not None:
                owner = str(uuid.uuid4())
                if not self.lease_repo.acquire(SWEEP_LEASE_NAME, owner, self.lease_seconds):
                    raise SweepInProgressError()

            try:
                return await self._sweep(
                    limit,
                    older_than_minutes,
                    specific_ids,
                    max_retry_attempts or self.max_retry_attempts,
                )
            finally:
                if owner is not None:
                    self.lease_repo.release(SWEEP_LEASE_NAME, owner)

    async def _sweep(
        self,
        limit: int,
        older_than_minutes: int,
        specific_ids: list[str] | None,
        max_retry_attempts: int,
    ) -> BatchResult:
        try:
            stale_cutoff = self.clock() - timedelta(minutes=self.stale_processing_minutes)
            self.store.release_stale(stale_cutoff)
            items = self._select(limit, older_than_minutes, specific_ids, max_retry_attempts)
        except Exception as e:
            if isinstance(e, WorkflowError):
                error = e
            elif isinstance(e, ClientError):
                error = database_error(f"DLQ batch selection failed: {e}", cause=e)
            else:
                error = configuration_error(f"DLQ batch selection failed: {e}", cause=e)
            await self.error_logger.log_error(
                error,
                "System",
                {
                    "operation": "process_dlq_batch",
                    "options": {
                        "limit": limit,
                        "older_than_minutes": older_than_minutes,
                        "specific_ids": specific_ids,
                        "max_retry_attempts": max_retry_attempts,
                    },
                },
            )
            raise

        if not items:
            return BatchResult(processed=0, results=[])

        self.logger.info("Processing DLQ batch", count=len(items))

        results = []
        for item in items:
            results.append(await self.process_item(item, max_retry_attempts))

        return BatchResult(processed=len(items), results=results)

    def _select(
        self,
        limit: int,
        older_than_minutes: int,
        specific_ids: list[str] | None,
        max_retry_attempts: int,
    ) -> list[DLQItem]:
        older_than = None
        if older_than_minutes > 0:
            older_than = self.clock() - timedelta(minutes=older_than_minutes)

        if not specific_ids:
            return self.store.list_pending(limit, older_than, max_retry_attempts)

        items = [
            item
            for item in self.store.get_many(specific_ids)
            if item.status_value == DLQStatus.PENDING.value
            and item.retry_attempts < max_retry_attempts
            and (older_than is None or item.timestamp < older_than)
        ]
        items.sort(key=lambda item: (item.timestamp, item.id))
        return items[:limit]

    async def process_item(
        self,
        item: DLQItem,
        max_retry_attempts: int | None = None,
    ) -> ItemResult:
        """Reprocess one item.

        Args:
            item: Pending item.
            max_retry_attempts: Attempts after which the item is failed.

        Returns:
            ItemResult describing the attempt.
        """
        max_attempts = max_retry_attempts or self.max_retry_attempts

        rule = self.rule_repo.get_by_id(item.rule_id)
        if rule is None:
            error = f"Rule not found: {item.rule_id}"
            item.record_attempt(
                DLQStatus.FAILED,
                {"success": False, "error": error, "timestamp": self.clock().isoformat()},
            )
            await self._save(item)
            return ItemResult(
                item_id=item.id,
                rule_name=item.rule_name,
                success=False,
                status=item.status_value,
                error=error,
            )

        try:
            self.store.claim(item)
        except ConflictError as e:
            return ItemResult(
                item_id=item.id,
                rule_name=item.rule_name,
                success=False,
                status=item.status_value,
                error=str(e),
            )

        try:
            result = await self.executor.execute_action_safely(
                rule.action_id,
                rule.action_params,
                rule,
                max_retries=1,
                is_retry=True,
                context=item.context,
            )
        except Exception as e:
            error_id = e.details.get("error_id") if isinstance(e, RuleflowError) else None
            if error_id is None:
                error_id = await self.error_logger.log_error(
                    rule_evaluation_error(str(e), rule.id, cause=e),
                    item.rule_name,
                    {"dlq_item_id": item.id, "retry_attempt": item.retry_attempts + 1},
                )

            next_status = (
                DLQStatus.FAILED
                if item.retry_attempts + 1 >= max_attempts
                else DLQStatus.PENDING
            )
            item.record_attempt(
                next_status,
                {
                    "success": False,
                    "error": str(e),
                    "error_id": error_id,
                    "timestamp": self.clock().isoformat(),
                },
            )
            await self._save(item)

            self.logger.info(
                "DLQ item retry failed",
                item_id=item.id,
                retry_attempts=item.retry_attempts,
                status=item.status_value,
            )
            return ItemResult(
                item_id=item.id,
                rule_name=item.rule_name,
                success=False,
                status=item.status_value,
                error=str(e),
                error_id=error_id,
            )

        outcome = result.to_dict()
        item.record_attempt(
            DLQStatus.PROCESSED,
            {"success": True, "result": outcome, "timestamp": self.clock().isoformat()},
        )
        await self._save(item)

        await self.activity_log.system(
            f'Successfully processed dead letter queue item for rule "{item.rule_name}"',
            item.rule_name,
            dlq_item_id=item.id,
            result=outcome,
            retry_attempt=item.retry_attempts,
        )
        return ItemResult(
            item_id=item.id,
            rule_name=item.rule_name,
            success=True,
            status=item.status_value,
            result=outcome,
        )

    async def retry_item(self, item_id: str) -> ItemResult:
        """Reprocess one item on demand.

        Args:
            item_id: DLQ item ID.

        Returns:
            ItemResult describing the attempt.

        Raises:
            NotFoundError: If no such item exists.
            ConflictError: If the item is finished or being processed.
        """
        item = self.store.get(item_id)
        if item is None:
            raise NotFoundError("DLQItem", item_id)

        if item.status_value != DLQStatus.PENDING.value:
            raise ConflictError(
                f"DLQ item {item_id} is {item.status_value} and cannot be retried",
                conflict_type="invalid_transition",
            )

        return await self.process_item(item)

    async def _save(self, item: DLQItem) -> None:
        try:
            self.store.save(item)
        except Exception as e:
            # The item stays in processing and is released by a later sweep
            await self.error_logger.log_error(
                database_error(f"Failed to save DLQ item {item.id}", cause=e),
                item.rule_name,
                {"dlq_item_id": item.id, "status": item.status_value},
            )
