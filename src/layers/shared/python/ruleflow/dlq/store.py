"""Dead letter queue store.

Wraps the DLQ repository with the operations the engine needs: enqueueing a
terminally failed rule action, claiming an item for reprocessing, and
recovering items abandoned mid-processing.
"""

from datetime import datetime
from typing import Any

import structlog

from ruleflow.models.dlq_item import DLQItem, DLQStatus
from ruleflow.models.rule import Rule
from ruleflow.repositories.dead_letter_queue import DeadLetterQueueRepository
from ruleflow.services.activity_log import to_jsonable
from ruleflow.services.error_logger import format_stack_trace
from ruleflow.utils.exceptions import ConflictError

logger = structlog.get_logger()


class DeadLetterQueueStore:
    """Durable record of rule actions that exhausted their retries."""

    def __init__(self, dlq_repo: DeadLetterQueueRepository | None = None):
        """Initialize DLQ store.

        Args:
            dlq_repo: Repository for DLQ items.
        """
        self.dlq_repo = dlq_repo or DeadLetterQueueRepository()
        self.logger = logger.bind(service="dead_letter_queue")

    async def add_to_dead_letter_queue(
        self,
        rule: Rule,
        error: BaseException,
        context: dict[str, Any] | None = None,
    ) -> DLQItem | None:
        """Enqueue a failed rule action.

        Every call creates a new item; duplicates are not detected. A failed
        write is logged locally and never raised.

        Args:
            rule: Rule whose action failed.
            error: Terminal error.
            context: Originating event payload, kept for replay.

        Returns:
            The new item, or None if it could not be stored.
        """
        try:
            item = DLQItem(
                rule_id=rule.id,
                rule_name=rule.name,
                trigger_id=rule.trigger_id,
                action_id=rule.action_id,
                action_params=to_jsonable(rule.action_params),
                context=to_jsonable(context or {}),
                error_message=str(error),
                stack_trace=format_stack_trace(error),
            )
            self.dlq_repo.create_item(item)
        except Exception as e:
            self.logger.error(
                "Failed to add to dead letter queue",
                error=str(e),
                original_error=str(error),
                rule_id=rule.id,
                action_id=rule.action_id,
            )
            return None

        self.logger.info(
            "Action added to dead letter queue",
            item_id=item.id,
            rule_id=rule.id,
            action_id=rule.action_id,
        )
        return item

    def get(self, item_id: str) -> DLQItem | None:
        return self.dlq_repo.get_by_id(item_id)

    def get_many(self, item_ids: list[str]) -> list[DLQItem]:
        return self.dlq_repo.get_many(item_ids)

    def list_pending(
        self,
        limit: int,
        older_than: datetime | None = None,
        max_retry_attempts: int | None = None,
    ) -> list[DLQItem]:
        return self.dlq_repo.list_pending(limit, older_than, max_retry_attempts)

    def claim(self, item: DLQItem) -> DLQItem:
        """Mark an item as processing.

        The write is version-checked, so only one worker can claim an item.

        Args:
            item: Pending item.

        Returns:
            The claimed item.

        Raises:
            ConflictError: If the item cannot move to processing or another
                worker changed it first.
        """
        previous = item.status
        item.transition_to(DLQStatus.PROCESSING)
        try:
            return self.dlq_repo.update_item(item)
        except ConflictError:
            item.status = previous
            raise

    def save(self, item: DLQItem) -> DLQItem:
        """Persist an item's new state.

        Raises:
            ConflictError: If another worker changed the item first.
        """
        return self.dlq_repo.update_item(item)

    def release_stale(self, claimed_before: datetime) -> list[DLQItem]:
        """Return items stuck in processing to pending.

        Args:
            claimed_before: Items claimed before this time are considered abandoned.

        Returns:
            Items that were released.
        """
        released = []
        for item in self.dlq_repo.list_stale_processing(claimed_before):
            item.transition_to(DLQStatus.PENDING)
            try:
                self.dlq_repo.update_item(item)
            except ConflictError:
                # Finished or reclaimed in the meantime
                continue
            released.append(item)

        if released:
            self.logger.warning(
                "Released stale DLQ items",
                count=len(released),
                item_ids=[item.id for item in released],
            )
        return released

    def delete(self, item_id: str) -> bool:
        return self.dlq_repo.delete_item(item_id)
