"""Repository for dead letter queue items."""

from datetime import datetime

import structlog

from ruleflow.models.base import sortable_timestamp
from ruleflow.models.dlq_item import DLQItem, DLQStatus
from ruleflow.repositories.base import BaseRepository

logger = structlog.get_logger()


class DeadLetterQueueRepository(BaseRepository[DLQItem]):
    """Repository for DLQ items.

    Items are indexed on GSI1 by status with a timestamp-ordered sort key, so
    a query on ``DLQ_STATUS#pending`` returns the oldest failures first.
    """

    def __init__(self, table_name: str | None = None):
        """Initialize DLQ repository.

        Args:
            table_name: DynamoDB table name.
        """
        super().__init__(DLQItem, table_name)

    def get_by_id(self, item_id: str) -> DLQItem | None:
        """Get a DLQ item by ID.

        Args:
            item_id: DLQ item ID.

        Returns:
            DLQItem or None if not found.
        """
        return self.get(pk=f"DLQ#{item_id}", sk="ITEM")

    def create_item(self, item: DLQItem) -> DLQItem:
        """Create a new DLQ item.

        Args:
            item: Item to create.

        Returns:
            Created item.
        """
        return self.create(item)

    def update_item(self, item: DLQItem) -> DLQItem:
        """Save an item's new state, failing on concurrent modification.

        Args:
            item: Item to save.

        Returns:
            Updated item.

        Raises:
            ConflictError: If another process changed the item first.
        """
        return self.update(item)

    def list_pending(
        self,
        limit: int,
        older_than: datetime | None = None,
        max_retry_attempts: int | None = None,
    ) -> list[DLQItem]:
        """List pending items eligible for reprocessing, oldest first.

        Args:
            limit: Maximum items to return.
            older_than: Only items that failed before this time.
            max_retry_attempts: Only items with fewer attempts than this.

        Returns:
            Pending items ordered by failure timestamp.
        """
        kwargs = {}
        if older_than is not None:
            # GSI1SK is "{timestamp}#{id}"; a bare cutoff timestamp sorts after
            # every key with an earlier timestamp
            kwargs["sk_before"] = sortable_timestamp(older_than)
        if max_retry_attempts is not None:
            kwargs["filter_expression"] = "retry_attempts < :max_attempts"
            kwargs["expression_values"] = {":max_attempts": max_retry_attempts}

        return self.query_all(
            pk=f"DLQ_STATUS#{DLQStatus.PENDING.value}",
            index_name="GSI1",
            scan_forward=True,
            max_items=limit,
            **kwargs,
        )

    def get_many(self, item_ids: list[str]) -> list[DLQItem]:
        """Get several items by ID.

        Args:
            item_ids: DLQ item IDs; unknown IDs are skipped.

        Returns:
            Found items, in no particular order.
        """
        unique_ids = list(dict.fromkeys(item_ids))
        return self.batch_get([(f"DLQ#{item_id}", "ITEM") for item_id in unique_ids])

    def list_by_status(self, status: DLQStatus | str, limit: int = 100) -> list[DLQItem]:
        """List items in a given status, oldest first.

        Args:
            status: DLQ status.
            limit: Maximum items to return.

        Returns:
            List of DLQ items.
        """
        return self.query_all(
            pk=f"DLQ_STATUS#{DLQStatus(status).value}",
            index_name="GSI1",
            max_items=limit,
        )

    def list_stale_processing(self, claimed_before: datetime) -> list[DLQItem]:
        """List items stuck in processing since before a cutoff.

        Args:
            claimed_before: Items whose last update is older than this are stale.

        Returns:
            Stale processing items.
        """
        items = self.query_all(
            pk=f"DLQ_STATUS#{DLQStatus.PROCESSING.value}",
            index_name="GSI1",
        )
        return [item for item in items if item.updated_at < claimed_before]

    def delete_item(self, item_id: str) -> bool:
        """Delete a DLQ item (operator action).

        Args:
            item_id: DLQ item ID.

        Returns:
            True if deleted, False if not found.
        """
        deleted = self.delete(pk=f"DLQ#{item_id}", sk="ITEM")
        if deleted:
            logger.info("DLQ item deleted", item_id=item_id)
        return deleted
