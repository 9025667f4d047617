"""Dead letter queue item model."""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import Field

from ruleflow.models.base import BaseModel, sortable_timestamp, utc_now
from ruleflow.utils.exceptions import ConflictError


class DLQStatus(str, Enum):
    """Lifecycle of a dead letter queue item."""

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


# Allowed status transitions. PROCESSED and FAILED are terminal.
DLQ_TRANSITIONS: dict[DLQStatus, frozenset[DLQStatus]] = {
    DLQStatus.PENDING: frozenset(
        {DLQStatus.PROCESSING, DLQStatus.PROCESSED, DLQStatus.FAILED}
    ),
    DLQStatus.PROCESSING: frozenset(
        {DLQStatus.PROCESSED, DLQStatus.PENDING, DLQStatus.FAILED}
    ),
    DLQStatus.PROCESSED: frozenset(),
    DLQStatus.FAILED: frozenset(),
}


class DLQItem(BaseModel):
    """A rule-driven action invocation that exhausted its retries.

    Key Pattern:
        PK: DLQ#{id}
        SK: ITEM
        GSI1PK: DLQ_STATUS#{status}
        GSI1SK: {timestamp}#{id}
    """

    _pk_prefix: ClassVar[str] = "DLQ#"
    _sk_prefix: ClassVar[str] = "ITEM"

    rule_id: str = Field(..., description="Rule whose action failed")
    rule_name: str = Field(..., description="Rule name at failure time")
    trigger_id: str = Field(..., description="Trigger that fired the rule")
    action_id: str = Field(..., description="Action that failed")
    action_params: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(
        default_factory=dict, description="Originating event payload for replay"
    )

    error_message: str = Field(..., description="Terminal error message")
    stack_trace: str | None = None

    status: DLQStatus = Field(default=DLQStatus.PENDING)
    retry_attempts: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=utc_now, description="Failure time")
    last_processed_at: datetime | None = None
    processing_result: dict[str, Any] | None = None

    def get_pk(self) -> str:
        """Get partition key: DLQ#{id}."""
        return f"DLQ#{self.id}"

    def get_sk(self) -> str:
        """Get sort key: ITEM."""
        return "ITEM"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for oldest-first selection by status."""
        return {
            "GSI1PK": f"DLQ_STATUS#{self.status_value}",
            "GSI1SK": f"{sortable_timestamp(self.timestamp)}#{self.id}",
        }

    @property
    def status_value(self) -> str:
        return self.status.value if isinstance(self.status, DLQStatus) else str(self.status)

    @property
    def is_terminal(self) -> bool:
        return not DLQ_TRANSITIONS[DLQStatus(self.status)]

    def transition_to(self, new_status: DLQStatus) -> None:
        """Move to a new status, enforcing the lifecycle.

        Args:
            new_status: Target status.

        Raises:
            ConflictError: If the transition is not allowed.
        """
        current = DLQStatus(self.status)
        new_status = DLQStatus(new_status)
        if new_status not in DLQ_TRANSITIONS[current]:
            raise ConflictError(
                f"DLQ item {self.id} cannot move from {current.value} to {new_status.value}",
                conflict_type="invalid_transition",
            )
        self.status = new_status

    def record_attempt(
        self,
        new_status: DLQStatus,
        processing_result: dict[str, Any],
    ) -> None:
        """Record the outcome of a reprocessing attempt.

        Args:
            new_status: Status after the attempt.
            processing_result: Outcome details to store on the item.
        """
        self.transition_to(new_status)
        self.retry_attempts += 1
        self.last_processed_at = utc_now()
        self.processing_result = processing_result
