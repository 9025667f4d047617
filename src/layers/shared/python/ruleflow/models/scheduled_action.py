"""Durable record of a delayed rule action."""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import Field

from ruleflow.models.base import BaseModel, sortable_timestamp


class ScheduledActionStatus(str, Enum):
    """Lifecycle of a scheduled action."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScheduledAction(BaseModel):
    """One-shot delayed execution of a rule's action.

    The row is the system of record; in-process timers only shortcut the
    wait for short delays.

    Key Pattern:
        PK: SCHEDULED#{id}
        SK: JOB
        GSI1PK: SCHEDULED_STATUS#{status}
        GSI1SK: {run_at}#{id}
    """

    _pk_prefix: ClassVar[str] = "SCHEDULED#"
    _sk_prefix: ClassVar[str] = "JOB"

    rule_id: str = Field(..., description="Rule to execute")
    rule_name: str = Field(..., description="Rule name at scheduling time")
    trigger_id: str = Field(..., description="Trigger that fired the rule")
    run_at: datetime = Field(..., description="Earliest execution time")
    context: dict[str, Any] = Field(default_factory=dict)

    status: ScheduledActionStatus = Field(default=ScheduledActionStatus.PENDING)
    attempts: int = Field(default=0, ge=0)
    last_error: str | None = None

    def get_pk(self) -> str:
        """Get partition key: SCHEDULED#{id}."""
        return f"SCHEDULED#{self.id}"

    def get_sk(self) -> str:
        """Get sort key: JOB."""
        return "JOB"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for due-job polling."""
        return {
            "GSI1PK": f"SCHEDULED_STATUS#{self.status_value}",
            "GSI1SK": f"{sortable_timestamp(self.run_at)}#{self.id}",
        }

    @property
    def status_value(self) -> str:
        if isinstance(self.status, ScheduledActionStatus):
            return self.status.value
        return str(self.status)
