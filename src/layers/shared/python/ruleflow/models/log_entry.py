"""Durable activity log entry."""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import Field

from ruleflow.models.base import BaseModel, sortable_timestamp, utc_now


class LogType(str, Enum):
    """Category of an activity log entry."""

    TRIGGER = "trigger"
    ACTION = "action"
    SYSTEM = "system"
    ERROR = "error"


class LogEntry(BaseModel):
    """Append-only record of an execution, retry, or error.

    Key Pattern:
        PK: LOG#{YYYY-MM-DD}
        SK: {timestamp}#{id}
    """

    _pk_prefix: ClassVar[str] = "LOG#"

    log_type: LogType = Field(..., description="Entry category")
    rule_name: str = Field(default="System", description="Rule the entry belongs to")
    message: str = Field(..., description="Human-readable summary")
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)

    def get_pk(self) -> str:
        """Get partition key: LOG#{date}."""
        return f"LOG#{self.timestamp.date().isoformat()}"

    def get_sk(self) -> str:
        """Get sort key: {timestamp}#{id}."""
        return f"{sortable_timestamp(self.timestamp)}#{self.id}"
