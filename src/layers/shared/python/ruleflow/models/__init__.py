"""Pydantic models for rule engine entities."""

from ruleflow.models.base import BaseModel, generate_ulid, sortable_timestamp, utc_now
from ruleflow.models.dlq_item import DLQ_TRANSITIONS, DLQItem, DLQStatus
from ruleflow.models.log_entry import LogEntry, LogType
from ruleflow.models.rule import (
    Condition,
    ConditionOperator,
    Rule,
    RuleRef,
    RuleSchedule,
)
from ruleflow.models.scheduled_action import ScheduledAction, ScheduledActionStatus

__all__ = [
    # Base
    "BaseModel",
    "generate_ulid",
    "sortable_timestamp",
    "utc_now",
    # Rules
    "Condition",
    "ConditionOperator",
    "Rule",
    "RuleRef",
    "RuleSchedule",
    # Dead letter queue
    "DLQ_TRANSITIONS",
    "DLQItem",
    "DLQStatus",
    # Logs
    "LogEntry",
    "LogType",
    # Scheduled actions
    "ScheduledAction",
    "ScheduledActionStatus",
]
