"""Best-effort writer for the durable activity log."""

import json
from typing import Any

import structlog

from ruleflow.models.log_entry import LogEntry, LogType
from ruleflow.repositories.log import LogRepository

logger = structlog.get_logger()


def to_jsonable(value: Any) -> Any:
    """Reduce arbitrary details to JSON-compatible data.

    Unknown objects (exceptions, models, dataclasses) are stringified so a
    log write never fails on serialization.
    """
    return json.loads(json.dumps(value, default=str))


class ActivityLog:
    """Append entries to the activity log without ever raising.

    A failed write is reported to the process log and the caller carries on;
    logging must not break the action that is being logged.
    """

    def __init__(self, log_repo: LogRepository | None = None):
        """Initialize activity log.

        Args:
            log_repo: Repository for log entries.
        """
        self.log_repo = log_repo or LogRepository()
        self.logger = logger.bind(service="activity_log")

    async def record(
        self,
        log_type: LogType,
        message: str,
        rule_name: str = "System",
        details: dict[str, Any] | None = None,
    ) -> LogEntry | None:
        """Write one entry.

        Args:
            log_type: Entry category.
            message: Human-readable summary.
            rule_name: Rule the entry belongs to.
            details: Structured context.

        Returns:
            The written entry, or None if the write failed.
        """
        try:
            entry = LogEntry(
                log_type=log_type,
                rule_name=rule_name,
                message=message,
                details=to_jsonable(details or {}),
            )
            return self.log_repo.append(entry)
        except Exception as e:
            self.logger.warning(
                "Failed to write activity log entry",
                error=str(e),
                log_type=LogType(log_type).value,
                rule_name=rule_name,
                log_message=message,
            )
            return None

    async def trigger(self, message: str, **details: Any) -> LogEntry | None:
        return await self.record(LogType.TRIGGER, message, details=details)

    async def action(self, message: str, rule_name: str, **details: Any) -> LogEntry | None:
        return await self.record(LogType.ACTION, message, rule_name, details)

    async def system(self, message: str, rule_name: str = "System", **details: Any) -> LogEntry | None:
        return await self.record(LogType.SYSTEM, message, rule_name, details)

    async def error(self, message: str, rule_name: str = "System", **details: Any) -> LogEntry | None:
        return await self.record(LogType.ERROR, message, rule_name, details)
