"""Structured error logging with correlation ids."""

import traceback
import uuid
from typing import Any

import structlog

from ruleflow.models.base import utc_now
from ruleflow.models.log_entry import LogEntry, LogType
from ruleflow.repositories.log import LogRepository
from ruleflow.services.activity_log import to_jsonable
from ruleflow.utils.exceptions import WorkflowError

logger = structlog.get_logger()


def format_stack_trace(error: BaseException) -> str | None:
    """Render an error's traceback, falling back to its cause's.

    Args:
        error: Exception to render.

    Returns:
        Formatted traceback, or None if the error was never raised.
    """
    source = error
    if source.__traceback__ is None and isinstance(error, WorkflowError) and error.cause:
        source = error.cause
    if source.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(source))


class ErrorLogger:
    """Persist error records and hand back an id for user-facing messages.

    ``log_error`` never raises. The id is generated before anything else, so
    even when the log table is unreachable the caller still gets an id and
    the error is written to the process log instead.
    """

    def __init__(self, log_repo: LogRepository | None = None):
        """Initialize error logger.

        Args:
            log_repo: Repository for log entries.
        """
        self.log_repo = log_repo or LogRepository()
        self.logger = logger.bind(service="error_logger")

    async def log_error(
        self,
        error: BaseException,
        context_name: str = "System",
        details: dict[str, Any] | None = None,
    ) -> str:
        """Record an error.

        Args:
            error: The error to record.
            context_name: Rule name or subsystem the error belongs to.
            details: Extra context merged into the record.

        Returns:
            The error id.
        """
        error_id = str(uuid.uuid4())

        try:
            if isinstance(error, WorkflowError):
                error_type, kind = error.name, error.kind.value
            else:
                error_type, kind = type(error).__name__, None

            record = {
                "error_id": error_id,
                "error_type": error_type,
                "kind": kind,
                "message": str(error),
                "stack_trace": format_stack_trace(error),
                "timestamp": utc_now().isoformat(),
                **(details or {}),
            }
            entry = LogEntry(
                log_type=LogType.ERROR,
                rule_name=context_name,
                message=f"Error: {error}",
                details=to_jsonable(record),
            )
            self.log_repo.append(entry)

        except Exception as log_failure:
            self.logger.error(
                "Failed to log error",
                error_id=error_id,
                log_failure=str(log_failure),
                original_error=str(error),
                original_error_type=type(error).__name__,
                context_name=context_name,
            )

        return error_id
