"""Custom exception classes for ruleflow."""

from enum import Enum
from typing import Any


class RuleflowError(Exception):
    """Base exception for all ruleflow errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
    ):
        """Initialize RuleflowError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP status code for worker responses.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for worker responses."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(RuleflowError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        """Initialize NotFoundError.

        Args:
            resource_type: Type of resource (e.g., "Rule", "DLQItem").
            resource_id: ID of the resource that was not found.
            message: Optional custom message.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=message or f"{resource_type} with ID '{resource_id}' not found",
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ValidationError(RuleflowError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[dict] | None = None,
    ):
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
        )


class ConflictError(RuleflowError):
    """Raised when there's a conflict (e.g., optimistic lock failure, bad state transition)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        conflict_type: str | None = None,
    ):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details={"conflict_type": conflict_type} if conflict_type else None,
        )


class ErrorKind(str, Enum):
    """Discriminant for WorkflowError."""

    TRIGGER = "trigger"
    ACTION = "action"
    RULE_EVALUATION = "rule_evaluation"
    SCHEDULING = "scheduling"
    CONFIGURATION = "configuration"
    DATABASE = "database"


# Message prefixes and error codes per kind
_KIND_PREFIXES: dict[ErrorKind, str] = {
    ErrorKind.TRIGGER: "Trigger error",
    ErrorKind.ACTION: "Action error",
    ErrorKind.RULE_EVALUATION: "Rule evaluation error",
    ErrorKind.SCHEDULING: "Scheduling error",
    ErrorKind.CONFIGURATION: "Configuration error",
    ErrorKind.DATABASE: "Database error",
}


class WorkflowError(RuleflowError):
    """Error raised by the rule engine.

    A single error type tagged with an ``ErrorKind``. Kind-specific context
    lives in ``context`` and is exposed through properties, so callers
    dispatch on ``error.kind`` instead of subclass checks:

        match error.kind:
            case ErrorKind.ACTION:
                ...
            case ErrorKind.TRIGGER:
                ...

    Use the module-level factories (``action_error``, ``trigger_error``, ...)
    rather than calling the constructor directly.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        """Initialize WorkflowError.

        Args:
            kind: Error kind discriminant.
            message: Fully formatted message.
            context: Kind-specific fields.
            cause: Underlying exception, if any.
        """
        self.kind = ErrorKind(kind)
        self.context = context or {}
        self.cause = cause
        super().__init__(
            message=message,
            error_code=f"{self.kind.value.upper()}_ERROR",
            status_code=500,
            details={k: v for k, v in self.context.items() if v is not None},
        )

    @property
    def name(self) -> str:
        """Human-readable error type name (e.g. "ActionError")."""
        return "".join(part.capitalize() for part in self.kind.value.split("_")) + "Error"

    @property
    def trigger_id(self) -> str | None:
        return self.context.get("trigger_id")

    @property
    def action_id(self) -> str | None:
        return self.context.get("action_id")

    @property
    def parameters(self) -> dict[str, Any] | None:
        return self.context.get("parameters")

    @property
    def rule_id(self) -> str | None:
        return self.context.get("rule_id")

    def with_error_id(self, error_id: str) -> "WorkflowError":
        """Suffix the message with a correlation id.

        Args:
            error_id: Id returned by the error logger.

        Returns:
            The same error, for raising.
        """
        self.message = f"{self.message} (Error ID: {error_id})"
        self.args = (self.message,)
        self.details["error_id"] = error_id
        return self


def _format(kind: ErrorKind, message: str, subject: str | None = None) -> str:
    prefix = _KIND_PREFIXES[kind]
    if subject is not None:
        return f"{prefix} ({subject}): {message}"
    return f"{prefix}: {message}"


def trigger_error(message: str, trigger_id: str) -> WorkflowError:
    """Build a trigger-kind error."""
    return WorkflowError(
        ErrorKind.TRIGGER,
        _format(ErrorKind.TRIGGER, message, trigger_id),
        {"trigger_id": trigger_id},
    )


def action_error(
    message: str,
    action_id: str | None = None,
    parameters: dict[str, Any] | None = None,
    cause: BaseException | None = None,
) -> WorkflowError:
    """Build an action-kind error."""
    return WorkflowError(
        ErrorKind.ACTION,
        _format(ErrorKind.ACTION, message, action_id),
        {"action_id": action_id, "parameters": parameters},
        cause=cause,
    )


def rule_evaluation_error(
    message: str,
    rule_id: str | None = None,
    cause: BaseException | None = None,
) -> WorkflowError:
    """Build a rule-evaluation-kind error."""
    return WorkflowError(
        ErrorKind.RULE_EVALUATION,
        _format(ErrorKind.RULE_EVALUATION, message, rule_id),
        {"rule_id": rule_id},
        cause=cause,
    )


def scheduling_error(message: str, cause: BaseException | None = None) -> WorkflowError:
    """Build a scheduling-kind error."""
    return WorkflowError(
        ErrorKind.SCHEDULING,
        _format(ErrorKind.SCHEDULING, message),
        cause=cause,
    )


def configuration_error(message: str, cause: BaseException | None = None) -> WorkflowError:
    """Build a configuration-kind error."""
    return WorkflowError(
        ErrorKind.CONFIGURATION,
        _format(ErrorKind.CONFIGURATION, message),
        cause=cause,
    )


def database_error(message: str, cause: BaseException | None = None) -> WorkflowError:
    """Build a database-kind error."""
    return WorkflowError(
        ErrorKind.DATABASE,
        _format(ErrorKind.DATABASE, message),
        {"cause": str(cause) if cause is not None else None},
        cause=cause,
    )
