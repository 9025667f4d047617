"""Utility functions and helpers."""

from ruleflow.utils.exceptions import (
    ConflictError,
    ErrorKind,
    NotFoundError,
    RuleflowError,
    ValidationError,
    WorkflowError,
)
from ruleflow.utils.logging import configure_logging

__all__ = [
    # Logging
    "configure_logging",
    # Exceptions
    "RuleflowError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ErrorKind",
    "WorkflowError",
]
