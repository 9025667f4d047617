"""Engine services.

Only leaf services are re-exported here. The scheduler and trigger
dispatcher depend on the execution layer and are imported from their
modules directly.
"""

from ruleflow.services.activity_log import ActivityLog, to_jsonable
from ruleflow.services.condition_evaluator import (
    evaluate_condition,
    evaluate_conditions,
    values_equal,
)
from ruleflow.services.error_logger import ErrorLogger, format_stack_trace

__all__ = [
    "ActivityLog",
    "ErrorLogger",
    "evaluate_condition",
    "evaluate_conditions",
    "format_stack_trace",
    "to_jsonable",
    "values_equal",
]
