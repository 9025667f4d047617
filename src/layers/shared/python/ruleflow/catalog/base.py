"""Base classes for triggers and actions."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class ParameterSpec:
    """Declared parameter of a trigger or action."""

    name: str
    type: str = "string"
    required: bool = False
    description: str = ""
    default: Any = None


def missing_parameters(specs: tuple[ParameterSpec, ...], values: dict[str, Any]) -> list[str]:
    """Get names of required parameters that are absent or empty.

    Args:
        specs: Declared parameters.
        values: Supplied parameter bag.

    Returns:
        Missing parameter names, in declaration order.
    """
    return [
        spec.name
        for spec in specs
        if spec.required and values.get(spec.name) in (None, "")
    ]


@dataclass
class ActionExecutionResult:
    """Result returned from a successful action execution."""

    success: bool = True
    message: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to a dict for logs and DLQ processing results."""
        return {"success": self.success, "message": self.message, **self.extra}


@dataclass(frozen=True)
class TriggerDefinition:
    """A named event type that can fire rules."""

    id: str
    name: str
    description: str = ""
    category: str = "general"
    parameters: tuple[ParameterSpec, ...] = ()

    def validate_parameters(self, values: dict[str, Any]) -> list[str]:
        """Validate an incoming trigger payload.

        Args:
            values: Trigger parameters.

        Returns:
            List of validation errors.
        """
        return [f"{name} is required" for name in missing_parameters(self.parameters, values)]


class BaseAction(ABC):
    """Abstract base class for all actions.

    Each action type inherits from this class, declares its parameters and
    implements ``execute``. Failures are signalled by raising; the
    orchestrator decides whether to retry.
    """

    # Action identifier referenced by rules
    action_id: str = ""
    name: str = ""
    description: str = ""
    category: str = "general"
    parameters: tuple[ParameterSpec, ...] = ()

    def __init__(self):
        self.logger = logger.bind(action_id=self.action_id)

    async def run(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        """Validate parameters, apply defaults, and execute.

        Args:
            parameters: Action parameters from the rule or caller.

        Returns:
            ActionExecutionResult from ``execute``.

        Raises:
            ValueError: If required parameters are missing. The message starts
                with "Invalid parameters" so it is not retried.
        """
        missing = missing_parameters(self.parameters, parameters)
        if missing:
            raise ValueError(f"Invalid parameters: missing {', '.join(missing)}")
        return await self.execute(self.with_defaults(parameters))

    @abstractmethod
    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        """Perform the action.

        Args:
            parameters: Validated parameters with defaults applied.

        Returns:
            ActionExecutionResult describing what happened.
        """

    def with_defaults(self, parameters: dict[str, Any]) -> dict[str, Any]:
        """Fill in declared defaults for absent parameters."""
        merged = {
            spec.name: spec.default
            for spec in self.parameters
            if spec.default is not None
        }
        merged.update({k: v for k, v in parameters.items() if v is not None})
        return merged

    def describe(self) -> dict[str, Any]:
        """Get a serializable description of this action."""
        return {
            "id": self.action_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "parameters": [
                {"name": p.name, "type": p.type, "required": p.required}
                for p in self.parameters
            ],
        }


class CallableAction(BaseAction):
    """Action backed by a plain async function.

    Lets an arbitrary backend be plugged into the catalog without a subclass:

        catalog.register_action(CallableAction("notify_ops", "Notify ops", send_page))
    """

    def __init__(
        self,
        action_id: str,
        name: str,
        func: Callable[[dict[str, Any]], Awaitable[ActionExecutionResult | dict[str, Any]]],
        parameters: tuple[ParameterSpec, ...] = (),
        category: str = "custom",
        description: str = "",
    ):
        self.action_id = action_id
        self.name = name
        self.func = func
        self.parameters = parameters
        self.category = category
        self.description = description
        super().__init__()

    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        outcome = await self.func(parameters)
        if isinstance(outcome, ActionExecutionResult):
            return outcome
        outcome = dict(outcome or {})
        return ActionExecutionResult(
            success=bool(outcome.pop("success", True)),
            message=str(outcome.pop("message", f'Action "{self.name}" completed')),
            extra=outcome,
        )
