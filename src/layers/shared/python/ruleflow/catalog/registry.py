"""Lookup of available triggers and actions."""

import structlog

from ruleflow.catalog.actions import ACTIONS
from ruleflow.catalog.base import BaseAction, TriggerDefinition
from ruleflow.catalog.triggers import TRIGGERS

logger = structlog.get_logger()


class Catalog:
    """Triggers and actions known to the engine.

    Starts with the built-in definitions; callers can register more, e.g. a
    custom action backend or an application-specific trigger.
    """

    def __init__(
        self,
        triggers: dict[str, TriggerDefinition] | None = None,
        actions: dict[str, BaseAction] | None = None,
    ):
        """Initialize catalog.

        Args:
            triggers: Trigger definitions by id; defaults to the built-ins.
            actions: Action instances by id; defaults to the built-ins.
        """
        self._triggers = dict(TRIGGERS if triggers is None else triggers)
        if actions is None:
            actions = {action_id: cls() for action_id, cls in ACTIONS.items()}
        self._actions = dict(actions)

    def get_trigger(self, trigger_id: str) -> TriggerDefinition | None:
        return self._triggers.get(trigger_id)

    def get_action(self, action_id: str) -> BaseAction | None:
        return self._actions.get(action_id)

    def register_trigger(self, trigger: TriggerDefinition) -> None:
        """Add or replace a trigger definition."""
        self._triggers[trigger.id] = trigger
        logger.debug("Trigger registered", trigger_id=trigger.id)

    def register_action(self, action: BaseAction) -> None:
        """Add or replace an action implementation."""
        self._actions[action.action_id] = action
        logger.debug("Action registered", action_id=action.action_id)

    def list_triggers(self, category: str | None = None) -> list[TriggerDefinition]:
        """List triggers, optionally restricted to a category."""
        return [
            trigger for trigger in self._triggers.values()
            if category is None or trigger.category == category
        ]

    def list_actions(self, category: str | None = None) -> list[BaseAction]:
        """List actions, optionally restricted to a category."""
        return [
            action for action in self._actions.values()
            if category is None or action.category == category
        ]


# Singleton instance
_catalog: Catalog | None = None


def get_catalog() -> Catalog:
    """Get the global Catalog instance.

    Returns:
        Catalog instance.
    """
    global _catalog
    if _catalog is None:
        _catalog = Catalog()
    return _catalog
