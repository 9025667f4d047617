"""Trigger and action catalog."""

from ruleflow.catalog.actions import (
    ACTIONS,
    CreateTaskAction,
    NotifyFrontDeskAction,
    SendEmailAction,
    SendSlackAction,
    SendSmsAction,
    TestFailureAction,
    UpdateStatusAction,
    WebhookAction,
)
from ruleflow.catalog.base import (
    ActionExecutionResult,
    BaseAction,
    CallableAction,
    ParameterSpec,
    TriggerDefinition,
)
from ruleflow.catalog.registry import Catalog, get_catalog
from ruleflow.catalog.triggers import TRIGGERS

__all__ = [
    # Base
    "ActionExecutionResult",
    "BaseAction",
    "CallableAction",
    "ParameterSpec",
    "TriggerDefinition",
    # Registry
    "Catalog",
    "get_catalog",
    "ACTIONS",
    "TRIGGERS",
    # Actions
    "CreateTaskAction",
    "NotifyFrontDeskAction",
    "SendEmailAction",
    "SendSlackAction",
    "SendSmsAction",
    "TestFailureAction",
    "UpdateStatusAction",
    "WebhookAction",
]
