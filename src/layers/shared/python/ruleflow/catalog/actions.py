"""Built-in action implementations.

Communication and task actions are simulated: they log what they would do
and report it. The webhook action makes a real HTTP call, and the
test_failure action fails on demand to exercise error handling.
"""

import asyncio
import json
import random
import time
from typing import Any

import httpx

from ruleflow.catalog.base import ActionExecutionResult, BaseAction, ParameterSpec


class SendEmailAction(BaseAction):
    """Send an email."""

    action_id = "send_email"
    name = "Send an email"
    description = "Sends an email to the specified recipient"
    category = "communication"
    parameters = (
        ParameterSpec("to", required=True, description="Email recipient"),
        ParameterSpec("subject", required=True, description="Email subject"),
        ParameterSpec("body", type="text", required=True, description="Email body"),
    )

    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        self.logger.info("Sending email", to=parameters["to"], subject=parameters["subject"])
        return ActionExecutionResult(
            message=f"Email would be sent to {parameters['to']}",
            extra={"simulated": True},
        )


class SendSlackAction(BaseAction):
    """Post a message to a Slack channel."""

    action_id = "send_slack"
    name = "Send Slack message"
    description = "Sends a message to a Slack channel"
    category = "communication"
    parameters = (
        ParameterSpec("channel", required=True, description="Slack channel"),
        ParameterSpec("message", type="text", required=True, description="Message text"),
    )

    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        channel = str(parameters["channel"]).lstrip("#")
        self.logger.info("Sending Slack message", channel=channel)
        return ActionExecutionResult(
            message=f"Slack message would be sent to #{channel}",
            extra={"simulated": True},
        )


class CreateTaskAction(BaseAction):
    """Create a task in the task management system."""

    action_id = "create_task"
    name = "Create a task"
    description = "Creates a new task in the task management system"
    category = "task"
    parameters = (
        ParameterSpec("title", required=True, description="Task title"),
        ParameterSpec("description", type="text", description="Task description"),
        ParameterSpec("assignee", description="Person assigned to the task"),
        ParameterSpec("dueDate", type="date", description="Due date for the task"),
    )

    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        task_id = f"task-{int(time.time() * 1000)}"
        self.logger.info(
            "Creating task",
            title=parameters["title"],
            assignee=parameters.get("assignee"),
        )
        return ActionExecutionResult(
            message=f'Task "{parameters["title"]}" would be created',
            extra={"simulated": True, "task_id": task_id},
        )


class UpdateStatusAction(BaseAction):
    """Update the status of an entity."""

    action_id = "update_status"
    name = "Update status"
    description = "Updates the status of an entity"
    category = "system"
    parameters = (
        ParameterSpec("entityType", required=True, description="Type of entity (booking, property, etc.)"),
        ParameterSpec("entityId", required=True, description="ID of the entity"),
        ParameterSpec("status", required=True, description="New status value"),
    )

    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        entity = f"{parameters['entityType']} {parameters['entityId']}"
        self.logger.info("Updating status", entity=entity, status=parameters["status"])
        return ActionExecutionResult(
            message=f'Status of {entity} would be updated to "{parameters["status"]}"',
            extra={"simulated": True},
        )


class SendSmsAction(BaseAction):
    """Send an SMS message."""

    action_id = "send_sms"
    name = "Send SMS"
    description = "Sends an SMS to the specified phone number"
    category = "communication"
    parameters = (
        ParameterSpec("phoneNumber", required=True, description="Recipient phone number"),
        ParameterSpec("message", type="text", required=True, description="Message text"),
    )

    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        self.logger.info(
            "Sending SMS",
            to=parameters["phoneNumber"],
            message_length=len(str(parameters["message"])),
        )
        return ActionExecutionResult(
            message=f"SMS would be sent to {parameters['phoneNumber']}",
            extra={"simulated": True},
        )


class NotifyFrontDeskAction(BaseAction):
    """Notify the front desk."""

    action_id = "notify_front_desk"
    name = "Notify front desk"
    description = "Sends a notification to front desk staff"
    category = "staff"
    parameters = (
        ParameterSpec("message", type="text", required=True),
        ParameterSpec("priority", default="normal"),
        ParameterSpec("requiresAction", type="boolean", default=False),
    )

    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        self.logger.info("Notifying front desk", priority=parameters["priority"])
        return ActionExecutionResult(
            message=f"Front desk would be notified ({parameters['priority']} priority)",
            extra={"simulated": True, "requires_action": parameters["requiresAction"]},
        )


class WebhookAction(BaseAction):
    """Call an external webhook."""

    action_id = "webhook"
    name = "Call webhook"
    description = "Makes an HTTP request to a webhook URL"
    category = "integration"
    parameters = (
        ParameterSpec("url", required=True, description="Webhook URL"),
        ParameterSpec("method", description="HTTP method (GET, POST, etc.)", default="POST"),
        ParameterSpec("payload", type="text", description="JSON payload"),
        ParameterSpec("headers", type="object", description="Extra request headers"),
    )

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        """Initialize webhook action.

        Args:
            client: Shared HTTP client; a short-lived one is created per call otherwise.
            timeout: Request timeout in seconds.
        """
        super().__init__()
        self.client = client
        self.timeout = timeout

    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        url = parameters["url"]
        method = str(parameters["method"]).upper()
        body = self._parse_payload(parameters.get("payload"))
        headers = parameters.get("headers") or {}

        self.logger.info("Calling webhook", url=url, method=method)

        try:
            if self.client is not None:
                response = await self._send(self.client, method, url, headers, body)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._send(client, method, url, headers, body)
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Webhook request timed out: {url}") from e

        try:
            response_data = response.json()
        except ValueError:
            response_data = {"text": response.text}

        if not response.is_success:
            raise RuntimeError(f"Webhook returned {response.status_code}")

        return ActionExecutionResult(
            message=f"Webhook {url} called with method {method}",
            extra={"status_code": response.status_code, "response": response_data},
        )

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any,
    ) -> httpx.Response:
        return await client.request(
            method=method,
            url=url,
            headers=headers,
            json=body if method in ("POST", "PUT", "PATCH") else None,
            params=body if method == "GET" and isinstance(body, dict) else None,
        )

    @staticmethod
    def _parse_payload(payload: Any) -> Any:
        if payload in (None, ""):
            return None
        if isinstance(payload, str):
            try:
                return json.loads(payload)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid parameters: payload is not valid JSON ({e.msg})") from e
        return payload


class TestFailureAction(BaseAction):
    """Fail on purpose to exercise retries, the circuit breaker, and the DLQ.

    failureType:
    - error: raise immediately
    - timeout: wait ``timeoutSeconds`` then raise
    - intermittent: raise about 75% of the time
    """

    action_id = "test_failure"
    name = "Test Failure Action"
    description = "An action that fails on purpose for testing error handling"
    category = "testing"
    parameters = (
        ParameterSpec("shouldFail", type="boolean", description="Whether this action should fail", default=True),
        ParameterSpec("failureMessage", description="Custom failure message", default="Intentional test failure"),
        ParameterSpec("failureType", description="error, timeout, or intermittent", default="error"),
        ParameterSpec("timeoutSeconds", type="number", default=10),
    )

    # Keep pytest from collecting this class
    __test__ = False

    async def execute(self, parameters: dict[str, Any]) -> ActionExecutionResult:
        message = parameters["failureMessage"]
        failure_type = parameters["failureType"]

        if parameters["shouldFail"] is not False:
            self.logger.info("Simulating failure", failure_type=failure_type)
            match failure_type:
                case "timeout":
                    await asyncio.sleep(float(parameters["timeoutSeconds"]))
                    raise TimeoutError(f"Timeout: {message}")
                case "intermittent":
                    if random.random() < 0.75:
                        raise RuntimeError(f"Intermittent failure: {message}")
                case _:
                    raise RuntimeError(message)

        return ActionExecutionResult(
            message="Test action completed successfully",
            extra={"simulated": True},
        )


# Registry of built-in action classes
ACTIONS: dict[str, type[BaseAction]] = {
    "send_email": SendEmailAction,
    "send_slack": SendSlackAction,
    "create_task": CreateTaskAction,
    "update_status": UpdateStatusAction,
    "send_sms": SendSmsAction,
    "notify_front_desk": NotifyFrontDeskAction,
    "webhook": WebhookAction,
    "test_failure": TestFailureAction,
}
