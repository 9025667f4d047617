"""Tests for the trigger and action catalog."""

import json

import httpx
import pytest

from ruleflow.catalog import actions
from ruleflow.catalog.actions import ACTIONS, NotifyFrontDeskAction, SendEmailAction, WebhookAction
from ruleflow.catalog.base import ActionExecutionResult, CallableAction, TriggerDefinition
from ruleflow.catalog.registry import Catalog
from ruleflow.catalog.triggers import TRIGGERS


def webhook_with(handler) -> WebhookAction:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookAction(client=client)


class TestTriggers:
    """Tests for trigger definitions."""

    def test_required_parameters(self):
        """Missing or empty required parameters are reported."""
        checkin = TRIGGERS["guest_checkin"]

        assert checkin.validate_parameters({"guestId": "g-1"}) == []
        assert checkin.validate_parameters({}) == ["guestId is required"]
        assert checkin.validate_parameters({"guestId": ""}) == ["guestId is required"]


class TestCatalog:
    """Tests for Catalog lookups and registration."""

    def test_builtins(self):
        catalog = Catalog()

        assert isinstance(catalog.get_action("send_email"), SendEmailAction)
        assert catalog.get_trigger("guest_checkin") is TRIGGERS["guest_checkin"]
        assert len(catalog.list_actions()) == len(ACTIONS)
        assert catalog.get_action("nope") is None

    def test_register(self):
        catalog = Catalog()
        catalog.register_trigger(TriggerDefinition(id="t1", name="Test trigger", category="test"))

        async def ping(params):
            return {"message": "pong"}

        catalog.register_action(CallableAction("ping", "Ping", ping))

        assert catalog.get_trigger("t1").name == "Test trigger"
        assert catalog.get_action("ping").name == "Ping"
        assert [t.id for t in catalog.list_triggers(category="test")] == ["t1"]
        assert [a.action_id for a in catalog.list_actions(category="custom")] == ["ping"]

    def test_instances_are_independent(self):
        """Separate catalogs do not share registrations."""
        first, second = Catalog(), Catalog()
        first.register_action(CallableAction("ping", "Ping", None))

        assert second.get_action("ping") is None


class TestBaseAction:
    """Tests for parameter handling shared by all actions."""

    @pytest.mark.asyncio
    async def test_missing_required_parameters(self):
        with pytest.raises(ValueError, match="Invalid parameters: missing subject, body"):
            await SendEmailAction().run({"to": "a@b.c"})

    @pytest.mark.asyncio
    async def test_defaults_applied(self):
        result = await NotifyFrontDeskAction().run({"message": "Guest arrived"})

        assert result.message == "Front desk would be notified (normal priority)"
        assert result.extra["requires_action"] is False

    @pytest.mark.asyncio
    async def test_callable_action_wraps_dict(self):
        async def run(params):
            return {"message": "ok", "count": 2}

        result = await CallableAction("c", "C", run).run({})

        assert result == ActionExecutionResult(success=True, message="ok", extra={"count": 2})

    def test_describe(self):
        description = SendEmailAction().describe()

        assert description["id"] == "send_email"
        assert [p["name"] for p in description["parameters"]] == ["to", "subject", "body"]


class TestWebhookAction:
    """Tests for the HTTP webhook action."""

    @pytest.mark.asyncio
    async def test_posts_json_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            seen["header"] = request.headers.get("x-token")
            return httpx.Response(200, json={"received": True})

        action = webhook_with(handler)
        result = await action.run(
            {
                "url": "https://hooks.example.com/in",
                "payload": '{"guestId": "g-1"}',
                "headers": {"X-Token": "secret"},
            }
        )

        assert seen == {"method": "POST", "body": {"guestId": "g-1"}, "header": "secret"}
        assert result.extra["status_code"] == 200
        assert result.extra["response"] == {"received": True}

    @pytest.mark.asyncio
    async def test_get_sends_query_params(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["query"] = dict(request.url.params)
            return httpx.Response(200, text="ok")

        result = await webhook_with(handler).run(
            {"url": "https://hooks.example.com/in", "method": "get", "payload": {"a": "1"}}
        )

        assert seen["query"] == {"a": "1"}
        assert result.extra["response"] == {"text": "ok"}

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        action = webhook_with(lambda request: httpx.Response(503))

        with pytest.raises(RuntimeError, match="Webhook returned 503"):
            await action.run({"url": "https://hooks.example.com/in"})

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(TimeoutError, match="timed out"):
            await webhook_with(handler).run({"url": "https://hooks.example.com/in"})

    @pytest.mark.asyncio
    async def test_invalid_json_payload(self):
        action = webhook_with(lambda request: httpx.Response(200))

        with pytest.raises(ValueError, match="Invalid parameters: payload is not valid JSON"):
            await action.run({"url": "https://hooks.example.com/in", "payload": "{nope"})


class TestTestFailureAction:
    """Tests for the deliberate failure action."""

    @pytest.mark.asyncio
    async def test_fails_by_default(self):
        with pytest.raises(RuntimeError, match="Intentional test failure"):
            await actions.TestFailureAction().run({})

    @pytest.mark.asyncio
    async def test_succeeds_when_disabled(self):
        result = await actions.TestFailureAction().run({"shouldFail": False})

        assert result.message == "Test action completed successfully"

    @pytest.mark.asyncio
    async def test_timeout_failure(self):
        with pytest.raises(TimeoutError, match="Timeout: slow"):
            await actions.TestFailureAction().run(
                {"failureType": "timeout", "failureMessage": "slow", "timeoutSeconds": 0}
            )
