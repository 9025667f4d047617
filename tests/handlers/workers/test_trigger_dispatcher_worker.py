"""Tests for the trigger dispatcher worker."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

from ruleflow.services.trigger_dispatcher import DispatchResult
from ruleflow.utils.exceptions import trigger_error


def _engine():
    engine = MagicMock()
    engine.dispatch_trigger = AsyncMock(
        side_effect=lambda trigger_id, parameters: DispatchResult(trigger_id=trigger_id)
    )
    engine.shutdown = AsyncMock()
    return engine


def _record(message_id, body):
    return {"messageId": message_id, "body": json.dumps(body)}


class TestTriggerDispatcherHandler:
    """Tests for trigger dispatch entry points."""

    @patch("trigger_dispatcher.get_rule_engine")
    def test_direct_invocation(self, mock_get_engine):
        from trigger_dispatcher import handler

        engine = _engine()
        mock_get_engine.return_value = engine

        result = handler({"trigger_id": "guest_checkin", "parameters": {"guestId": "g-1"}}, None)

        assert result["statusCode"] == 200
        assert result["body"]["trigger_id"] == "guest_checkin"
        engine.dispatch_trigger.assert_awaited_once_with("guest_checkin", {"guestId": "g-1"})
        engine.shutdown.assert_awaited_once()

    @patch("trigger_dispatcher.get_rule_engine")
    def test_queue_batch_reports_failed_records(self, mock_get_engine):
        from trigger_dispatcher import handler

        engine = _engine()

        async def dispatch(trigger_id, parameters):
            if trigger_id == "nope":
                raise trigger_error('Trigger "nope" not found', "nope")
            return DispatchResult(trigger_id=trigger_id)

        engine.dispatch_trigger.side_effect = dispatch
        mock_get_engine.return_value = engine

        event = {
            "Records": [
                _record("m-1", {"trigger_id": "guest_checkin", "parameters": {"guestId": "g-1"}}),
                _record("m-2", {"trigger_id": "nope"}),
                {"messageId": "m-3", "body": "not json"},
            ]
        }

        result = handler(event, None)

        assert result == {"batchItemFailures": [{"itemIdentifier": "m-2"}, {"itemIdentifier": "m-3"}]}
        assert engine.dispatch_trigger.await_count == 2

    @patch("trigger_dispatcher.get_rule_engine")
    def test_missing_trigger_id(self, mock_get_engine):
        from trigger_dispatcher import handler

        result = handler({"parameters": {}}, None)

        assert result["statusCode"] == 400
        assert result["body"]["error_code"] == "VALIDATION_ERROR"
        mock_get_engine.assert_not_called()
