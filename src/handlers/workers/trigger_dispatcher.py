"""Trigger dispatcher worker.

Dispatches trigger events to matching rules. Accepts either a direct
invocation ``{"trigger_id": ..., "parameters": {...}}`` or an SQS batch whose
record bodies carry the same JSON.
"""

import asyncio
import json
import os
from typing import Any

import structlog

from ruleflow.engine import RuleEngine, get_rule_engine
from ruleflow.utils.exceptions import ValidationError
from ruleflow.utils.logging import configure_logging

configure_logging(os.environ.get("LOG_LEVEL", "info"))

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Dispatch one trigger event or a batch of SQS records.

    Args:
        event: Trigger event or SQS event.
        context: Lambda context.

    Returns:
        Dispatch result for a direct event; batch item failures for SQS.
    """
    if "Records" not in event and not event.get("trigger_id"):
        error = ValidationError(
            "trigger_id is required", [{"field": "trigger_id", "message": "required"}]
        )
        return {"statusCode": error.status_code, "body": error.to_dict()}

    engine = get_rule_engine()

    loop = asyncio.new_event_loop()
    try:
        if "Records" in event:
            return loop.run_until_complete(_process_records(engine, event["Records"]))

        result = loop.run_until_complete(
            engine.dispatch_trigger(event["trigger_id"], event.get("parameters") or {})
        )
        return {"statusCode": 200, "body": result.to_dict()}
    finally:
        loop.run_until_complete(engine.shutdown())
        loop.close()


async def _process_records(engine: RuleEngine, records: list[dict]) -> dict:
    logger.info("Processing trigger queue", record_count=len(records))

    failures = []
    for record in records:
        try:
            body = json.loads(record.get("body", "{}"))
            result = await engine.dispatch_trigger(body["trigger_id"], body.get("parameters") or {})
            logger.info(
                "Trigger dispatched from queue",
                message_id=record.get("messageId"),
                trigger_id=result.trigger_id,
                rules_matched=result.rules_matched,
            )
        except Exception as e:
            # Action failures are already in the DLQ; only dispatch failures are retried
            logger.exception(
                "Failed to dispatch trigger",
                message_id=record.get("messageId"),
                error=str(e),
            )
            failures.append({"itemIdentifier": record.get("messageId")})

    return {"batchItemFailures": failures}
