"""Dead letter queue processor worker.

Scheduled sweep over pending DLQ items, plus an on-demand single-item retry.
"""

import asyncio
import os
from typing import Any

import structlog

from ruleflow.dlq.processor import SweepInProgressError
from ruleflow.engine import get_rule_engine
from ruleflow.utils.exceptions import ConflictError, NotFoundError, ValidationError
from ruleflow.utils.logging import configure_logging

configure_logging(os.environ.get("LOG_LEVEL", "info"))

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Run one DLQ sweep.

    Triggered by an EventBridge schedule. The event may override the sweep
    options: ``limit``, ``older_than_minutes``, ``specific_ids`` and
    ``max_retry_attempts``.

    Args:
        event: Scheduled event.
        context: Lambda context.

    Returns:
        Sweep counts and per-item results.
    """
    event = event or {}
    engine = get_rule_engine()

    options = {
        key: event[key]
        for key in ("older_than_minutes", "specific_ids", "max_retry_attempts")
        if event.get(key) is not None
    }

    logger.info("DLQ sweep started", limit=event.get("limit"), **options)

    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(
            engine.process_dlq_batch(event.get("limit"), **options)
        )
    except SweepInProgressError:
        logger.info("DLQ sweep skipped, another sweep is running")
        return {"status": "skipped", "processed": 0, "succeeded": 0, "failed": 0}
    except Exception as e:
        logger.exception("DLQ sweep failed", error=str(e))
        raise
    finally:
        loop.run_until_complete(engine.shutdown())
        loop.close()

    succeeded = sum(1 for item in result.results if item.success)

    logger.info(
        "DLQ sweep complete",
        processed=result.processed,
        succeeded=succeeded,
        failed=result.processed - succeeded,
    )

    return {
        "status": "success",
        "processed": result.processed,
        "succeeded": succeeded,
        "failed": result.processed - succeeded,
        "results": [item.to_dict() for item in result.results],
    }


def retry_handler(event: dict[str, Any], context: Any) -> dict:
    """Retry a single DLQ item.

    Args:
        event: ``{"item_id": "..."}``.
        context: Lambda context.

    Returns:
        Response with a status code and the item result.
    """
    item_id = (event or {}).get("item_id")
    if not item_id:
        error = ValidationError("item_id is required", [{"field": "item_id", "message": "required"}])
        return {"statusCode": error.status_code, "body": error.to_dict()}

    engine = get_rule_engine()

    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(engine.retry_dlq_item(item_id))
    except (NotFoundError, ConflictError) as e:
        logger.warning("DLQ item retry rejected", item_id=item_id, error=e.message)
        return {"statusCode": e.status_code, "body": e.to_dict()}
    finally:
        loop.run_until_complete(engine.shutdown())
        loop.close()

    logger.info("DLQ item retried", item_id=item_id, success=result.success, status=result.status)

    return {"statusCode": 200, "body": result.to_dict()}
