"""Scheduled action runner worker.

Triggered every minute by EventBridge. Runs delayed rule actions whose time
has come, including ones whose in-process timer was lost.
"""

import asyncio
import os
from typing import Any

import structlog

from ruleflow.engine import get_rule_engine
from ruleflow.utils.logging import configure_logging

configure_logging(os.environ.get("LOG_LEVEL", "info"))

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Run due scheduled actions.

    Args:
        event: Scheduled event; ``limit`` caps the number of jobs.
        context: Lambda context.

    Returns:
        Counts of jobs run, by final status.
    """
    limit = int((event or {}).get("limit", 100))
    engine = get_rule_engine()

    loop = asyncio.new_event_loop()
    try:
        jobs = loop.run_until_complete(engine.run_due_actions(limit))
    finally:
        loop.run_until_complete(engine.shutdown())
        loop.close()

    by_status: dict[str, int] = {}
    for job in jobs:
        by_status[job.status_value] = by_status.get(job.status_value, 0) + 1

    logger.info("Scheduled actions run", ran=len(jobs), by_status=by_status)

    return {"status": "success", "ran": len(jobs), "by_status": by_status}
