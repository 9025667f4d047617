"""Durable scheduling of delayed rule actions.

Every delayed action is written to the table as a ``ScheduledAction`` before
anything else happens, so a restart never loses it. For short delays an
in-process timer also fires the job on time; longer delays (and jobs whose
process died) are picked up by ``run_due_actions``, which a scheduled worker
calls periodically. Claiming a job is a version-checked write, so a job runs
at most once even when the timer and the worker race.

At fire time the rule is read again. A rule that was deleted or disabled in
the meantime cancels the job instead of running stale configuration.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable

import structlog

from ruleflow.execution.action_executor import ActionExecutor
from ruleflow.execution.retry_policy import Sleeper
from ruleflow.models.base import utc_now
from ruleflow.models.rule import Rule
from ruleflow.models.scheduled_action import ScheduledAction, ScheduledActionStatus
from ruleflow.repositories.rule import RuleRepository
from ruleflow.repositories.scheduled_action import ScheduledActionRepository
from ruleflow.services.activity_log import ActivityLog
from ruleflow.services.error_logger import ErrorLogger
from ruleflow.utils.exceptions import ConflictError, scheduling_error

logger = structlog.get_logger()


def describe_action(action_id: str) -> str:
    """Readable action name for log messages ("send_email" -> "send email")."""
    return action_id.replace("_", " ")


class DelayedActionScheduler:
    """Schedules and fires one-shot delayed actions."""

    def __init__(
        self,
        executor: ActionExecutor,
        job_repo: ScheduledActionRepository | None = None,
        rule_repo: RuleRepository | None = None,
        activity_log: ActivityLog | None = None,
        error_logger: ErrorLogger | None = None,
        inprocess_horizon: float = 900.0,
        stale_running_minutes: int = 30,
        clock: Callable[[], datetime] = utc_now,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize scheduler.

        Args:
            executor: Action executor used when a job fires.
            job_repo: Repository for scheduled actions.
            rule_repo: Repository for rules.
            activity_log: Activity log.
            error_logger: Error logger.
            inprocess_horizon: Longest delay, in seconds, that gets an
                in-process timer. 0 disables timers entirely.
            stale_running_minutes: Age after which a running job is
                considered abandoned and returned to pending.
            clock: Current UTC time.
            sleep: Coroutine used to wait for the delay.
        """
        self.executor = executor
        self.job_repo = job_repo or ScheduledActionRepository()
        self.rule_repo = rule_repo or RuleRepository()
        self.activity_log = activity_log or ActivityLog()
        self.error_logger = error_logger or ErrorLogger()
        self.inprocess_horizon = inprocess_horizon
        self.stale_running_minutes = stale_running_minutes
        self.clock = clock
        self.sleep = sleep

        self._timers: set[asyncio.Task] = set()
        self.logger = logger.bind(service="delayed_action_scheduler")

    @property
    def pending_timers(self) -> int:
        """Number of armed in-process timers."""
        return len(self._timers)

    async def schedule(self, rule: Rule, context: dict[str, Any] | None = None) -> ScheduledAction:
        """Schedule a rule's action to run after its delay.

        Returns as soon as the job is stored; it never waits for the action.

        Args:
            rule: Delayed rule.
            context: Originating event payload.

        Returns:
            The stored job.

        Raises:
            WorkflowError: Scheduling-kind error if the job cannot be stored.
        """
        delay = rule.delay_seconds
        job = ScheduledAction(
            rule_id=rule.id,
            rule_name=rule.name,
            trigger_id=rule.trigger_id,
            run_at=self.clock() + timedelta(seconds=delay),
            context=context or {},
        )

        try:
            self.job_repo.create_job(job)
        except Exception as e:
            raise scheduling_error(
                f'Failed to schedule action for rule "{rule.name}": {e}', cause=e
            ) from e

        if delay <= self.inprocess_horizon:
            self._arm(job.id, delay)

        self.logger.info(
            "Action scheduled",
            job_id=job.id,
            rule_id=rule.id,
            delay_seconds=delay,
            timer_armed=delay <= self.inprocess_horizon,
        )
        return job

    def _arm(self, job_id: str, delay: float) -> None:
        task = asyncio.create_task(self._fire_after(job_id, delay), name=f"scheduled-action-{job_id}")
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)

    async def _fire_after(self, job_id: str, delay: float) -> None:
        await self.sleep(delay)
        try:
            job = self.job_repo.get_by_id(job_id)
            if job is None or job.status != ScheduledActionStatus.PENDING:
                return
            await self.run_job(job)
        except Exception as e:
            error = scheduling_error(f"Scheduled action {job_id} failed to run: {e}", cause=e)
            await self.error_logger.log_error(error, "System", {"scheduled_action_id": job_id})

    async def run_job(self, job: ScheduledAction) -> ScheduledAction | None:
        """Claim and run one job.

        Args:
            job: Pending job.

        Returns:
            The finished job, or None if another runner claimed it first.
        """
        job.status = ScheduledActionStatus.RUNNING
        job.attempts += 1
        try:
            self.job_repo.update_job(job)
        except ConflictError:
            self.logger.debug("Scheduled action already claimed", job_id=job.id)
            return None

        rule = self.rule_repo.get_by_id(job.rule_id)
        if rule is None or not rule.enabled:
            reason = "deleted" if rule is None else "disabled"
            job.status = ScheduledActionStatus.CANCELLED
            job.last_error = f"Rule {reason}"
            self._save(job)
            await self.activity_log.system(
                f'Scheduled action for rule "{job.rule_name}" cancelled: rule {reason}',
                job.rule_name,
                scheduled_action_id=job.id,
                rule_id=job.rule_id,
            )
            return job

        try:
            await self.executor.execute_action_safely(
                rule.action_id,
                rule.action_params,
                rule,
                context=job.context,
            )
        except Exception as e:
            # Already logged (and sent to the DLQ) by the executor
            job.status = ScheduledActionStatus.FAILED
            job.last_error = str(e)
        else:
            job.status = ScheduledActionStatus.COMPLETED
            await self.activity_log.action(
                f'Scheduled action "{describe_action(rule.action_id)}" executed for rule "{rule.name}"',
                rule.name,
                scheduled_action_id=job.id,
                rule_id=rule.id,
            )

        self._save(job)
        return job

    def _save(self, job: ScheduledAction) -> None:
        try:
            self.job_repo.update_job(job)
        except ConflictError:
            self.logger.warning("Scheduled action modified concurrently", job_id=job.id)

    def release_stale(self, claimed_before: datetime) -> list[ScheduledAction]:
        """Return jobs stuck in running to pending.

        Args:
            claimed_before: Jobs claimed before this time are considered abandoned.

        Returns:
            Jobs that were released.
        """
        released = []
        for job in self.job_repo.list_stale_running(claimed_before):
            job.status = ScheduledActionStatus.PENDING
            try:
                self.job_repo.update_job(job)
            except ConflictError:
                # Finished or reclaimed in the meantime
                continue
            released.append(job)

        if released:
            self.logger.warning(
                "Released stale scheduled actions",
                count=len(released),
                job_ids=[job.id for job in released],
            )
        return released

    async def run_due_actions(self, limit: int = 100) -> list[ScheduledAction]:
        """Run every pending job whose time has come.

        Jobs run one at a time, earliest first. Jobs left running by an
        interrupted runner are returned to pending first. A job that errors
        is logged and the rest of the batch still runs.

        Args:
            limit: Maximum jobs to run.

        Returns:
            Jobs this call ran (cancelled ones included).
        """
        self.release_stale(self.clock() - timedelta(minutes=self.stale_running_minutes))

        due = self.job_repo.list_due(self.clock(), limit)
        finished = []
        for job in due:
            try:
                result = await self.run_job(job)
            except Exception as e:
                error = scheduling_error(f"Scheduled action {job.id} failed to run: {e}", cause=e)
                await self.error_logger.log_error(
                    error, job.rule_name, {"scheduled_action_id": job.id}
                )
                continue
            if result is not None:
                finished.append(result)

        if due:
            self.logger.info("Ran due scheduled actions", due=len(due), ran=len(finished))
        return finished

    async def drain(self) -> None:
        """Wait for every armed timer to fire and finish."""
        while self._timers:
            await asyncio.gather(*list(self._timers), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel armed timers. Their jobs stay pending for run_due_actions."""
        timers = list(self._timers)
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)
