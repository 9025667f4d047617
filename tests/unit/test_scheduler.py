"""Tests for durable delayed action scheduling."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from ruleflow.catalog.base import ActionExecutionResult
from ruleflow.execution.action_executor import ActionExecutor
from ruleflow.models.base import utc_now
from ruleflow.models.rule import Rule, RuleSchedule
from ruleflow.models.scheduled_action import ScheduledAction, ScheduledActionStatus
from ruleflow.repositories.rule import RuleRepository
from ruleflow.repositories.scheduled_action import ScheduledActionRepository
from ruleflow.services.activity_log import ActivityLog
from ruleflow.services.error_logger import ErrorLogger
from ruleflow.services.scheduler import DelayedActionScheduler, describe_action
from ruleflow.utils.exceptions import ErrorKind, WorkflowError, action_error


class FixedClock:
    def __init__(self):
        self.now = utc_now()

    def __call__(self):
        return self.now


@pytest.fixture
def executor():
    executor = MagicMock(spec=ActionExecutor)
    executor.execute_action_safely = AsyncMock(return_value=ActionExecutionResult(message="ok"))
    return executor


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def error_logger():
    logger = MagicMock(spec=ErrorLogger)
    logger.log_error = AsyncMock(return_value="err-1")
    return logger


@pytest.fixture
def scheduler(dynamodb_table, executor, clock, error_logger, fake_sleep):
    return DelayedActionScheduler(
        executor,
        job_repo=ScheduledActionRepository(),
        rule_repo=RuleRepository(),
        activity_log=AsyncMock(spec=ActivityLog),
        error_logger=error_logger,
        inprocess_horizon=900,
        clock=clock,
        sleep=fake_sleep,
    )


@pytest.fixture
def delayed_rule(dynamodb_table):
    rule = Rule(
        id="rule-d",
        name="Review request",
        trigger_id="guest_checkout",
        action_id="send_email",
        action_params={"to": "guest@example.com", "subject": "How was it?", "body": "..."},
        schedule=RuleSchedule.DELAYED,
        delay_minutes=10,
    )
    return RuleRepository().create_rule(rule)


def test_describe_action():
    assert describe_action("notify_front_desk") == "notify front desk"


class TestSchedule:
    """Tests for DelayedActionScheduler.schedule."""

    @pytest.mark.asyncio
    async def test_persists_job_and_fires_timer(self, scheduler, delayed_rule, executor, clock, sleeps):
        """The job is stored before the timer fires; the timer then runs it once."""
        job = await scheduler.schedule(delayed_rule, {"trigger_id": "guest_checkout"})

        stored = scheduler.job_repo.get_by_id(job.id)
        assert stored.run_at == clock.now + timedelta(minutes=10)
        assert stored.rule_id == "rule-d"

        await scheduler.drain()

        assert sleeps == [600]
        executor.execute_action_safely.assert_awaited_once()
        args, kwargs = executor.execute_action_safely.call_args
        assert args[0] == "send_email"
        assert kwargs["context"] == {"trigger_id": "guest_checkout"}
        assert scheduler.job_repo.get_by_id(job.id).status == ScheduledActionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_long_delay_has_no_timer(self, scheduler, delayed_rule, executor):
        """Delays past the horizon are left for run_due_actions."""
        delayed_rule.delay_minutes = 60 * 24

        job = await scheduler.schedule(delayed_rule)

        assert scheduler.pending_timers == 0
        assert scheduler.job_repo.get_by_id(job.id).status == ScheduledActionStatus.PENDING
        executor.execute_action_safely.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_is_scheduling_error(self, scheduler, delayed_rule):
        scheduler.job_repo = MagicMock(spec=ScheduledActionRepository)
        scheduler.job_repo.create_job.side_effect = RuntimeError("table unavailable")

        with pytest.raises(WorkflowError) as exc_info:
            await scheduler.schedule(delayed_rule)

        assert exc_info.value.kind == ErrorKind.SCHEDULING
        assert scheduler.pending_timers == 0

    @pytest.mark.asyncio
    async def test_shutdown_keeps_job_pending(self, dynamodb_table, executor, clock, delayed_rule):
        scheduler = DelayedActionScheduler(
            executor,
            job_repo=ScheduledActionRepository(),
            rule_repo=RuleRepository(),
            activity_log=AsyncMock(spec=ActivityLog),
            error_logger=MagicMock(spec=ErrorLogger),
            clock=clock,
        )
        job = await scheduler.schedule(delayed_rule)
        assert scheduler.pending_timers == 1

        await scheduler.shutdown()

        assert scheduler.job_repo.get_by_id(job.id).status == ScheduledActionStatus.PENDING
        executor.execute_action_safely.assert_not_awaited()


class TestRunJob:
    """Tests for firing scheduled jobs."""

    def _job(self, clock, rule_id="rule-d", minutes_ago=1):
        job = ScheduledAction(
            rule_id=rule_id,
            rule_name="Review request",
            trigger_id="guest_checkout",
            run_at=clock.now - timedelta(minutes=minutes_ago),
        )
        return ScheduledActionRepository().create_job(job)

    @pytest.mark.asyncio
    async def test_deleted_rule_cancels_job(self, scheduler, clock, executor):
        job = self._job(clock, rule_id="gone")

        finished = await scheduler.run_job(job)

        assert finished.status == ScheduledActionStatus.CANCELLED
        assert finished.last_error == "Rule deleted"
        executor.execute_action_safely.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_rule_cancels_job(self, scheduler, clock, executor, delayed_rule):
        delayed_rule.enabled = False
        RuleRepository().update_rule(delayed_rule)
        job = self._job(clock)

        finished = await scheduler.run_job(job)

        assert finished.status == ScheduledActionStatus.CANCELLED
        assert finished.last_error == "Rule disabled"

    @pytest.mark.asyncio
    async def test_uses_current_rule_definition(self, scheduler, clock, executor, delayed_rule):
        """Parameters edited after scheduling are the ones used."""
        job = self._job(clock)
        delayed_rule.action_params = {"to": "new@example.com", "subject": "s", "body": "b"}
        RuleRepository().update_rule(delayed_rule)

        await scheduler.run_job(job)

        assert executor.execute_action_safely.call_args.args[1]["to"] == "new@example.com"

    @pytest.mark.asyncio
    async def test_action_failure_marks_job_failed(self, scheduler, clock, executor, delayed_rule):
        executor.execute_action_safely.side_effect = action_error("down").with_error_id("e-1")
        job = self._job(clock)

        finished = await scheduler.run_job(job)

        assert finished.status == ScheduledActionStatus.FAILED
        assert finished.last_error.endswith("(Error ID: e-1)")
        assert finished.attempts == 1

    @pytest.mark.asyncio
    async def test_job_runs_once(self, scheduler, clock, executor, delayed_rule):
        """A stale copy of an already claimed job is not run again."""
        job = self._job(clock)
        stale_copy = scheduler.job_repo.get_by_id(job.id)

        await scheduler.run_job(job)
        assert await scheduler.run_job(stale_copy) is None

        executor.execute_action_safely.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_due_actions(self, scheduler, clock, executor, delayed_rule):
        self._job(clock, minutes_ago=5)
        self._job(clock, minutes_ago=1)
        future = self._job(clock, minutes_ago=-30)

        finished = await scheduler.run_due_actions()

        assert len(finished) == 2
        assert executor.execute_action_safely.await_count == 2
        assert scheduler.job_repo.get_by_id(future.id).status == ScheduledActionStatus.PENDING
        assert await scheduler.run_due_actions() == []

    @pytest.mark.asyncio
    async def test_job_left_running_is_recovered(
        self, scheduler, clock, executor, error_logger, delayed_rule, monkeypatch
    ):
        """A job interrupted after its claim runs on a later pass."""
        job = self._job(clock)
        real_get = scheduler.rule_repo.get_by_id

        def unavailable(rule_id):
            raise ClientError(
                {"Error": {"Code": "InternalServerError", "Message": "unavailable"}}, "GetItem"
            )

        monkeypatch.setattr(scheduler.rule_repo, "get_by_id", unavailable)
        assert await scheduler.run_due_actions() == []
        assert scheduler.job_repo.get_by_id(job.id).status == ScheduledActionStatus.RUNNING
        logged = error_logger.log_error.call_args.args[0]
        assert logged.kind == ErrorKind.SCHEDULING

        monkeypatch.setattr(scheduler.rule_repo, "get_by_id", real_get)
        assert await scheduler.run_due_actions() == []
        executor.execute_action_safely.assert_not_awaited()

        clock.now += timedelta(hours=6)
        finished = await scheduler.run_due_actions()

        assert [j.id for j in finished] == [job.id]
        assert scheduler.job_repo.get_by_id(job.id).status == ScheduledActionStatus.COMPLETED
        executor.execute_action_safely.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_one_job_error_does_not_stop_batch(
        self, scheduler, clock, executor, error_logger, delayed_rule, monkeypatch
    ):
        broken = self._job(clock, rule_id="broken", minutes_ago=5)
        healthy = self._job(clock, minutes_ago=1)
        real_get = scheduler.rule_repo.get_by_id

        def get_rule(rule_id):
            if rule_id == "broken":
                raise RuntimeError("corrupt rule row")
            return real_get(rule_id)

        monkeypatch.setattr(scheduler.rule_repo, "get_by_id", get_rule)

        finished = await scheduler.run_due_actions()

        assert [j.id for j in finished] == [healthy.id]
        assert error_logger.log_error.call_args.args[2] == {"scheduled_action_id": broken.id}

    @pytest.mark.asyncio
    async def test_recent_running_job_not_released(self, scheduler, clock):
        job = self._job(clock)
        job.status = ScheduledActionStatus.RUNNING
        scheduler.job_repo.update_job(job)

        assert scheduler.release_stale(clock.now - timedelta(minutes=30)) == []
        released = scheduler.release_stale(clock.now + timedelta(minutes=1))

        assert [j.id for j in released] == [job.id]
        assert scheduler.job_repo.get_by_id(job.id).status == ScheduledActionStatus.PENDING
