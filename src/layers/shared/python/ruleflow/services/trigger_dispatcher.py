"""Trigger dispatch: match a fired trigger to rules and run their actions."""

from dataclasses import dataclass, field
from typing import Any

import structlog
from botocore.exceptions import ClientError

from ruleflow.catalog.registry import Catalog, get_catalog
from ruleflow.execution.action_executor import ActionExecutor
from ruleflow.models.rule import Rule, RuleRef
from ruleflow.repositories.rule import RuleRepository
from ruleflow.services.activity_log import ActivityLog
from ruleflow.services.condition_evaluator import evaluate_conditions
from ruleflow.services.error_logger import ErrorLogger
from ruleflow.services.scheduler import DelayedActionScheduler, describe_action
from ruleflow.utils.exceptions import (
    RuleflowError,
    database_error,
    rule_evaluation_error,
    trigger_error,
)

logger = structlog.get_logger()


@dataclass
class RuleFailure:
    """A matched rule whose action could not be run or scheduled."""

    rule: RuleRef
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"rule": self.rule.model_dump(), "error": self.error}


@dataclass
class DispatchResult:
    """Outcome of dispatching one trigger."""

    trigger_id: str
    rules_matched: int = 0
    executed_rules: list[RuleRef] = field(default_factory=list)
    scheduled_rules: list[RuleRef] = field(default_factory=list)
    skipped_rules: list[RuleRef] = field(default_factory=list)
    failed_rules: list[RuleFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        return {
            "trigger_id": self.trigger_id,
            "rules_matched": self.rules_matched,
            "executed_rules": [ref.model_dump() for ref in self.executed_rules],
            "scheduled_rules": [ref.model_dump() for ref in self.scheduled_rules],
            "skipped_rules": [ref.model_dump() for ref in self.skipped_rules],
            "failed_rules": [failure.to_dict() for failure in self.failed_rules],
        }


class TriggerDispatcher:
    """Routes a trigger event to every enabled rule that listens for it.

    Rules are handled one after another. Immediate rules run to completion
    (retries included) before the next rule is looked at; delayed rules are
    handed to the scheduler and not waited for. A failing rule never stops
    the rules after it.
    """

    def __init__(
        self,
        executor: ActionExecutor,
        scheduler: DelayedActionScheduler,
        catalog: Catalog | None = None,
        rule_repo: RuleRepository | None = None,
        activity_log: ActivityLog | None = None,
        error_logger: ErrorLogger | None = None,
    ):
        """Initialize dispatcher.

        Args:
            executor: Runs immediate actions.
            scheduler: Schedules delayed actions.
            catalog: Known triggers.
            rule_repo: Rule store.
            activity_log: Activity log for audit entries.
            error_logger: Error logger for evaluation failures.
        """
        self.executor = executor
        self.scheduler = scheduler
        self.catalog = catalog or get_catalog()
        self.rule_repo = rule_repo or RuleRepository()
        self.activity_log = activity_log or ActivityLog()
        self.error_logger = error_logger or ErrorLogger()
        self.logger = logger.bind(service="trigger_dispatcher")

    async def dispatch(self, trigger_id: str, parameters: dict[str, Any]) -> DispatchResult:
        """Dispatch a trigger.

        Args:
            trigger_id: Trigger that fired.
            parameters: Event payload.

        Returns:
            DispatchResult describing what happened to each rule.

        Raises:
            WorkflowError: Trigger-kind error for an unknown trigger or a
                payload missing required parameters; database-kind error if
                rules cannot be loaded.
        """
        trigger = self.catalog.get_trigger(trigger_id)
        if trigger is None:
            raise trigger_error(f'Trigger "{trigger_id}" not found', trigger_id)

        errors = trigger.validate_parameters(parameters)
        if errors:
            raise trigger_error(f"Invalid trigger parameters: {'; '.join(errors)}", trigger_id)

        try:
            rules = self.rule_repo.list_enabled_by_trigger(trigger_id)
        except ClientError as e:
            raise database_error(f"Failed to load rules for trigger {trigger_id}", cause=e) from e

        await self.activity_log.trigger(
            f'Trigger "{trigger.name}" fired',
            trigger_id=trigger_id,
            parameters=parameters,
            candidate_rules=len(rules),
        )

        result = DispatchResult(trigger_id=trigger_id)
        context = {"trigger_id": trigger_id, "parameters": parameters}

        for rule in rules:
            await self._dispatch_rule(rule, trigger.name, parameters, context, result)

        self.logger.info(
            "Trigger dispatched",
            trigger_id=trigger_id,
            candidates=len(rules),
            matched=result.rules_matched,
            executed=len(result.executed_rules),
            failed=len(result.failed_rules),
        )
        return result

    async def _dispatch_rule(
        self,
        rule: Rule,
        trigger_name: str,
        parameters: dict[str, Any],
        context: dict[str, Any],
        result: DispatchResult,
    ) -> None:
        ref = rule.to_ref()

        try:
            matched = evaluate_conditions(rule.conditions, parameters)
        except Exception as e:
            error = rule_evaluation_error(
                f'Failed to evaluate conditions for rule "{rule.name}": {e}',
                rule.id,
                cause=e,
            )
            await self.error_logger.log_error(
                error, rule.name, {"trigger_id": result.trigger_id, "parameters": parameters}
            )
            result.skipped_rules.append(ref)
            return

        if not matched:
            await self.activity_log.system(
                f'Rule "{rule.name}" skipped: conditions not met',
                rule.name,
                rule_id=rule.id,
                trigger_id=result.trigger_id,
            )
            result.skipped_rules.append(ref)
            return

        result.rules_matched += 1
        await self.activity_log.system(
            f'Rule "{rule.name}" matched trigger "{trigger_name}"',
            rule.name,
            rule_id=rule.id,
            trigger_id=result.trigger_id,
        )

        if rule.is_delayed:
            await self._schedule(rule, context, result)
        else:
            await self._execute(rule, context, result)

    async def _schedule(self, rule: Rule, context: dict[str, Any], result: DispatchResult) -> None:
        ref = rule.to_ref()
        try:
            job = await self.scheduler.schedule(rule, context)
        except RuleflowError as e:
            await self.error_logger.log_error(e, rule.name, {"rule_id": rule.id})
            result.failed_rules.append(RuleFailure(rule=ref, error=e.message))
            return

        await self.activity_log.system(
            f'Action "{describe_action(rule.action_id)}" scheduled for rule "{rule.name}" '
            f"(delay: {rule.delay_minutes} minutes)",
            rule.name,
            rule_id=rule.id,
            scheduled_action_id=job.id,
            run_at=job.run_at.isoformat(),
        )
        result.executed_rules.append(ref)
        result.scheduled_rules.append(ref)

    async def _execute(self, rule: Rule, context: dict[str, Any], result: DispatchResult) -> None:
        ref = rule.to_ref()
        try:
            await self.executor.execute_action_safely(
                rule.action_id,
                rule.action_params,
                rule,
                context=context,
            )
        except Exception as e:
            # Logged and escalated by the executor
            result.failed_rules.append(RuleFailure(rule=ref, error=str(e)))
            return

        result.executed_rules.append(ref)
