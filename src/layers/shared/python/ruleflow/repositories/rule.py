"""Repository for rule operations."""

import structlog

from ruleflow.models.rule import Rule
from ruleflow.repositories.base import BaseRepository

logger = structlog.get_logger()


class RuleRepository(BaseRepository[Rule]):
    """Repository for rules, looked up by id or by trigger."""

    def __init__(self, table_name: str | None = None):
        """Initialize rule repository.

        Args:
            table_name: DynamoDB table name.
        """
        super().__init__(Rule, table_name)

    def get_by_id(self, rule_id: str) -> Rule | None:
        """Get a rule by ID.

        Args:
            rule_id: Rule ID.

        Returns:
            Rule or None if not found.
        """
        return self.get(pk=f"RULE#{rule_id}", sk="RULE")

    def list_enabled_by_trigger(self, trigger_id: str) -> list[Rule]:
        """List all enabled rules for a trigger.

        Args:
            trigger_id: Trigger identifier.

        Returns:
            Enabled rules in id order.
        """
        rules = self.query_all(
            pk=f"TRIGGER#{trigger_id}",
            sk_begins_with="ENABLED#",
            index_name="GSI1",
        )
        return [rule for rule in rules if rule.enabled]

    def list_by_trigger(self, trigger_id: str) -> list[Rule]:
        """List all rules for a trigger, enabled or not.

        Args:
            trigger_id: Trigger identifier.

        Returns:
            List of rules.
        """
        return self.query_all(pk=f"TRIGGER#{trigger_id}", index_name="GSI1")

    def create_rule(self, rule: Rule) -> Rule:
        """Create a new rule.

        Args:
            rule: Rule to create.

        Returns:
            Created rule.
        """
        self.create(rule)
        logger.info("Rule created", rule_id=rule.id, trigger_id=rule.trigger_id)
        return rule

    def update_rule(self, rule: Rule) -> Rule:
        """Update an existing rule.

        Args:
            rule: Rule to update.

        Returns:
            Updated rule.
        """
        return self.update(rule)

    def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule.

        Args:
            rule_id: Rule ID.

        Returns:
            True if deleted, False if not found.
        """
        return self.delete(pk=f"RULE#{rule_id}", sk="RULE")
