"""Rule model - binds one trigger to one action."""

from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel as PydanticBaseModel, Field

from ruleflow.models.base import BaseModel


class RuleSchedule(str, Enum):
    """When a matched rule's action runs."""

    IMMEDIATE = "immediate"
    DELAYED = "delayed"


class ConditionOperator(str, Enum):
    """Comparison operators for rule conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class Condition(PydanticBaseModel):
    """A single field comparison against trigger parameters."""

    field: str = Field(..., min_length=1, description="Trigger parameter key")
    operator: ConditionOperator = Field(..., description="Comparison operator")
    # bool first so True/False are not coerced to 1/0
    value: bool | int | float | str = Field(..., description="Value to compare against")


class Rule(BaseModel):
    """Rule entity.

    Key Pattern:
        PK: RULE#{id}
        SK: RULE
        GSI1PK: TRIGGER#{trigger_id}
        GSI1SK: {ENABLED|DISABLED}#{id}
    """

    _pk_prefix: ClassVar[str] = "RULE#"
    _sk_prefix: ClassVar[str] = "RULE"

    name: str = Field(..., min_length=1, max_length=255, description="Rule name")
    description: str | None = Field(None, max_length=1000)

    trigger_id: str = Field(..., min_length=1, description="Trigger that fires this rule")
    trigger_params: dict[str, Any] = Field(default_factory=dict)

    action_id: str = Field(..., min_length=1, description="Action this rule invokes")
    action_params: dict[str, Any] = Field(default_factory=dict)

    schedule: RuleSchedule = Field(default=RuleSchedule.IMMEDIATE)
    delay_minutes: int = Field(default=0, ge=0, description="Delay for delayed rules")

    conditions: list[Condition] = Field(default_factory=list)
    enabled: bool = Field(default=True)

    def get_pk(self) -> str:
        """Get partition key: RULE#{id}."""
        return f"RULE#{self.id}"

    def get_sk(self) -> str:
        """Get sort key: RULE."""
        return "RULE"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for enabled-by-trigger lookups."""
        flag = "ENABLED" if self.enabled else "DISABLED"
        return {
            "GSI1PK": f"TRIGGER#{self.trigger_id}",
            "GSI1SK": f"{flag}#{self.id}",
        }

    @property
    def is_delayed(self) -> bool:
        return self.schedule == RuleSchedule.DELAYED

    @property
    def delay_seconds(self) -> int:
        """Delay converted to seconds."""
        return self.delay_minutes * 60

    def to_ref(self) -> "RuleRef":
        """Get a lightweight reference to this rule."""
        return RuleRef(id=self.id, name=self.name)


class RuleRef(PydanticBaseModel):
    """Lightweight reference to a rule, returned to dispatch callers."""

    id: str
    name: str
