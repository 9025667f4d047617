"""DynamoDB repositories for data access."""

from ruleflow.repositories.base import BaseRepository
from ruleflow.repositories.dead_letter_queue import DeadLetterQueueRepository
from ruleflow.repositories.lease import LeaseRepository
from ruleflow.repositories.log import LogRepository
from ruleflow.repositories.rule import RuleRepository
from ruleflow.repositories.scheduled_action import ScheduledActionRepository

__all__ = [
    "BaseRepository",
    "DeadLetterQueueRepository",
    "LeaseRepository",
    "LogRepository",
    "RuleRepository",
    "ScheduledActionRepository",
]
