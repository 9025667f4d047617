"""Dead letter queue storage and reprocessing.

The processor lives in ``ruleflow.dlq.processor``; it depends on the action
executor, which itself writes through the store exported here.
"""

from ruleflow.dlq.store import DeadLetterQueueStore

__all__ = ["DeadLetterQueueStore"]
