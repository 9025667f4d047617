"""Time-bounded leases for cross-process single-flight jobs."""

import os
import time

import boto3
import structlog
from botocore.exceptions import ClientError

logger = structlog.get_logger()


class LeaseRepository:
    """Conditional-write leases stored alongside the engine's other rows.

    A lease row ``LEASE#{name}`` is held by one owner until it expires. The
    ``ttl`` attribute lets DynamoDB clean up abandoned leases.
    """

    def __init__(self, table_name: str | None = None):
        """Initialize lease repository.

        Args:
            table_name: DynamoDB table name.
        """
        self.table_name = table_name or os.environ.get("TABLE_NAME", "ruleflow-dev")
        self._dynamodb = None
        self._table = None

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            if self._dynamodb is None:
                self._dynamodb = boto3.resource("dynamodb")
            self._table = self._dynamodb.Table(self.table_name)
        return self._table

    def acquire(self, name: str, owner: str, duration_seconds: int) -> bool:
        """Try to take a lease.

        Succeeds if no lease exists, the existing lease has expired, or the
        caller already holds it.

        Args:
            name: Lease name (e.g. "dlq_sweep").
            owner: Caller identity.
            duration_seconds: Lease lifetime.

        Returns:
            True if the lease is now held by ``owner``.
        """
        now = int(time.time())
        try:
            self.table.put_item(
                Item={
                    "PK": f"LEASE#{name}",
                    "SK": "LEASE",
                    "owner": owner,
                    "expires_at": now + duration_seconds,
                    "ttl": now + duration_seconds + 3600,
                },
                ConditionExpression=(
                    "attribute_not_exists(PK) OR expires_at < :now OR #owner = :owner"
                ),
                ExpressionAttributeNames={"#owner": "owner"},
                ExpressionAttributeValues={":now": now, ":owner": owner},
            )
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.info("Lease held by another owner", lease=name, owner=owner)
                return False
            logger.error("Lease acquire failed", lease=name, error=str(e))
            raise

    def release(self, name: str, owner: str) -> None:
        """Release a lease held by ``owner``; a no-op otherwise.

        Args:
            name: Lease name.
            owner: Caller identity.
        """
        try:
            self.table.delete_item(
                Key={"PK": f"LEASE#{name}", "SK": "LEASE"},
                ConditionExpression="#owner = :owner",
                ExpressionAttributeNames={"#owner": "owner"},
                ExpressionAttributeValues={":owner": owner},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return
            logger.error("Lease release failed", lease=name, error=str(e))
            raise
