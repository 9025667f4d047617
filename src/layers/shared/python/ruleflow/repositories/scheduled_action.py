"""Repository for durable delayed actions."""

from datetime import datetime

from ruleflow.models.base import sortable_timestamp
from ruleflow.models.scheduled_action import ScheduledAction, ScheduledActionStatus
from ruleflow.repositories.base import BaseRepository


class ScheduledActionRepository(BaseRepository[ScheduledAction]):
    """Repository for scheduled actions, indexed on GSI1 by status and run time."""

    def __init__(self, table_name: str | None = None):
        """Initialize scheduled action repository.

        Args:
            table_name: DynamoDB table name.
        """
        super().__init__(ScheduledAction, table_name)

    def get_by_id(self, job_id: str) -> ScheduledAction | None:
        """Get a scheduled action by ID.

        Args:
            job_id: Scheduled action ID.

        Returns:
            ScheduledAction or None if not found.
        """
        return self.get(pk=f"SCHEDULED#{job_id}", sk="JOB")

    def create_job(self, job: ScheduledAction) -> ScheduledAction:
        """Persist a new scheduled action.

        Args:
            job: Job to create.

        Returns:
            Created job.
        """
        return self.create(job)

    def update_job(self, job: ScheduledAction) -> ScheduledAction:
        """Save a job's new state with optimistic locking.

        Args:
            job: Job to save.

        Returns:
            Updated job.

        Raises:
            ConflictError: If another process changed the job first.
        """
        return self.update(job)

    def list_due(self, now: datetime, limit: int = 100) -> list[ScheduledAction]:
        """List pending jobs whose run time has passed, earliest first.

        Args:
            now: Current time.
            limit: Maximum jobs to return.

        Returns:
            Due jobs.
        """
        # "~" sorts after "#", so every key at exactly `now` is included
        return self.query_all(
            pk=f"SCHEDULED_STATUS#{ScheduledActionStatus.PENDING.value}",
            sk_before=f"{sortable_timestamp(now)}~",
            index_name="GSI1",
            max_items=limit,
        )

    def list_stale_running(self, claimed_before: datetime) -> list[ScheduledAction]:
        """List jobs stuck in running since before a cutoff.

        Args:
            claimed_before: Jobs whose last update is older than this are stale.

        Returns:
            Stale running jobs.
        """
        jobs = self.query_all(
            pk=f"SCHEDULED_STATUS#{ScheduledActionStatus.RUNNING.value}",
            index_name="GSI1",
        )
        return [job for job in jobs if job.updated_at < claimed_before]

    def list_by_status(
        self,
        status: ScheduledActionStatus | str,
        limit: int = 100,
    ) -> list[ScheduledAction]:
        """List jobs in a given status, earliest run time first.

        Args:
            status: Job status.
            limit: Maximum jobs to return.

        Returns:
            List of jobs.
        """
        return self.query_all(
            pk=f"SCHEDULED_STATUS#{ScheduledActionStatus(status).value}",
            index_name="GSI1",
            max_items=limit,
        )
