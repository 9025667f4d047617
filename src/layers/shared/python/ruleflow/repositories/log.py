"""Repository for the append-only activity log."""

from datetime import date

from ruleflow.models.log_entry import LogEntry, LogType
from ruleflow.repositories.base import BaseRepository


class LogRepository(BaseRepository[LogEntry]):
    """Repository for activity log entries, partitioned by day."""

    def __init__(self, table_name: str | None = None):
        """Initialize log repository.

        Args:
            table_name: DynamoDB table name.
        """
        super().__init__(LogEntry, table_name)

    def append(self, entry: LogEntry) -> LogEntry:
        """Append a log entry.

        Args:
            entry: Entry to write.

        Returns:
            The written entry.
        """
        return self.create(entry)

    def list_by_date(
        self,
        day: date,
        log_type: LogType | str | None = None,
        limit: int = 100,
        newest_first: bool = True,
    ) -> list[LogEntry]:
        """List entries written on a given day.

        Args:
            day: UTC date.
            log_type: Optional category filter.
            limit: Maximum entries to return.
            newest_first: Sort direction.

        Returns:
            List of log entries.
        """
        kwargs = {}
        if log_type is not None:
            kwargs["filter_expression"] = "log_type = :log_type"
            kwargs["expression_values"] = {":log_type": LogType(log_type).value}

        return self.query_all(
            pk=f"LOG#{day.isoformat()}",
            max_items=limit,
            scan_forward=not newest_first,
            **kwargs,
        )
