"""Engine configuration loaded from environment variables."""

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value in (None, ""):
        return default
    return value.lower() in ("1", "true", "yes", "on")


@dataclass
class EngineSettings:
    """Tunables for the rule engine.

    Durations are in seconds unless the name says otherwise.
    """

    table_name: str = "ruleflow-dev"
    log_level: str = "info"

    # Immediate retries
    max_retries: int = 3
    retry_base_delay: float = 1.0
    backoff_multiplier: float = 2.0

    # Circuit breaker
    circuit_failure_threshold: int = 5
    circuit_recovery_timeout: float = 60.0

    # Dead letter queue
    dlq_max_retry_attempts: int = 3
    dlq_batch_limit: int = 20
    dlq_older_than_minutes: int = 5
    dlq_stale_processing_minutes: int = 30

    # Delayed actions: only arm an in-process timer for delays within this horizon
    inprocess_delay_horizon: float = 900.0
    scheduled_stale_running_minutes: int = 30

    # Cross-process single-flight for DLQ sweeps
    use_sweep_lease: bool = False
    sweep_lease_seconds: int = 300

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from environment variables.

        Returns:
            EngineSettings instance.
        """
        defaults = cls()
        return cls(
            table_name=os.environ.get("TABLE_NAME", defaults.table_name),
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level),
            max_retries=_env_int("RULEFLOW_MAX_RETRIES", defaults.max_retries),
            retry_base_delay=_env_float("RULEFLOW_RETRY_BASE_DELAY", defaults.retry_base_delay),
            backoff_multiplier=_env_float(
                "RULEFLOW_BACKOFF_MULTIPLIER", defaults.backoff_multiplier
            ),
            circuit_failure_threshold=_env_int(
                "RULEFLOW_CIRCUIT_FAILURE_THRESHOLD", defaults.circuit_failure_threshold
            ),
            circuit_recovery_timeout=_env_float(
                "RULEFLOW_CIRCUIT_RECOVERY_TIMEOUT", defaults.circuit_recovery_timeout
            ),
            dlq_max_retry_attempts=_env_int(
                "RULEFLOW_DLQ_MAX_RETRY_ATTEMPTS", defaults.dlq_max_retry_attempts
            ),
            dlq_batch_limit=_env_int("RULEFLOW_DLQ_BATCH_LIMIT", defaults.dlq_batch_limit),
            dlq_older_than_minutes=_env_int(
                "RULEFLOW_DLQ_OLDER_THAN_MINUTES", defaults.dlq_older_than_minutes
            ),
            dlq_stale_processing_minutes=_env_int(
                "RULEFLOW_DLQ_STALE_PROCESSING_MINUTES", defaults.dlq_stale_processing_minutes
            ),
            inprocess_delay_horizon=_env_float(
                "RULEFLOW_INPROCESS_DELAY_HORIZON", defaults.inprocess_delay_horizon
            ),
            scheduled_stale_running_minutes=_env_int(
                "RULEFLOW_SCHEDULED_STALE_RUNNING_MINUTES",
                defaults.scheduled_stale_running_minutes,
            ),
            use_sweep_lease=_env_bool("RULEFLOW_USE_SWEEP_LEASE", defaults.use_sweep_lease),
            sweep_lease_seconds=_env_int(
                "RULEFLOW_SWEEP_LEASE_SECONDS", defaults.sweep_lease_seconds
            ),
        )
