"""Per-unit rollout, retention and alarm settings."""

from topology.models import (
    AlarmSpec,
    ComputeUnitSpec,
    DeploymentPolicy,
    EnvironmentFlags,
    LogRetention,
    RolloutStrategy,
)

ERROR_ALARM_THRESHOLD = 5
ALARM_PERIOD_MINUTES = 1
ALARM_EVALUATION_PERIODS = 1
ALARM_COMPARISON = ">="

# Log retention keys off the literal stage, not the production flag.
LONG_RETENTION_STAGE = "prod"


def log_retention_for(stage: str) -> LogRetention:
    if stage == LONG_RETENTION_STAGE:
        return LogRetention.ONE_YEAR
    return LogRetention.ONE_WEEK


def policy_for(
    unit: ComputeUnitSpec, flags: EnvironmentFlags, stage: str
) -> DeploymentPolicy:
    """Operational settings for one compute unit."""
    if flags.is_production_like:
        rollout = RolloutStrategy.CANARY_10_PERCENT_10_MINUTES
    else:
        rollout = RolloutStrategy.ALL_AT_ONCE

    return DeploymentPolicy(
        rollout_strategy=rollout,
        log_retention=log_retention_for(stage),
        error_alarm_threshold=ERROR_ALARM_THRESHOLD,
    )


def error_alarm(
    logical_id: str,
    description: str,
    metric: str,
    topic_name: str,
    alarm_name: str | None = None,
    threshold: int = ERROR_ALARM_THRESHOLD,
) -> AlarmSpec:
    """Build an error alarm wired to the alarm topic."""
    return AlarmSpec(
        logical_id=logical_id,
        alarm_name=alarm_name,
        description=description,
        metric=metric,
        statistic="Sum",
        period_minutes=ALARM_PERIOD_MINUTES,
        threshold=threshold,
        evaluation_periods=ALARM_EVALUATION_PERIODS,
        comparison=ALARM_COMPARISON,
        topic_name=topic_name,
    )
