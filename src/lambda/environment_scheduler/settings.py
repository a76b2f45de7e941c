"""Deploy-time configuration for the environment scheduler.

Values come from the Lambda environment (set by the deployment stack) and are
gathered into one immutable SchedulerConfig that is passed to the scheduler.
"""

import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from environment_scheduler.errors import ConfigurationError
from environment_scheduler.retry import RetryPolicy

DEFAULT_ACTIVE_DESIRED_COUNT = 1
DEFAULT_TIMEZONE = "UTC"
OPEN_HOUR = 12   # 7am CST
CLOSE_HOUR = 3   # 10pm CST


@dataclass(frozen=True)
class SchedulerConfig:
    cluster_name: str
    service_name: str
    db_instance_id: str
    environment_id: str = ""
    active_desired_count: int = DEFAULT_ACTIVE_DESIRED_COUNT
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    region: str | None = None
    timezone: str = DEFAULT_TIMEZONE
    open_hour: int = OPEN_HOUR
    close_hour: int = CLOSE_HOUR

    def __post_init__(self):
        if not self.environment_id:
            object.__setattr__(self, "environment_id", f"{self.cluster_name}/{self.service_name}")
        if self.active_desired_count < 1:
            raise ConfigurationError("ACTIVE_DESIRED_COUNT must be at least 1")
        if self.retry.max_attempts < 1:
            raise ConfigurationError("RETRY_MAX_ATTEMPTS must be at least 1")
        if self.retry.base_delay < 0 or self.retry.max_delay < self.retry.base_delay:
            raise ConfigurationError("Retry delays must satisfy 0 <= base <= max")
        for name in ("open_hour", "close_hour"):
            if not 0 <= getattr(self, name) <= 23:
                raise ConfigurationError(f"{name.upper()} must be between 0 and 23")
        if self.open_hour == self.close_hour:
            raise ConfigurationError("OPEN_HOUR and CLOSE_HOUR must differ")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown SCHEDULE_TIMEZONE: {self.timezone}") from e

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls, environ=None) -> "SchedulerConfig":
        env = os.environ if environ is None else environ
        missing = [k for k in ("ECS_CLUSTER", "ECS_SERVICE", "DB_INSTANCE") if not env.get(k)]
        if missing:
            raise ConfigurationError(f"Missing required environment variable(s): {', '.join(missing)}")

        return cls(
            cluster_name=env["ECS_CLUSTER"],
            service_name=env["ECS_SERVICE"],
            db_instance_id=env["DB_INSTANCE"],
            environment_id=env.get("ENVIRONMENT_ID", ""),
            active_desired_count=_int(env, "ACTIVE_DESIRED_COUNT", DEFAULT_ACTIVE_DESIRED_COUNT),
            retry=RetryPolicy(
                max_attempts=_int(env, "RETRY_MAX_ATTEMPTS", 3),
                base_delay=_float(env, "RETRY_BASE_DELAY_SECONDS", 2.0),
                max_delay=_float(env, "RETRY_MAX_DELAY_SECONDS", 8.0),
            ),
            region=env.get("AWS_REGION") or None,
            timezone=env.get("SCHEDULE_TIMEZONE", DEFAULT_TIMEZONE),
            open_hour=_int(env, "OPEN_HOUR", OPEN_HOUR),
            close_hour=_int(env, "CLOSE_HOUR", CLOSE_HOUR),
        )


def _int(env, key, default):
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer (got {raw!r})") from e


def _float(env, key, default):
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be a number (got {raw!r})") from e
