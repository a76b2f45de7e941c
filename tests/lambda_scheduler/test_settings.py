import pytest

from environment_scheduler.errors import ConfigurationError
from environment_scheduler.settings import SchedulerConfig

BASE_ENV = {"ECS_CLUSTER": "conductor-cluster", "ECS_SERVICE": "conductor-service", "DB_INSTANCE": "conductor-db"}


def test_defaults_from_minimal_env():
    config = SchedulerConfig.from_env(BASE_ENV)

    assert config.environment_id == "conductor-cluster/conductor-service"
    assert config.active_desired_count == 1
    assert config.retry.max_attempts == 3
    assert config.retry.base_delay == 2.0
    assert (config.open_hour, config.close_hour) == (12, 3)
    assert config.timezone == "UTC"


def test_overrides_from_env():
    env = dict(
        BASE_ENV,
        ENVIRONMENT_ID="prod",
        ACTIVE_DESIRED_COUNT="2",
        RETRY_MAX_ATTEMPTS="5",
        RETRY_BASE_DELAY_SECONDS="0.5",
        RETRY_MAX_DELAY_SECONDS="4",
        SCHEDULE_TIMEZONE="America/Chicago",
        OPEN_HOUR="7",
        CLOSE_HOUR="22",
    )

    config = SchedulerConfig.from_env(env)

    assert config.environment_id == "prod"
    assert config.active_desired_count == 2
    assert config.retry.max_attempts == 5
    assert config.retry.base_delay == 0.5
    assert config.tz.key == "America/Chicago"
    assert (config.open_hour, config.close_hour) == (7, 22)


def test_missing_required_variables():
    with pytest.raises(ConfigurationError) as exc:
        SchedulerConfig.from_env({"ECS_CLUSTER": "c"})

    assert "ECS_SERVICE" in str(exc.value)
    assert "DB_INSTANCE" in str(exc.value)


@pytest.mark.parametrize(
    "key,value",
    [
        ("ACTIVE_DESIRED_COUNT", "0"),
        ("ACTIVE_DESIRED_COUNT", "one"),
        ("RETRY_MAX_ATTEMPTS", "0"),
        ("RETRY_MAX_DELAY_SECONDS", "1"),
        ("OPEN_HOUR", "24"),
        ("CLOSE_HOUR", "12"),
        ("SCHEDULE_TIMEZONE", "Mars/Olympus_Mons"),
    ],
)
def test_invalid_values_are_rejected(key, value):
    with pytest.raises(ConfigurationError):
        SchedulerConfig.from_env(dict(BASE_ENV, **{key: value}))
