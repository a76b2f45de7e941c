"""
Lambda: suspend the environment at night and bring it back in the morning.

EventBridge invokes this with {"action": "stop"} at environment close and
{"action": "start"} at environment open. Stop scales the ECS service to 0 and
stops the RDS instance; start restores the steady-state task count and starts
the instance. Without an action the target is taken from the clock, using
OPEN_HOUR / CLOSE_HOUR in SCHEDULE_TIMEZONE.
"""

import json
import logging
from datetime import datetime

from environment_scheduler.errors import InvalidInvocationError
from environment_scheduler.models import DesiredState, EnvironmentTarget
from environment_scheduler.resource_control import AwsResourceControlClient
from environment_scheduler.scheduler import EnvironmentScheduler
from environment_scheduler.settings import SchedulerConfig

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def resolve_target(event, config, now=None):
    """Return the EnvironmentTarget for this invocation, or None when there is nothing to do."""
    if event is None:
        event = {}
    if not isinstance(event, dict):
        raise InvalidInvocationError(
            f"Expected an object payload like {{\"action\": \"stop\"}}, got {type(event).__name__}",
            code="INVALID_PAYLOAD",
        )
    action = event.get("action")
    if action is not None:
        return EnvironmentTarget(config.environment_id, DesiredState.from_action(action))

    now = now or datetime.now(config.tz)
    hour = now.astimezone(config.tz).hour
    if hour == config.open_hour:
        return EnvironmentTarget(config.environment_id, DesiredState.ACTIVE)
    if hour == config.close_hour:
        return EnvironmentTarget(config.environment_id, DesiredState.SUSPENDED)
    return None


def lambda_handler(event, context):
    config = SchedulerConfig.from_env()

    try:
        target = resolve_target(event, config)
    except InvalidInvocationError as e:
        logger.error(f"Rejected invocation {event!r}: {e}")
        return {"ok": False, "error": str(e)}

    if target is None:
        hour = datetime.now(config.tz).hour
        logger.info(f"No action for hour {hour} ({config.timezone})")
        return {"action": "none", "hour": hour}

    logger.info(f"Environment {target.environment_id}: action={target.desired_state.action}")
    scheduler = EnvironmentScheduler(AwsResourceControlClient.from_config(config), config)
    result = scheduler.reconcile(target).to_dict()

    logger.info(json.dumps(result))
    return result
