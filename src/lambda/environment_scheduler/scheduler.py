"""
Environment scheduler: reconciles an environment toward ACTIVE or SUSPENDED.

Each call:
1. Observes the compute workload and the database instance (fresh, never cached)
2. Computes a TransitionPlan from the observed state alone
3. Issues at most one command per resource and reports each outcome separately

A database in a transient lifecycle state is never commanded; the next
invocation re-observes it once the platform has finished.
"""

import logging
import time

from environment_scheduler.errors import (
    AlreadyInTargetStateError,
    ConflictingStateError,
    PermanentPlatformError,
    SchedulerError,
)
from environment_scheduler.models import (
    Command,
    CommandKind,
    DesiredState,
    ReconcileResult,
    Resource,
    ResourceOutcome,
    TransitionPlan,
)
from environment_scheduler.retry import call_with_retry

logger = logging.getLogger(__name__)

AVAILABLE = "available"
STOPPED = "stopped"
TRANSIENT_DB_STATES = frozenset({
    "starting",
    "stopping",
    "backing-up",
    "modifying",
    "rebooting",
    "upgrading",
    "renaming",
    "maintenance",
    "creating",
    "resetting-master-credentials",
    "storage-optimization",
    "configuring-enhanced-monitoring",
    "configuring-iam-database-auth",
    "configuring-log-exports",
    "moving-to-vpc",
})
IN_FLIGHT_STATE = {
    CommandKind.START_DATABASE: "starting",
    CommandKind.STOP_DATABASE: "stopping",
}


def target_desired_count(desired_state, active_count):
    return active_count if desired_state is DesiredState.ACTIVE else 0


def target_db_state(desired_state):
    return AVAILABLE if desired_state is DesiredState.ACTIVE else STOPPED


def database_skip_reason(lifecycle_state):
    """Why a database in this state must be left alone, or None if it can be commanded."""
    if lifecycle_state in TRANSIENT_DB_STATES:
        return f"instance mid-transition: {lifecycle_state}"
    if lifecycle_state not in (AVAILABLE, STOPPED):
        return f"instance not controllable in state: {lifecycle_state}"
    return None


def build_plan(target, compute_status, database_status, active_count, compute_id="compute", database_id="database"):
    """Pure planning step: same observed input, same plan.

    A status of None means the resource could not be observed; no command is
    planned for it.
    """
    compute_cmd = None
    if compute_status is not None:
        desired = target_desired_count(target.desired_state, active_count)
        if compute_status.desired_count != desired:
            compute_cmd = Command(CommandKind.SET_DESIRED_COUNT, compute_id, desired_count=desired)

    database_cmd = None
    skip_reason = None
    if database_status is not None:
        state = database_status.lifecycle_state
        skip_reason = database_skip_reason(state)
        if skip_reason is None:
            if state == AVAILABLE and target.desired_state is DesiredState.SUSPENDED:
                database_cmd = Command(CommandKind.STOP_DATABASE, database_id)
            elif state == STOPPED and target.desired_state is DesiredState.ACTIVE:
                database_cmd = Command(CommandKind.START_DATABASE, database_id)

    return TransitionPlan(compute=compute_cmd, database=database_cmd, database_skip_reason=skip_reason)


class EnvironmentScheduler:
    """Stateless reconciler bound to one client and one configuration."""

    def __init__(self, client, config, sleep=time.sleep):
        self.client = client
        self.config = config
        self.sleep = sleep

    def _call(self, operation, description):
        return call_with_retry(operation, self.config.retry, description, sleep=self.sleep)

    def _observe(self, resource):
        if resource is Resource.COMPUTE:
            return self._call(self.client.describe_compute, f"describe compute {self.config.service_name}")
        return self._call(self.client.describe_database, f"describe database {self.config.db_instance_id}")

    def _plan(self, target, compute_status, database_status):
        return build_plan(
            target,
            compute_status,
            database_status,
            self.config.active_desired_count,
            compute_id=self.config.service_name,
            database_id=self.config.db_instance_id,
        )

    def observe(self):
        """Fresh (compute, database) status. Observation errors propagate."""
        return self._observe(Resource.COMPUTE), self._observe(Resource.DATABASE)

    def plan(self, target, observed=None) -> TransitionPlan:
        """Plan without issuing commands, observing first unless a status pair is given."""
        compute_status, database_status = observed or self.observe()
        return self._plan(target, compute_status, database_status)

    def reconcile(self, target) -> ReconcileResult:
        logger.info(f"Reconciling {target.environment_id} toward {target.desired_state.value}")

        observed = {}
        failures = {}
        for resource in (Resource.COMPUTE, Resource.DATABASE):
            try:
                observed[resource] = self._observe(resource)
            except SchedulerError as e:
                logger.error(f"Could not observe {resource.value}: {e}")
                failures[resource] = ResourceOutcome.failed(resource, e)

        compute_status = observed.get(Resource.COMPUTE)
        database_status = observed.get(Resource.DATABASE)
        if compute_status is not None:
            logger.info(f"Observed compute: {compute_status.to_dict()}")
        if database_status is not None:
            logger.info(f"Observed database: {database_status.to_dict()}")

        plan = self._plan(target, compute_status, database_status)
        logger.info(f"Transition plan: {plan.to_list() or 'no commands'}")

        compute = failures.get(Resource.COMPUTE) or self._apply_compute(plan)
        database = failures.get(Resource.DATABASE) or self._apply_database(target, plan)

        result = ReconcileResult(target=target, compute=compute, database=database, plan=plan)
        if not result.ok:
            logger.warning(f"Reconciliation of {target.environment_id} finished with failures")
        return result

    def _apply_compute(self, plan):
        cmd = plan.compute
        if cmd is None:
            return ResourceOutcome.unchanged(Resource.COMPUTE)
        try:
            self._call(lambda: self.client.set_compute_desired_count(cmd.desired_count), cmd.describe())
        except AlreadyInTargetStateError:
            return ResourceOutcome.unchanged(Resource.COMPUTE)
        except ConflictingStateError as e:
            return ResourceOutcome.skipped(Resource.COMPUTE, f"workload mid-transition: {e}")
        except SchedulerError as e:
            logger.error(f"{cmd.describe()} failed: {e}")
            return ResourceOutcome.failed(Resource.COMPUTE, e)
        return ResourceOutcome.scaled(cmd.desired_count)

    def _apply_database(self, target, plan):
        cmd = plan.database
        if cmd is None:
            if plan.database_skip_reason:
                logger.info(f"Skipping database: {plan.database_skip_reason}")
                return ResourceOutcome.skipped(Resource.DATABASE, plan.database_skip_reason)
            return ResourceOutcome.unchanged(Resource.DATABASE)

        if cmd.kind is CommandKind.START_DATABASE:
            operation, done = self.client.start_database, ResourceOutcome.started()
        else:
            operation, done = self.client.stop_database, ResourceOutcome.stopped()

        try:
            self._call(operation, cmd.describe())
        except AlreadyInTargetStateError:
            return ResourceOutcome.unchanged(Resource.DATABASE)
        except ConflictingStateError as e:
            logger.warning(f"{cmd.describe()} rejected: {e}")
            return self._resolve_conflict(target, cmd, e, done)
        except SchedulerError as e:
            logger.error(f"{cmd.describe()} failed: {e}")
            return ResourceOutcome.failed(Resource.DATABASE, e)
        return done

    def _resolve_conflict(self, target, cmd, error, done):
        """Re-observe once after the platform rejected a start/stop.

        An instance already moving toward the target means an earlier attempt
        landed (e.g. a retry after a read timeout).
        """
        try:
            status = self._observe(Resource.DATABASE)
        except SchedulerError as e:
            return ResourceOutcome.failed(Resource.DATABASE, e)

        state = status.lifecycle_state
        if state == target_db_state(target.desired_state):
            return ResourceOutcome.unchanged(Resource.DATABASE)
        if state == IN_FLIGHT_STATE[cmd.kind]:
            return done
        reason = database_skip_reason(state)
        if reason is not None:
            return ResourceOutcome.skipped(Resource.DATABASE, reason)
        return ResourceOutcome.failed(
            Resource.DATABASE,
            PermanentPlatformError(
                f"{cmd.describe()} rejected in state {state}: {error}",
                code=error.code,
                reason=PermanentPlatformError.INVALID,
            ),
        )
