"""Transient request/response values for one reconciliation.

Nothing here is persisted: the cloud platform is the state of record and every
invocation re-observes it.
"""

from dataclasses import dataclass
from enum import Enum

from environment_scheduler.errors import InvalidInvocationError

ACTIONS = {"start": "ACTIVE", "stop": "SUSPENDED"}


class DesiredState(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"

    @classmethod
    def from_action(cls, action) -> "DesiredState":
        """Map a trigger action ("start" / "stop") to a desired state."""
        key = str(action or "").strip().lower()
        if key not in ACTIONS:
            raise InvalidInvocationError(
                f"Unknown action {action!r}; expected one of {sorted(ACTIONS)}",
                code="INVALID_ACTION",
            )
        return cls(ACTIONS[key])

    @property
    def action(self) -> str:
        return "start" if self is DesiredState.ACTIVE else "stop"


@dataclass(frozen=True)
class EnvironmentTarget:
    environment_id: str
    desired_state: DesiredState


@dataclass(frozen=True)
class ComputeWorkloadStatus:
    desired_count: int
    running_count: int
    pending_count: int = 0
    status: str = "ACTIVE"

    def to_dict(self):
        return {
            "desiredCount": self.desired_count,
            "runningCount": self.running_count,
            "pendingCount": self.pending_count,
            "status": self.status,
        }


@dataclass(frozen=True)
class DatabaseInstanceStatus:
    lifecycle_state: str

    def to_dict(self):
        return {"lifecycleState": self.lifecycle_state}


class Resource(str, Enum):
    COMPUTE = "compute"
    DATABASE = "database"


class CommandKind(str, Enum):
    SET_DESIRED_COUNT = "set_desired_count"
    START_DATABASE = "start_database"
    STOP_DATABASE = "stop_database"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    resource_id: str
    desired_count: int | None = None

    @property
    def resource(self) -> Resource:
        if self.kind is CommandKind.SET_DESIRED_COUNT:
            return Resource.COMPUTE
        return Resource.DATABASE

    def describe(self) -> str:
        if self.kind is CommandKind.SET_DESIRED_COUNT:
            return f"SetComputeDesiredCount({self.resource_id}, {self.desired_count})"
        if self.kind is CommandKind.START_DATABASE:
            return f"StartDatabase({self.resource_id})"
        return f"StopDatabase({self.resource_id})"


@dataclass(frozen=True)
class TransitionPlan:
    """Commands computed for one invocation; discarded afterwards."""

    compute: Command | None = None
    database: Command | None = None
    database_skip_reason: str | None = None

    @property
    def commands(self) -> tuple:
        return tuple(c for c in (self.compute, self.database) if c is not None)

    @property
    def is_empty(self) -> bool:
        return not self.commands

    def to_list(self):
        return [c.describe() for c in self.commands]


class OutcomeKind(str, Enum):
    UNCHANGED = "Unchanged"
    SCALED = "Scaled"
    STARTED = "Started"
    STOPPED = "Stopped"
    SKIPPED = "Skipped"
    FAILED = "Failed"


@dataclass(frozen=True)
class ResourceOutcome:
    resource: Resource
    kind: OutcomeKind
    scaled_to: int | None = None
    reason: str | None = None
    error_class: str | None = None
    attempts: int | None = None

    @classmethod
    def unchanged(cls, resource):
        return cls(resource, OutcomeKind.UNCHANGED)

    @classmethod
    def scaled(cls, to):
        return cls(Resource.COMPUTE, OutcomeKind.SCALED, scaled_to=to)

    @classmethod
    def started(cls):
        return cls(Resource.DATABASE, OutcomeKind.STARTED)

    @classmethod
    def stopped(cls):
        return cls(Resource.DATABASE, OutcomeKind.STOPPED)

    @classmethod
    def skipped(cls, resource, reason):
        return cls(resource, OutcomeKind.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, resource, error):
        return cls(
            resource,
            OutcomeKind.FAILED,
            reason=str(error),
            error_class=error.error_class,
            attempts=error.attempts,
        )

    @property
    def succeeded(self) -> bool:
        return self.kind is not OutcomeKind.FAILED

    def to_dict(self):
        out = {"outcome": self.kind.value}
        if self.scaled_to is not None:
            out["to"] = self.scaled_to
        if self.reason is not None:
            out["reason"] = self.reason
        if self.error_class is not None:
            out["errorClass"] = self.error_class
            out["attempts"] = self.attempts
        return out


@dataclass(frozen=True)
class ReconcileResult:
    target: EnvironmentTarget
    compute: ResourceOutcome
    database: ResourceOutcome
    plan: TransitionPlan

    @property
    def ok(self) -> bool:
        return self.compute.succeeded and self.database.succeeded

    def to_dict(self):
        return {
            "environmentId": self.target.environment_id,
            "desiredState": self.target.desired_state.value,
            "ok": self.ok,
            "compute": self.compute.to_dict(),
            "database": self.database.to_dict(),
            "plan": self.plan.to_list(),
        }
