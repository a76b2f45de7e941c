import pytest

from environment_scheduler.models import ComputeWorkloadStatus, DatabaseInstanceStatus
from environment_scheduler.retry import RetryPolicy
from environment_scheduler.settings import SchedulerConfig


class FakeResourceControlClient:
    """In-memory ResourceControlClient.

    ``errors`` maps a method name to a list of exceptions raised on successive
    calls before the call succeeds; a None entry lets that call through.
    """

    def __init__(self, desired_count=1, running_count=1, db_state="available", errors=None):
        self.desired_count = desired_count
        self.running_count = running_count
        self.db_state = db_state
        self.errors = {k: list(v) for k, v in (errors or {}).items()}
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        pending = self.errors.get(name)
        if pending:
            error = pending.pop(0)
            if error is not None:
                raise error

    @property
    def commands(self):
        return [c for c in self.calls if not c[0].startswith("describe")]

    def describe_compute(self):
        self._record("describe_compute")
        return ComputeWorkloadStatus(desired_count=self.desired_count, running_count=self.running_count)

    def set_compute_desired_count(self, count):
        self._record("set_compute_desired_count", count)
        self.desired_count = count

    def describe_database(self):
        self._record("describe_database")
        return DatabaseInstanceStatus(lifecycle_state=self.db_state)

    def start_database(self):
        self._record("start_database")
        self.db_state = "starting"

    def stop_database(self):
        self._record("stop_database")
        self.db_state = "stopping"


@pytest.fixture
def config():
    return SchedulerConfig(
        cluster_name="conductor-cluster",
        service_name="conductor-service",
        db_instance_id="conductor-db",
        retry=RetryPolicy(max_attempts=3, base_delay=2.0, max_delay=8.0),
    )


@pytest.fixture
def sleeps():
    """Collects backoff delays instead of sleeping."""
    return []


@pytest.fixture
def make_client():
    return FakeResourceControlClient
