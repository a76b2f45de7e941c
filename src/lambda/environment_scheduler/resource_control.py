"""
Resource control client: the scheduler's only view of the cloud platform.

ResourceControlClient is the capability the scheduler consumes. The AWS
implementation maps it onto an ECS service (compute workload) and an RDS DB
instance (database), and classifies every botocore failure into the scheduler
error hierarchy so nothing SDK-specific leaks past this module.

IAM needed by the Lambda role:
    ecs:DescribeServices, ecs:UpdateService,
    rds:DescribeDBInstances, rds:StartDBInstance, rds:StopDBInstance
"""

import logging
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from environment_scheduler.errors import (
    ConflictingStateError,
    PermanentPlatformError,
    SchedulerError,
    TransientPlatformError,
)
from environment_scheduler.models import ComputeWorkloadStatus, DatabaseInstanceStatus

logger = logging.getLogger(__name__)

TRANSIENT_CODES = {
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestLimitExceeded",
    "RequestThrottled",
    "RequestThrottledException",
    "TooManyRequestsException",
    "SlowDown",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "InternalFailure",
    "InternalError",
    "InternalServerError",
    "ServerException",
    "RequestTimeout",
    "RequestTimeoutException",
}
CONFLICT_CODES = {
    "InvalidDBInstanceState",
    "InvalidDBInstanceStateFault",
}
NOT_FOUND_CODES = {
    "DBInstanceNotFound",
    "DBInstanceNotFoundFault",
    "ServiceNotFoundException",
    "ServiceNotActiveException",
    "ClusterNotFoundException",
}
ACCESS_DENIED_CODES = {
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "UnrecognizedClientException",
    "InvalidClientTokenId",
    "ExpiredTokenException",
}
INVALID_CODES = {
    "InvalidParameterException",
    "InvalidParameterValue",
    "InvalidParameterCombination",
    "ValidationError",
}

CONNECT_TIMEOUT_SECONDS = 2
READ_TIMEOUT_SECONDS = 4

# botocore retries are disabled; call_with_retry owns the retry budget.
# Short socket timeouts keep one stalled endpoint to well under half of the
# 60s Lambda timeout, so the other resource is still reconciled.
SINGLE_ATTEMPT = Config(
    retries={"max_attempts": 1, "mode": "standard"},
    connect_timeout=CONNECT_TIMEOUT_SECONDS,
    read_timeout=READ_TIMEOUT_SECONDS,
)


class ResourceControlClient(Protocol):
    def describe_compute(self) -> ComputeWorkloadStatus: ...

    def set_compute_desired_count(self, count: int) -> None: ...

    def describe_database(self) -> DatabaseInstanceStatus: ...

    def start_database(self) -> None: ...

    def stop_database(self) -> None: ...


def classify_client_error(e: Exception, operation: str) -> SchedulerError:
    """Translate a botocore failure into the scheduler error hierarchy."""
    if isinstance(e, SchedulerError):
        return e
    if isinstance(e, ClientError):
        error = e.response.get("Error", {})
        code = error.get("Code", "Unknown")
        message = f"{operation}: {code}: {error.get('Message', '')}".rstrip(": ")
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        if code in TRANSIENT_CODES or status >= 500:
            return TransientPlatformError(message, code=code)
        if code in CONFLICT_CODES:
            return ConflictingStateError(message, code=code)
        if code in NOT_FOUND_CODES:
            return PermanentPlatformError(message, code=code, reason=PermanentPlatformError.NOT_FOUND)
        if code in ACCESS_DENIED_CODES:
            return PermanentPlatformError(message, code=code, reason=PermanentPlatformError.ACCESS_DENIED)
        if code in INVALID_CODES:
            return PermanentPlatformError(message, code=code, reason=PermanentPlatformError.INVALID)
        return PermanentPlatformError(message, code=code)
    if isinstance(e, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError, ConnectionClosedError)):
        return TransientPlatformError(f"{operation}: {e}", code=type(e).__name__)
    if isinstance(e, NoCredentialsError):
        return PermanentPlatformError(
            f"{operation}: {e}", code=type(e).__name__, reason=PermanentPlatformError.ACCESS_DENIED
        )
    return PermanentPlatformError(f"{operation}: {e}", code=type(e).__name__)


class AwsResourceControlClient:
    """ECS service + RDS instance behind the ResourceControlClient capability."""

    def __init__(self, ecs_client, rds_client, cluster_name, service_name, db_instance_id):
        self.ecs = ecs_client
        self.rds = rds_client
        self.cluster_name = cluster_name
        self.service_name = service_name
        self.db_instance_id = db_instance_id

    @classmethod
    def from_config(cls, config, session=None):
        session = session or boto3.session.Session(region_name=config.region)
        return cls(
            session.client("ecs", config=SINGLE_ATTEMPT),
            session.client("rds", config=SINGLE_ATTEMPT),
            cluster_name=config.cluster_name,
            service_name=config.service_name,
            db_instance_id=config.db_instance_id,
        )

    def describe_compute(self) -> ComputeWorkloadStatus:
        try:
            response = self.ecs.describe_services(cluster=self.cluster_name, services=[self.service_name])
        except (ClientError, BotoCoreError) as e:
            raise classify_client_error(e, "DescribeServices") from e

        services = response.get("services", [])
        if not services:
            reasons = [f.get("reason", "MISSING") for f in response.get("failures", [])]
            raise PermanentPlatformError(
                f"ECS service {self.cluster_name}/{self.service_name} not found ({', '.join(reasons) or 'MISSING'})",
                code="MISSING",
                reason=PermanentPlatformError.NOT_FOUND,
            )
        svc = services[0]
        if svc.get("status", "ACTIVE") != "ACTIVE":
            raise PermanentPlatformError(
                f"ECS service {self.service_name} is {svc.get('status')}",
                code="ServiceNotActiveException",
                reason=PermanentPlatformError.NOT_FOUND,
            )
        return ComputeWorkloadStatus(
            desired_count=svc.get("desiredCount", 0),
            running_count=svc.get("runningCount", 0),
            pending_count=svc.get("pendingCount", 0),
            status=svc.get("status", "ACTIVE"),
        )

    def set_compute_desired_count(self, count: int) -> None:
        logger.info(f"ECS UpdateService {self.cluster_name}/{self.service_name} desiredCount={count}")
        try:
            self.ecs.update_service(cluster=self.cluster_name, service=self.service_name, desiredCount=count)
        except (ClientError, BotoCoreError) as e:
            raise classify_client_error(e, "UpdateService") from e

    def describe_database(self) -> DatabaseInstanceStatus:
        try:
            response = self.rds.describe_db_instances(DBInstanceIdentifier=self.db_instance_id)
        except (ClientError, BotoCoreError) as e:
            raise classify_client_error(e, "DescribeDBInstances") from e

        instances = response.get("DBInstances", [])
        if not instances:
            raise PermanentPlatformError(
                f"RDS instance {self.db_instance_id} not found",
                code="DBInstanceNotFound",
                reason=PermanentPlatformError.NOT_FOUND,
            )
        return DatabaseInstanceStatus(lifecycle_state=instances[0]["DBInstanceStatus"])

    def start_database(self) -> None:
        logger.info(f"RDS StartDBInstance {self.db_instance_id}")
        try:
            self.rds.start_db_instance(DBInstanceIdentifier=self.db_instance_id)
        except (ClientError, BotoCoreError) as e:
            raise classify_client_error(e, "StartDBInstance") from e

    def stop_database(self) -> None:
        logger.info(f"RDS StopDBInstance {self.db_instance_id}")
        try:
            self.rds.stop_db_instance(DBInstanceIdentifier=self.db_instance_id)
        except (ClientError, BotoCoreError) as e:
            raise classify_client_error(e, "StopDBInstance") from e
