"""Error types raised while reconciling the environment.

Control-plane failures are classified at the client boundary into:
- TransientPlatformError: throttling / temporary unavailability, retried with backoff
- ConflictingStateError: resource is mid-transition, never retried
- AlreadyInTargetStateError: not a failure, reported as unchanged
- PermanentPlatformError: not found / access denied / invalid, surfaced immediately
"""


class SchedulerError(Exception):
    """Base class for environment scheduler errors."""

    error_class = "permanent"

    def __init__(self, message, code=None):
        self.code = code
        self.attempts = 1
        super().__init__(message)


class TransientPlatformError(SchedulerError):
    error_class = "transient"


class ConflictingStateError(SchedulerError):
    error_class = "conflict"


class AlreadyInTargetStateError(SchedulerError):
    error_class = "noop"


class PermanentPlatformError(SchedulerError):
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    INVALID = "invalid"
    UNKNOWN = "unknown"

    def __init__(self, message, code=None, reason=UNKNOWN):
        self.reason = reason
        super().__init__(message, code=code)


class ConfigurationError(SchedulerError):
    """Deploy-time configuration is missing or invalid."""


class InvalidInvocationError(SchedulerError):
    """The trigger payload does not name a known action."""
