"""Bounded exponential backoff for control-plane calls."""

import logging
import time
from dataclasses import dataclass

from environment_scheduler.errors import SchedulerError, TransientPlatformError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: float = 8.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


def call_with_retry(operation, policy: RetryPolicy, description: str, sleep=time.sleep):
    """Run operation, retrying only TransientPlatformError.

    Other errors propagate on the first attempt. When attempts run out the last
    transient error is re-raised with its ``attempts`` count set.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except TransientPlatformError as e:
            e.attempts = attempt
            if attempt >= policy.max_attempts:
                logger.error(f"{description} failed after {attempt} attempt(s): {e}")
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                f"{description} hit a transient error (attempt {attempt}/{policy.max_attempts}): {e}; "
                f"retrying in {delay:.1f}s"
            )
            sleep(delay)
        except SchedulerError as e:
            e.attempts = attempt
            raise
