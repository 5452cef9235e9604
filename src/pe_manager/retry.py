"""Exponential-backoff retry for transient Azure API failures.

Errors are classified by matching their message against the policy's
retryable pattern:
- Matching errors are retried with a doubling wait, capped at max_wait_seconds.
- Non-matching errors propagate immediately, without retry.
- A matching error that outlives the retry budget does NOT propagate. The
  executor returns a result with outcome EXHAUSTED and logs a warning, and the
  caller decides whether that should abort its work (raise_if_exhausted()).

Waits are blocking. There is no parallelism between attempts.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 10
DEFAULT_INITIAL_WAIT_SECONDS = 2
DEFAULT_MAX_WAIT_SECONDS = 15
DEFAULT_RETRYABLE_ERROR_PATTERN = r"RetryableError|ReferencedResourceNotProvisioned"

Sleeper = Callable[[float], None]


class RetryPolicyError(ValueError):
    """Raised when a retry policy has out-of-range values."""

    pass


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff bounds.

    max_retries is the total number of attempts, so at most max_retries - 1
    waits happen before the executor gives up.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_wait_seconds: int = DEFAULT_INITIAL_WAIT_SECONDS
    max_wait_seconds: int = DEFAULT_MAX_WAIT_SECONDS
    retryable_error_pattern: str = DEFAULT_RETRYABLE_ERROR_PATTERN

    def __post_init__(self) -> None:
        errors: list[str] = []

        if self.max_retries < 1:
            errors.append(f"max_retries must be at least 1: {self.max_retries}")
        if self.initial_wait_seconds < 0:
            errors.append(f"initial_wait_seconds must be >= 0: {self.initial_wait_seconds}")
        if self.max_wait_seconds < self.initial_wait_seconds:
            errors.append(
                f"max_wait_seconds ({self.max_wait_seconds}) must be >= "
                f"initial_wait_seconds ({self.initial_wait_seconds})"
            )
        try:
            re.compile(self.retryable_error_pattern)
        except re.error as e:
            errors.append(f"retryable_error_pattern is not a valid regex: {e}")

        if errors:
            raise RetryPolicyError("Invalid retry policy: " + "; ".join(errors))

    def is_retryable(self, error: BaseException) -> bool:
        """Check whether an error's message matches the retryable pattern."""
        return re.search(self.retryable_error_pattern, str(error)) is not None


DEFAULT_RETRY_POLICY = RetryPolicy()


class RetryOutcome(str, Enum):
    """How a retried operation ended without raising."""

    SUCCEEDED = "Succeeded"
    EXHAUSTED = "Exhausted"


class RetryExhaustedError(Exception):
    """Raised when a caller opts to treat retry exhaustion as fatal."""

    def __init__(self, operation: str, attempts: int, last_error: BaseException | None) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} exhausted {attempts} attempts; last error: {last_error}"
        )


@dataclass
class RetryResult(Generic[T]):
    """Result of running an operation under a retry policy."""

    operation: str
    outcome: RetryOutcome
    attempts: int
    value: T | None = None
    last_error: BaseException | None = None
    waits: list[float] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome == RetryOutcome.SUCCEEDED

    @property
    def exhausted(self) -> bool:
        return self.outcome == RetryOutcome.EXHAUSTED

    def raise_if_exhausted(self) -> RetryResult[T]:
        """Turn silent exhaustion into an error for callers that need it.

        Raises:
            RetryExhaustedError: If the outcome is EXHAUSTED.
        """
        if self.exhausted:
            raise RetryExhaustedError(self.operation, self.attempts, self.last_error)
        return self


class Backoff:
    """Attempt counter and doubling wait shared by retry loops and pollers."""

    def __init__(self, policy: RetryPolicy, sleep: Sleeper = time.sleep) -> None:
        self._policy = policy
        self._sleep = sleep
        self._next_wait: float = policy.initial_wait_seconds
        self.retry_count = 0
        self.waits: list[float] = []

    @property
    def can_retry(self) -> bool:
        """True while another attempt fits in the budget."""
        return self.retry_count < self._policy.max_retries - 1

    @property
    def attempts(self) -> int:
        return self.retry_count + 1

    @property
    def next_wait(self) -> float:
        return self._next_wait

    def wait(self) -> float:
        """Sleep for the current wait, then double it up to the cap."""
        waited = self._next_wait
        self._sleep(waited)
        self.waits.append(waited)
        self._next_wait = min(self._next_wait * 2, self._policy.max_wait_seconds)
        self.retry_count += 1
        return waited


def execute_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    operation_name: str = "operation",
    sleep: Sleeper = time.sleep,
    log_context: dict[str, Any] | None = None,
) -> RetryResult[T]:
    """Run a zero-argument operation under a retry policy.

    Args:
        operation: The action to attempt.
        policy: Retry budget, backoff bounds and retryable pattern.
        operation_name: Name used in logs and in the result.
        sleep: Blocking sleep function (injectable for tests).
        log_context: Extra fields attached to every log record.

    Returns:
        RetryResult with outcome SUCCEEDED (value set) or EXHAUSTED
        (last_error set).

    Raises:
        Exception: Any error whose message does not match the retryable
            pattern, re-raised on the attempt where it occurred.
    """
    backoff = Backoff(policy, sleep)
    context = dict(log_context or {})

    while True:
        try:
            value = operation()
        except Exception as e:
            if not policy.is_retryable(e):
                logger.error(
                    f"{operation_name} failed with non-retryable error",
                    extra={**context, "attempt": backoff.attempts, "error": str(e)},
                )
                raise

            if not backoff.can_retry:
                logger.warning(
                    f"{operation_name} exhausted retries",
                    extra={
                        **context,
                        "attempts": backoff.attempts,
                        "max_retries": policy.max_retries,
                        "error": str(e),
                    },
                )
                return RetryResult(
                    operation=operation_name,
                    outcome=RetryOutcome.EXHAUSTED,
                    attempts=backoff.attempts,
                    last_error=e,
                    waits=backoff.waits,
                )

            logger.warning(
                f"{operation_name} hit retryable error, retrying",
                extra={
                    **context,
                    "attempt": backoff.attempts,
                    "max_retries": policy.max_retries,
                    "wait_seconds": backoff.next_wait,
                    "error": str(e),
                },
            )
            backoff.wait()
            continue

        return RetryResult(
            operation=operation_name,
            outcome=RetryOutcome.SUCCEEDED,
            attempts=backoff.attempts,
            value=value,
            waits=backoff.waits,
        )
