"""Tests for the retry executor and retry policy."""

from __future__ import annotations

import pytest
from azure_mock import RecordingSleep, not_provisioned_error, transient_error

from pe_manager.retry import (
    DEFAULT_RETRY_POLICY,
    Backoff,
    RetryExhaustedError,
    RetryOutcome,
    RetryPolicy,
    RetryPolicyError,
    execute_with_retry,
)


class Flaky:
    """Operation that raises queued errors, then returns a value."""

    def __init__(self, *errors: Exception, value: str = "ok") -> None:
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class AlwaysFails:
    def __init__(self, error: Exception) -> None:
        self.error = error
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1
        raise self.error


class TestRetryPolicy:
    """Tests for RetryPolicy validation and classification."""

    def test_defaults(self) -> None:
        """Test documented default values."""
        policy = RetryPolicy()

        assert policy.max_retries == 10
        assert policy.initial_wait_seconds == 2
        assert policy.max_wait_seconds == 15
        assert policy.retryable_error_pattern == "RetryableError|ReferencedResourceNotProvisioned"

    def test_default_policy_is_immutable(self) -> None:
        """Test that the shared default cannot be mutated."""
        with pytest.raises(AttributeError):
            DEFAULT_RETRY_POLICY.max_retries = 1  # type: ignore[misc]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_retries": 0},
            {"initial_wait_seconds": -1},
            {"initial_wait_seconds": 10, "max_wait_seconds": 5},
            {"retryable_error_pattern": "("},
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict) -> None:
        """Test that out-of-range policies raise RetryPolicyError."""
        with pytest.raises(RetryPolicyError):
            RetryPolicy(**kwargs)

    def test_is_retryable_matches_message(self) -> None:
        """Test classification by error message."""
        policy = RetryPolicy()

        assert policy.is_retryable(transient_error())
        assert policy.is_retryable(not_provisioned_error())
        assert not policy.is_retryable(ValueError("NotFound: gone"))

    def test_custom_pattern(self) -> None:
        """Test that the pattern is configurable."""
        policy = RetryPolicy(retryable_error_pattern="Conflict")

        assert policy.is_retryable(RuntimeError("Conflict: busy"))
        assert not policy.is_retryable(transient_error())


class TestBackoff:
    """Tests for the backoff schedule."""

    def test_doubles_and_caps(self) -> None:
        """Test wait doubling capped at max_wait_seconds."""
        sleep = RecordingSleep()
        backoff = Backoff(RetryPolicy(max_retries=10), sleep)

        for _ in range(6):
            backoff.wait()

        assert sleep.calls == [2, 4, 8, 15, 15, 15]
        assert backoff.retry_count == 6

    def test_can_retry_bound(self) -> None:
        """Test that at most max_retries - 1 waits are allowed."""
        backoff = Backoff(RetryPolicy(max_retries=3), RecordingSleep())

        assert backoff.can_retry
        backoff.wait()
        assert backoff.can_retry
        backoff.wait()
        assert not backoff.can_retry
        assert backoff.attempts == 3

    def test_single_attempt_policy_never_waits(self) -> None:
        """Test that max_retries=1 allows no retries."""
        backoff = Backoff(RetryPolicy(max_retries=1), RecordingSleep())

        assert not backoff.can_retry


class TestExecuteWithRetry:
    """Tests for execute_with_retry."""

    def test_success_first_attempt(self) -> None:
        """Test that a successful operation returns immediately."""
        sleep = RecordingSleep()
        operation = Flaky(value="done")

        result = execute_with_retry(operation, RetryPolicy(), sleep=sleep)

        assert result.outcome == RetryOutcome.SUCCEEDED
        assert result.succeeded
        assert result.value == "done"
        assert result.attempts == 1
        assert operation.calls == 1
        assert sleep.calls == []

    def test_retries_then_succeeds(self) -> None:
        """Test recovery after transient failures."""
        sleep = RecordingSleep()
        operation = Flaky(transient_error(), not_provisioned_error())

        result = execute_with_retry(operation, RetryPolicy(), sleep=sleep)

        assert result.succeeded
        assert result.attempts == 3
        assert sleep.calls == [2, 4]
        assert result.waits == [2, 4]

    def test_non_retryable_propagates_immediately(self) -> None:
        """Test that a non-matching error is raised on the first attempt."""
        sleep = RecordingSleep()
        operation = AlwaysFails(ValueError("InvalidArgument: bad zone id"))

        with pytest.raises(ValueError, match="bad zone id"):
            execute_with_retry(operation, RetryPolicy(), sleep=sleep)

        assert operation.calls == 1
        assert sleep.calls == []

    def test_non_retryable_after_retryable(self) -> None:
        """Test that a fatal error after transient ones still propagates."""
        sleep = RecordingSleep()
        operation = Flaky(transient_error(), KeyError("boom"))

        with pytest.raises(KeyError):
            execute_with_retry(operation, RetryPolicy(), sleep=sleep)

        assert operation.calls == 2
        assert sleep.calls == [2]

    def test_exhaustion_is_silent(self) -> None:
        """Test that a persistent retryable error does not raise."""
        sleep = RecordingSleep()
        error = transient_error()
        operation = AlwaysFails(error)

        result = execute_with_retry(operation, RetryPolicy(), sleep=sleep)

        assert result.outcome == RetryOutcome.EXHAUSTED
        assert result.exhausted
        assert result.value is None
        assert result.last_error is error
        assert operation.calls == 10
        assert result.attempts == 10
        assert sleep.calls == [2, 4, 8, 15, 15, 15, 15, 15, 15]

    def test_exhaustion_with_small_budget(self) -> None:
        """Test exhaustion respects a custom budget."""
        sleep = RecordingSleep()
        operation = AlwaysFails(transient_error())
        policy = RetryPolicy(max_retries=3, initial_wait_seconds=1, max_wait_seconds=1)

        result = execute_with_retry(operation, policy, sleep=sleep)

        assert result.exhausted
        assert operation.calls == 3
        assert sleep.calls == [1, 1]

    def test_raise_if_exhausted(self) -> None:
        """Test that callers can opt into raising on exhaustion."""
        result = execute_with_retry(
            AlwaysFails(transient_error()),
            RetryPolicy(max_retries=2, initial_wait_seconds=0, max_wait_seconds=0),
            operation_name="Tag provisioned state",
            sleep=RecordingSleep(),
        )

        with pytest.raises(RetryExhaustedError) as exc_info:
            result.raise_if_exhausted()

        assert exc_info.value.attempts == 2
        assert exc_info.value.operation == "Tag provisioned state"
        assert "RetryableError" in str(exc_info.value)

    def test_raise_if_exhausted_passes_success(self) -> None:
        """Test that a successful result is returned unchanged."""
        result = execute_with_retry(Flaky(), RetryPolicy(), sleep=RecordingSleep())

        assert result.raise_if_exhausted() is result
