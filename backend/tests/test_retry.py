"""Tests for the AI retry policy."""
from __future__ import annotations

import pytest

from fitplan.core.errors import AiError, AiErrorKind
from fitplan.services.ai.retry import RetryPolicy


class _Flaky:
    def __init__(self, errors: list[AiError], result: str = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def test_delays_are_exponential() -> None:
    policy = RetryPolicy(max_attempts=3, base_delay_seconds=2.0)

    assert [policy.delay_for(attempt) for attempt in (1, 2, 3, 4)] == [0.0, 2.0, 4.0, 8.0]


def test_transient_failure_then_success() -> None:
    sleeps: list[float] = []
    policy = RetryPolicy(sleep=sleeps.append)
    operation = _Flaky([AiError(AiErrorKind.TIMEOUT, "slow")])

    assert policy.run(operation) == "ok"
    assert operation.calls == 2
    assert sleeps == [2.0]


@pytest.mark.parametrize(
    "kind",
    [
        AiErrorKind.INVALID_API_KEY,
        AiErrorKind.PARSE_ERROR,
        AiErrorKind.INVALID_RESPONSE,
        AiErrorKind.CONTENT_FILTERED,
        AiErrorKind.INVALID_REQUEST,
        AiErrorKind.UNKNOWN,
    ],
)
def test_non_retryable_errors_attempt_once(kind: AiErrorKind) -> None:
    sleeps: list[float] = []
    policy = RetryPolicy(sleep=sleeps.append)
    operation = _Flaky([AiError(kind, "nope")])

    with pytest.raises(AiError) as excinfo:
        policy.run(operation)

    assert excinfo.value.kind is kind
    assert operation.calls == 1
    assert sleeps == []


def test_gives_up_after_max_attempts_with_last_error() -> None:
    sleeps: list[float] = []
    policy = RetryPolicy(max_attempts=3, sleep=sleeps.append)
    operation = _Flaky(
        [
            AiError(AiErrorKind.NETWORK_ERROR, "first"),
            AiError(AiErrorKind.TIMEOUT, "second"),
            AiError(AiErrorKind.RATE_LIMITED, "third"),
        ]
    )

    with pytest.raises(AiError) as excinfo:
        policy.run(operation)

    assert excinfo.value.kind is AiErrorKind.RATE_LIMITED
    assert operation.calls == 3
    assert sleeps == [2.0, 4.0]


def test_max_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
