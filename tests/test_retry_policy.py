import pytest

from myai.core.errors import UpstreamError
from myai.services.gateway.retry_policy import RetryPolicy, is_retryable


class FlakyOperation:
    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (UpstreamError("down"), True),
        (UpstreamError("bad gateway", status_code=502), True),
        (UpstreamError("unavailable", status_code=503), True),
        (UpstreamError("rate limited", status_code=429), True),
        (UpstreamError("bad request", status_code=400), False),
        (UpstreamError("unauthorized", status_code=401), False),
        (UpstreamError("not found", status_code=404), False),
        (ValueError("not an upstream error"), False),
    ],
)
def test_is_retryable(error, expected):
    assert is_retryable(error) is expected


def test_delay_doubles_per_attempt():
    policy = RetryPolicy(max_attempts=4, base_delay=0.5)

    assert [policy.delay_for_attempt(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]


@pytest.mark.parametrize(("max_attempts", "base_delay"), [(0, 1.0), (3, -1.0)])
def test_rejects_invalid_configuration(max_attempts, base_delay):
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=max_attempts, base_delay=base_delay)


@pytest.mark.asyncio
async def test_transient_failures_are_retried_with_backoff(sleep):
    operation = FlakyOperation(
        UpstreamError("unavailable", status_code=503),
        UpstreamError("unavailable", status_code=503),
        "ok",
    )
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleep)

    assert await policy.run(operation) == "ok"
    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(sleep):
    error = UpstreamError("bad request", status_code=400)
    operation = FlakyOperation(error, "never reached")
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleep)

    with pytest.raises(UpstreamError) as exc_info:
        await policy.run(operation)

    assert exc_info.value is error
    assert operation.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_exhausted_attempts_reraise_last_error(sleep):
    last = UpstreamError("connection reset")
    operation = FlakyOperation(UpstreamError("timeout"), UpstreamError("timeout"), last)
    policy = RetryPolicy(max_attempts=3, base_delay=2.0, sleep=sleep)

    with pytest.raises(UpstreamError) as exc_info:
        await policy.run(operation)

    assert exc_info.value is last
    assert operation.calls == 3
    assert sleep.delays == [2.0, 4.0]


@pytest.mark.asyncio
async def test_single_attempt_policy_never_sleeps(sleep):
    operation = FlakyOperation(UpstreamError("unavailable", status_code=503))
    policy = RetryPolicy(max_attempts=1, base_delay=1.0, sleep=sleep)

    with pytest.raises(UpstreamError):
        await policy.run(operation)

    assert operation.calls == 1
    assert sleep.delays == []
