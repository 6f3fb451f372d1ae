"""
Bounded Retry Tests

INVARIANTS TESTED:
1. At most 1 + max_retries attempts
2. Backoff doubles from the base and adds jitter
3. Timeouts count as failures
4. The final failure surfaces as ExecutionError with the attempt count
"""

import asyncio

import pytest

from dispatch.errors import ExecutionError
from dispatch.retry import RetryPolicy, execute_with_retry

from ..fixtures import RecordingSleep


class Flaky:
    """Fails the first `failures` calls, then returns `value`."""

    def __init__(self, failures, value="ok"):
        self.failures = failures
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"boom {self.calls}")
        return self.value


def run(coro):
    return asyncio.run(coro)


class TestBackoff:

    def test_exponential_schedule(self):
        policy = RetryPolicy(base_backoff_seconds=1.0)
        assert [policy.backoff(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_jitter_is_added(self):
        policy = RetryPolicy(base_backoff_seconds=0.5)
        assert policy.backoff(2, jitter=0.25) == 1.25


class TestExecuteWithRetry:

    def test_first_attempt_success(self):
        sleep = RecordingSleep()
        call = Flaky(0)
        result, attempts = run(execute_with_retry(call, RetryPolicy(), sleep=sleep))

        assert result == "ok"
        assert attempts == 1
        assert sleep.delays == []

    def test_recovers_after_failures(self):
        sleep = RecordingSleep()
        call = Flaky(2)
        policy = RetryPolicy(max_retries=3, base_backoff_seconds=1.0)
        result, attempts = run(execute_with_retry(call, policy, sleep=sleep, jitter=lambda _: 0.0))

        assert result == "ok"
        assert attempts == 3
        assert sleep.delays == [1.0, 2.0]

    def test_gives_up_after_budget(self):
        sleep = RecordingSleep()
        call = Flaky(10)
        policy = RetryPolicy(max_retries=3, base_backoff_seconds=1.0, max_jitter_seconds=0.5)

        with pytest.raises(ExecutionError) as excinfo:
            run(execute_with_retry(call, policy, sleep=sleep, jitter=lambda upper: upper))

        assert call.calls == 4
        assert excinfo.value.attempts == 4
        assert "ConnectionError: boom 4" in str(excinfo.value)
        assert sleep.delays == [1.5, 2.5, 4.5]

    def test_zero_retries_means_one_attempt(self):
        call = Flaky(1)
        with pytest.raises(ExecutionError) as excinfo:
            run(execute_with_retry(call, RetryPolicy(max_retries=0), sleep=RecordingSleep()))
        assert call.calls == 1
        assert excinfo.value.attempts == 1

    def test_timeout_is_a_failure(self):
        async def hang():
            await asyncio.sleep(10)

        policy = RetryPolicy(max_retries=1, timeout_seconds=0.01, base_backoff_seconds=0.0)
        with pytest.raises(ExecutionError) as excinfo:
            run(execute_with_retry(hang, policy, sleep=RecordingSleep(), jitter=lambda _: 0.0))

        assert excinfo.value.attempts == 2
        assert "timed out after 0.01s" in str(excinfo.value)

    def test_jitter_bounded_by_policy(self):
        seen = []

        def jitter(upper):
            seen.append(upper)
            return 0.0

        policy = RetryPolicy(max_retries=2, max_jitter_seconds=0.5)
        run(execute_with_retry(Flaky(2), policy, sleep=RecordingSleep(), jitter=jitter))
        assert seen == [0.5, 0.5]
