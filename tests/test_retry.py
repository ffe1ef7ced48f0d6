# tests/test_retry.py
"""Tests for pagelingo.services.retry"""

import pytest

from pagelingo.services.exceptions import BackendError
from pagelingo.services.retry import RetryPolicy, call_with_retry


class Flaky:
    """Callable failing a fixed number of times before succeeding"""

    def __init__(self, failures: int, error=None):
        self.failures = failures
        self.calls = 0
        self.error = error or BackendError("fake", "unavailable", http_status=503)

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestRetryPolicy:

    def test_default_delays_double(self):
        policy = RetryPolicy()
        assert [policy.delay_for(n) for n in range(3)] == [2.0, 4.0, 8.0]

    def test_max_attempts(self):
        assert RetryPolicy(max_retries=3).max_attempts == 4


class TestCallWithRetry:

    @pytest.mark.asyncio
    async def test_success_first_try(self, no_sleep):
        func = Flaky(0)
        assert await call_with_retry(func, RetryPolicy(), sleep=no_sleep) == "ok"
        assert func.calls == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_two_failures(self, no_sleep):
        """Two failures then success: 3 attempts, waits 2s then 4s"""
        func = Flaky(2)
        assert await call_with_retry(func, RetryPolicy(), sleep=no_sleep) == "ok"
        assert func.calls == 3
        assert no_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_success_on_last_attempt_matches_first_try(self, no_sleep):
        first_try = await call_with_retry(Flaky(0), RetryPolicy(max_retries=3), sleep=no_sleep)
        last_try = await call_with_retry(Flaky(3), RetryPolicy(max_retries=3), sleep=no_sleep)
        assert last_try == first_try
        assert no_sleep.delays == [2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_budget_exhausted_raises_last_error(self, no_sleep):
        func = Flaky(10)
        with pytest.raises(BackendError) as exc_info:
            await call_with_retry(func, RetryPolicy(max_retries=3), sleep=no_sleep)
        assert exc_info.value is func.error
        assert func.calls == 4
        assert no_sleep.delays == [2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_zero_retries(self, no_sleep):
        func = Flaky(1)
        with pytest.raises(BackendError):
            await call_with_retry(func, RetryPolicy(max_retries=0), sleep=no_sleep)
        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self, no_sleep):
        func = Flaky(1, error=ValueError("bug"))
        with pytest.raises(ValueError):
            await call_with_retry(func, RetryPolicy(), sleep=no_sleep)
        assert func.calls == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_custom_base_delay(self, no_sleep):
        func = Flaky(2)
        await call_with_retry(func, RetryPolicy(base_delay=0.5), sleep=no_sleep)
        assert no_sleep.delays == [0.5, 1.0]
