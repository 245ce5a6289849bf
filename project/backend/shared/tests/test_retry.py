"""
Tests for retry with exponential backoff and bounded polling.
"""

import pytest
from unittest.mock import AsyncMock, patch
from shared.retry import retry_with_backoff, poll_until
from shared.errors import AnalysisTimeoutError, RenderFailedError, RetryableError, ValidationError


@pytest.fixture
def no_sleep():
    with patch("shared.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


@pytest.mark.asyncio
async def test_retry_succeeds_on_first_attempt(no_sleep):
    """Test that function succeeds on first attempt."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=0.1)
    async def successful_function():
        nonlocal call_count
        call_count += 1
        return "success"

    result = await successful_function()
    assert result == "success"
    assert call_count == 1
    no_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_retry_succeeds_after_retries(no_sleep):
    """Test that function succeeds after retries."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=0.1)
    async def retryable_function():
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise RetryableError("Temporary failure")
        return "success"

    result = await retryable_function()
    assert result == "success"
    assert call_count == 2


@pytest.mark.asyncio
async def test_retry_fails_after_max_attempts(no_sleep):
    """Test that function raises exception after max attempts."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=2)
    async def always_fails():
        nonlocal call_count
        call_count += 1
        raise RetryableError("Always fails")

    with pytest.raises(RetryableError, match="Always fails"):
        await always_fails()

    assert call_count == 3
    # Exponential backoff: 2s, 4s
    assert [c.args[0] for c in no_sleep.call_args_list] == [2, 4]


@pytest.mark.asyncio
async def test_retry_only_on_retryable_error(no_sleep):
    """Test that non-retryable errors are not retried."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=0.1)
    async def non_retryable_error():
        nonlocal call_count
        call_count += 1
        raise ValidationError("Non-retryable")

    with pytest.raises(ValidationError, match="Non-retryable"):
        await non_retryable_error()

    assert call_count == 1


@pytest.mark.asyncio
async def test_retry_custom_retryable_exceptions(no_sleep):
    """Test that custom retryable exceptions work."""
    call_count = 0

    @retry_with_backoff(
        max_attempts=3,
        base_delay=0.1,
        retryable_exceptions=(ConnectionError, RetryableError)
    )
    async def custom_retryable():
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise ConnectionError("Connection failed")
        return "success"

    result = await custom_retryable()
    assert result == "success"
    assert call_count == 2


def test_retry_sync_function():
    """Test that retry works with sync functions."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=0.01)
    def sync_function():
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise RetryableError("Retry")
        return "success"

    result = sync_function()
    assert result == "success"
    assert call_count == 2


# poll_until

@pytest.mark.asyncio
async def test_poll_until_returns_first_done_value(no_sleep):
    fetch = AsyncMock(side_effect=["processing", "processing", "completed"])

    result = await poll_until(fetch, lambda v: v == "completed", interval=2.0, max_attempts=5)

    assert result == "completed"
    assert fetch.await_count == 3
    # Fixed interval, slept only between attempts
    assert [c.args[0] for c in no_sleep.call_args_list] == [2.0, 2.0]


@pytest.mark.asyncio
async def test_poll_until_first_fetch_is_immediate(no_sleep):
    fetch = AsyncMock(return_value="completed")

    await poll_until(fetch, lambda v: v == "completed", interval=2.0, max_attempts=5)

    no_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_poll_until_raises_timeout_after_max_attempts(no_sleep):
    fetch = AsyncMock(return_value="processing")

    with pytest.raises(AnalysisTimeoutError, match="after 3 attempts"):
        await poll_until(fetch, lambda v: False, interval=2.0, max_attempts=3, description="analysis")

    assert fetch.await_count == 3
    assert no_sleep.await_count == 2


@pytest.mark.asyncio
async def test_poll_until_custom_timeout_error(no_sleep):
    fetch = AsyncMock(return_value="rendering")

    with pytest.raises(RenderFailedError, match="render abc"):
        await poll_until(
            fetch, lambda v: False, interval=5.0, max_attempts=2,
            timeout_error=RenderFailedError, description="render abc"
        )


@pytest.mark.asyncio
async def test_poll_until_reports_each_attempt(no_sleep):
    fetch = AsyncMock(side_effect=["a", "b"])
    seen = []

    async def on_attempt(attempt, value):
        seen.append((attempt, value))

    await poll_until(fetch, lambda v: v == "b", interval=1.0, max_attempts=3, on_attempt=on_attempt)

    assert seen == [(1, "a"), (2, "b")]


@pytest.mark.asyncio
async def test_poll_until_rejects_zero_attempts():
    with pytest.raises(ValueError):
        await poll_until(AsyncMock(), lambda v: True, interval=1.0, max_attempts=0)
