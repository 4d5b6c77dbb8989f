# /test/test_decorators.py
import pytest
from structlog.testing import capture_logs
from tenacity import wait_none

from trovekit.core.decorators import retriable_chain_call


@pytest.mark.asyncio
async def test_transient_chain_error_is_retried_until_it_succeeds():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("node unavailable")
        return 42

    call = retriable_chain_call(flaky).retry_with(wait=wait_none())
    with capture_logs() as logs:
        assert await call() == 42

    assert len(attempts) == 3
    retries = [entry for entry in logs if entry["event"] == "CHAIN_CALL_RETRYING"]
    assert [entry["attempt"] for entry in retries] == [1, 2]


@pytest.mark.asyncio
async def test_last_error_is_reraised_after_three_attempts():
    attempts = []

    async def down():
        attempts.append(1)
        raise TimeoutError("no response")

    call = retriable_chain_call(down).retry_with(wait=wait_none())
    with pytest.raises(TimeoutError):
        await call()
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_non_transient_error_is_not_retried():
    attempts = []

    async def reverted():
        attempts.append(1)
        raise ValueError("execution reverted")

    call = retriable_chain_call(reverted).retry_with(wait=wait_none())
    with pytest.raises(ValueError):
        await call()
    assert attempts == [1]
