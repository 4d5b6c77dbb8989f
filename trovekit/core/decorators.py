# /trovekit/core/decorators.py
# Caller-side retry policy for chain reads. The engine itself never retries;
# the service wraps its startup reads with this.
import asyncio

from aiohttp import ClientError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from trovekit.core.logger import get_logger

log = get_logger(__name__)

# Node hiccups worth another attempt. Reverts and bad arguments are not.
TRANSIENT_CHAIN_ERRORS = (ConnectionError, OSError, asyncio.TimeoutError, ClientError)


def _log_retry(retry_state):
    log.warning(
        "CHAIN_CALL_RETRYING",
        call=getattr(retry_state.fn, "__qualname__", repr(retry_state.fn)),
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )


retriable_chain_call = retry(
    retry=retry_if_exception_type(TRANSIENT_CHAIN_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    before_sleep=_log_retry,
    reraise=True,
)
