# /trovekit/core/logger.py
import logging
import structlog
from structlog.contextvars import bind_contextvars
import sentry_sdk
from prometheus_client import Counter
from trovekit.core.config import settings

# --- Prometheus Metrics ---
HINT_SEARCHES = Counter("trovekit_hint_searches_total", "Total number of hint resolutions")
APPROX_HINT_CALLS = Counter("trovekit_approx_hint_calls_total", "Remote approximate-hint calls issued")
GAS_ESTIMATES = Counter("trovekit_gas_estimates_total", "Gas estimates computed", ["operation"])
REDEMPTIONS_TRUNCATED = Counter("trovekit_redemptions_truncated_total", "Redemption plans that were truncated")
STORE_UPDATES = Counter("trovekit_store_updates_total", "Snapshots applied by the store")
STORE_STALE_DISCARDED = Counter("trovekit_store_stale_discarded_total", "Fetches discarded for being behind the applied block")
STORE_FETCH_FAILURES = Counter("trovekit_store_fetch_failures_total", "Per-block fetches that failed")
STORE_STREAM_FAILURES = Counter("trovekit_store_stream_failures_total", "Times the block stream failed and was resubscribed")
STORE_LISTENER_FAILURES = Counter("trovekit_store_listener_failures_total", "Store callbacks that raised")
CACHE_HITS = Counter("trovekit_cache_hits_total", "Reads served from the store snapshot", ["field"])
CACHE_MISSES = Counter("trovekit_cache_misses_total", "Reads that fell through to the chain", ["field"])

def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN.get_secret_value(), traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(default=str),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

def get_logger(name: str):
    return structlog.get_logger(name)

def bind_block(block_tag: int):
    bind_contextvars(block_tag=block_tag)

configure_logging()
log = get_logger("trovekit.System")
