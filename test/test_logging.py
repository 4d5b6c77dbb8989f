# /test/test_logging.py
import structlog
from structlog.testing import capture_logs

from trovekit.core.logger import get_logger, bind_block, GAS_ESTIMATES, STORE_UPDATES


def test_structured_events_and_prometheus():
    with capture_logs() as logs:
        get_logger("test.unit").info("UNIT_TEST_EVENT", data=1)
    assert logs == [{"event": "UNIT_TEST_EVENT", "data": 1, "log_level": "info"}]

    c = GAS_ESTIMATES.labels("unit")
    initial = c._value.get()
    c.inc()
    assert c._value.get() == initial + 1

    initial = STORE_UPDATES._value.get()
    STORE_UPDATES.inc()
    assert STORE_UPDATES._value.get() == initial + 1


def test_bind_block_sets_context_for_later_events():
    try:
        bind_block(1234)
        assert structlog.contextvars.get_contextvars()["block_tag"] == 1234
    finally:
        structlog.contextvars.clear_contextvars()
