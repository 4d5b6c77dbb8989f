# /test/conftest.py
import asyncio
from decimal import Decimal

import pytest

from trovekit.adapters.mock import MockChainReader, MockBlockStream

USER = "0xUser"
OTHER_USER = "0xSomeoneElse"
FRONTEND = "0xFrontend"


def address(i: int) -> str:
    return f"0x{i:040x}"


async def eventually(predicate, timeout: float = 2.0):
    """Polls *predicate* until it holds, failing the test after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def chain():
    return MockChainReader(price=Decimal(200), block_number=100)


@pytest.fixture
def blocks():
    return MockBlockStream()


@pytest.fixture
def five_troves(chain):
    """Five Troves with nominal ratios 3.0, 2.5, 2.2, 2.1 and 2.0 (debt 2000 each)."""
    owners = {}
    for name, ratio in (("p300", "3.0"), ("p250", "2.5"), ("p220", "2.2"), ("p210", "2.1"), ("p200", "2.0")):
        # nominal ratio = collateral * 100 / debt
        chain.open_trove(name, collateral=Decimal(ratio) * 20, debt=Decimal(2000))
        owners[name] = name
    return owners
