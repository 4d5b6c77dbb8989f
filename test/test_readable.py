# /test/test_readable.py
from decimal import Decimal

import pytest

from conftest import USER, OTHER_USER, FRONTEND
from trovekit.core.errors import InvalidParamsError
from trovekit.core.models import FrontendStatus, Trove, TroveStatus
from trovekit.core.readable import CachedReader
from trovekit.core.store import BlockPolledStore


@pytest.fixture
def funded(chain):
    chain.open_trove(USER, collateral=Decimal(10), debt=Decimal(3000))
    chain.open_trove(OTHER_USER, collateral=Decimal(30), debt=Decimal(2000))
    chain.lusd_balances[USER] = Decimal(700)
    chain.frontends[FRONTEND] = FrontendStatus(registered=True, kickback_rate=Decimal("0.9"))
    return chain


@pytest.mark.asyncio
async def test_reads_for_the_bound_user_are_served_from_the_store(funded, blocks):
    """
    GIVEN a loaded store bound to USER
    WHEN block and user fields are read without an explicit block tag
    THEN no call reaches the chain.
    """
    store = BlockPolledStore(funded, blocks, user_address=USER, frontend_tag=FRONTEND)
    store.start()
    try:
        await store.wait_loaded()
        reader = CachedReader(funded, store)
        funded.calls.clear()

        assert await reader.get_price() == Decimal(200)
        assert await reader.get_lusd_balance() == Decimal(700)
        assert await reader.get_lusd_balance(USER.lower()) == Decimal(700)
        trove = await reader.get_trove(USER)
        assert trove.status == TroveStatus.OPEN
        assert (await reader.get_frontend_status()).registered
        assert (await reader.get_fees()).borrowing_rate() == Decimal("0.005")

        assert funded.calls == []
    finally:
        store.stop()


@pytest.mark.asyncio
async def test_reads_for_another_user_go_to_the_chain(funded, blocks):
    store = BlockPolledStore(funded, blocks, user_address=USER)
    store.start()
    try:
        await store.wait_loaded()
        reader = CachedReader(funded, store)
        funded.calls.clear()

        trove = await reader.get_trove(OTHER_USER)

        assert trove.debt == Decimal(2000)
        assert funded.calls_to("get_trove_before_redistribution") == [
            ("get_trove_before_redistribution", OTHER_USER, None)
        ]
    finally:
        store.stop()


@pytest.mark.asyncio
async def test_reads_at_another_block_go_to_the_chain(funded, blocks):
    store = BlockPolledStore(funded, blocks, user_address=USER)
    store.start()
    try:
        state = await store.wait_loaded()
        reader = CachedReader(funded, store)
        funded.block_prices[50] = Decimal(120)
        funded.calls.clear()

        assert await reader.get_price(state.block_tag) == Decimal(200)
        assert funded.calls == []

        assert await reader.get_price(50) == Decimal(120)
        assert funded.calls == [("get_price", 50)]
    finally:
        store.stop()


@pytest.mark.asyncio
async def test_frontend_reads_for_another_tag_go_to_the_chain(funded, blocks):
    store = BlockPolledStore(funded, blocks, frontend_tag=FRONTEND)
    store.start()
    try:
        await store.wait_loaded()
        reader = CachedReader(funded, store)
        funded.calls.clear()

        assert (await reader.get_frontend_status(FRONTEND)).registered
        assert funded.calls == []

        assert not (await reader.get_frontend_status(USER)).registered
        assert funded.calls_to("get_frontend_status") == [("get_frontend_status", USER, None)]
    finally:
        store.stop()


@pytest.mark.asyncio
async def test_store_that_has_not_loaded_is_bypassed(funded, blocks):
    store = BlockPolledStore(funded, blocks, user_address=USER)
    reader = CachedReader(funded, store)

    assert await reader.get_price() == Decimal(200)
    assert (await reader.get_trove()).debt == Decimal(3000)
    assert funded.calls_to("get_price") == [("get_price", None)]


@pytest.mark.asyncio
async def test_live_trove_includes_pending_redistribution(funded):
    # stake equals collateral (10), so each unit redistributed per stake adds 10
    funded.total_redistributed = Trove(collateral=Decimal("0.1"), debt=Decimal(10))
    reader = CachedReader(funded)

    trove = await reader.get_trove(USER)
    before = await reader.get_trove_before_redistribution(USER)

    assert trove.collateral == Decimal(11)
    assert trove.debt == Decimal(3100)
    assert before.debt == Decimal(3000)


@pytest.mark.asyncio
async def test_live_fees_switch_to_recovery_mode(funded):
    funded.price = Decimal(100)
    # total ratio 40 * 100 / 5000 = 0.8
    fees = await CachedReader(funded).get_fees()
    assert fees.recovery_mode
    assert fees.borrowing_rate() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("first, sorted_by, starting_at", [
    (-1, "ascendingCollateralRatio", 0),
    (True, "ascendingCollateralRatio", 0),
    ("2", "ascendingCollateralRatio", 0),
    (2, "byDebt", 0),
    (2, "descendingCollateralRatio", -3),
])
async def test_invalid_listing_params_never_reach_the_chain(funded, first, sorted_by, starting_at):
    with pytest.raises(InvalidParamsError):
        await CachedReader(funded).get_troves(first, sorted_by, starting_at)
    assert funded.calls == []


@pytest.mark.asyncio
async def test_listing_is_read_live(funded):
    troves = await CachedReader(funded).get_troves(first=1, sorted_by="ascendingCollateralRatio")
    assert [t.owner for t in troves] == [USER]


@pytest.mark.asyncio
async def test_user_read_without_address_needs_a_bound_user(funded, blocks):
    with pytest.raises(InvalidParamsError):
        await CachedReader(funded).get_trove()

    store = BlockPolledStore(funded, blocks)
    store.start()
    try:
        await store.wait_loaded()
        with pytest.raises(InvalidParamsError):
            await CachedReader(funded, store).get_lusd_balance()
    finally:
        store.stop()
