# /test/test_hints.py
import math
import random
from decimal import Decimal

import pytest

from trovekit.core.hints import HintPair, HintResolver, trial_batches
from trovekit.core.readable import CachedReader
from trovekit.core.utils import ZERO_ADDRESS

from conftest import address


def expected_hints(chain, ratio):
    """Reference O(N) position with the zero sides filled in."""
    prev, next_ = chain.reference_insert_position(ratio)
    if prev == ZERO_ADDRESS:
        prev = next_
    elif next_ == ZERO_ADDRESS:
        next_ = prev
    return HintPair(prev=prev, next=next_)


def test_trial_batches_respect_the_per_call_ceiling():
    assert trial_batches(6000) == [2500, 2500, 1000]
    assert trial_batches(2500) == [2500]
    assert trial_batches(10) == [10]


@pytest.mark.asyncio
async def test_empty_list_yields_zero_hints(chain):
    hints = await HintResolver(chain).resolve(Decimal("1.5"))
    assert hints == HintPair(prev=ZERO_ADDRESS, next=ZERO_ADDRESS)
    assert chain.calls_to("get_approx_hint") == []


@pytest.mark.asyncio
async def test_infinite_ratio_goes_to_the_head(chain, five_troves):
    hints = await HintResolver(chain).resolve(Decimal("Infinity"))
    assert hints == HintPair(prev=ZERO_ADDRESS, next="p300")


@pytest.mark.asyncio
async def test_target_between_two_troves(chain, five_troves):
    """
    GIVEN Troves with ratios 3.0, 2.5, 2.2, 2.1 and 2.0
    WHEN hints are resolved for 2.15
    THEN the pair is the 2.2 and 2.1 Troves.
    """
    hints = await HintResolver(chain).resolve(Decimal("2.15"))
    assert hints == HintPair(prev="p220", next="p210")


@pytest.mark.parametrize("n", [1, 10, 10_000])
@pytest.mark.asyncio
async def test_hints_match_a_linear_scan(chain, n):
    rng = random.Random(n)
    for i in range(n):
        chain.open_trove(address(i + 1), collateral=Decimal(rng.randint(22, 2000)), debt=Decimal(2000))

    resolver = HintResolver(chain, rng=random.Random(42))
    for _ in range(3):
        ratio = Decimal(rng.randint(100, 10_500)) / 100
        hints = await resolver.resolve(ratio)
        assert hints == expected_hints(chain, ratio)

    trials_per_search = sum(call[2] for call in chain.calls_to("get_approx_hint")) // 3
    assert trials_per_search == math.ceil(10 * math.sqrt(n))


@pytest.mark.asyncio
async def test_large_lists_are_sampled_in_batches_threading_the_seed(chain, five_troves):
    chain.number_of_troves_override = 90_000  # ceil(10 * 300) = 3000 trials
    returned_seeds = []
    real_get_approx_hint = chain.get_approx_hint

    async def recording_get_approx_hint(*args):
        result = await real_get_approx_hint(*args)
        returned_seeds.append(result.latest_random_seed)
        return result

    chain.get_approx_hint = recording_get_approx_hint
    await HintResolver(chain, rng=random.Random(1)).resolve(Decimal("2.15"))

    calls = chain.calls_to("get_approx_hint")
    assert [call[2] for call in calls] == [2500, 500]
    assert calls[0][3] < 2**53
    assert calls[1][3] == returned_seeds[0]


@pytest.mark.asyncio
async def test_repositioned_trove_is_not_its_own_prev_hint(chain):
    for name, collateral in (("A", 60), ("P", 50), ("B", 40)):
        chain.open_trove(name, collateral=Decimal(collateral), debt=Decimal(2000))

    # P (2.5) is the true prev of 2.4; it must be skipped
    hints = await HintResolver(chain).resolve(Decimal("2.4"), own_address="P")
    assert hints == HintPair(prev="A", next="B")


@pytest.mark.asyncio
async def test_repositioned_trove_is_not_its_own_next_hint(chain):
    for name, collateral in (("A", 60), ("P", 50), ("B", 40)):
        chain.open_trove(name, collateral=Decimal(collateral), debt=Decimal(2000))

    hints = await HintResolver(chain).resolve(Decimal("2.6"), own_address="P")
    assert "P" not in hints.as_tuple()
    assert hints == HintPair(prev="A", next="B")


@pytest.mark.asyncio
async def test_zero_side_is_replaced_by_the_other_neighbour(chain, five_troves):
    resolver = HintResolver(chain)
    assert await resolver.resolve(Decimal("9")) == HintPair(prev="p300", next="p300")
    assert await resolver.resolve(Decimal("1")) == HintPair(prev="p200", next="p200")


@pytest.mark.asyncio
async def test_trove_count_comes_from_the_cached_reader(chain, five_troves):
    reader = CachedReader(chain)
    resolver = HintResolver(chain, reader)
    await resolver.resolve(Decimal("2.15"))
    assert len(chain.calls_to("get_number_of_troves")) == 1


@pytest.mark.asyncio
async def test_chain_failure_propagates_without_retry(chain, five_troves):
    chain.set_next_call_to_fail("find_insert_position")
    with pytest.raises(ConnectionError):
        await HintResolver(chain).resolve(Decimal("2.15"))
    assert len(chain.calls_to("find_insert_position")) == 1
