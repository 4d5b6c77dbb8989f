# /trovekit/adapters/mock.py
# In-memory stand-ins for the chain reader and block stream, for tests and
# offline simulation. The sorted list, approximate hints and redemption hints
# follow the on-chain algorithms.
import asyncio
import hashlib
from bisect import bisect_right
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Tuple

from trovekit.core.fees import FeeSnapshot
from trovekit.core.logger import get_logger
from trovekit.core.models import (
    ZERO,
    LUSD_LIQUIDATION_RESERVE,
    LUSD_MINIMUM_NET_DEBT,
    MINIMUM_COLLATERAL_RATIO,
    ApproxHint,
    FrontendStatus,
    RedemptionHints,
    StabilityDeposit,
    Trove,
    TroveStatus,
    TroveWithPendingRedistribution,
    UserTrove,
)
from trovekit.core.readable import check_listing_params
from trovekit.core.tx import no_details
from trovekit.core.utils import ZERO_ADDRESS

log = get_logger(__name__)


def next_random_seed(seed: int) -> int:
    return int.from_bytes(hashlib.sha256(seed.to_bytes(32, "big")).digest(), "big")


class MockChainReader:
    """
    A chain reader over local state. Every call is recorded in `calls` as
    (method, *args) so tests can assert which reads reached the "chain".
    """
    def __init__(self, price: Decimal = Decimal(200), block_number: int = 100, block_timestamp: int = 1_700_000_000):
        self.price = Decimal(price)
        self.block_number = block_number
        self.block_timestamp = block_timestamp
        self.fee_snapshot = FeeSnapshot(base_rate_without_decay=ZERO, last_fee_operation_time=block_timestamp)
        self.total_redistributed = Trove()
        self.lusd_in_stability_pool = ZERO
        self.troves: Dict[str, TroveWithPendingRedistribution] = {}
        self.account_balances: Dict[str, Decimal] = {}
        self.lusd_balances: Dict[str, Decimal] = {}
        self.collateral_surplus: Dict[str, Decimal] = {}
        self.deposits: Dict[str, StabilityDeposit] = {}
        self.frontends: Dict[str, FrontendStatus] = {}
        self.gas_costs: Dict[str, int] = {
            "openTrove": 400_000,
            "adjustTrove": 300_000,
            "closeTrove": 150_000,
            "redeemCollateral": 350_000,
            "liquidate": 200_000,
            "batchLiquidateTroves": 400_000,
            "liquidateTroves": 400_000,
            "provideToSP": 250_000,
            "withdrawFromSP": 200_000,
            "withdrawETHGainToTrove": 300_000,
            "claimCollateral": 80_000,
        }

        # Test controls
        self.number_of_troves_override: int | None = None
        self.block_prices: Dict[int, Decimal] = {}
        self.block_delays: Dict[int, float] = {}
        # Optional (function, args) -> gas; returning None falls back to gas_costs.
        self.gas_for_call: Callable[[str, List[Any]], int | None] | None = None
        self.calls: List[Tuple[Any, ...]] = []
        self._failing: set[str] = set()
        self._order_cache: List[str] | None = None
        log.info("MOCK_CHAIN_READER_INITIALIZED", price=str(self.price), block=block_number)

    # --- test setup ---

    def open_trove(self, owner: str, collateral: Decimal, debt: Decimal) -> TroveWithPendingRedistribution:
        trove = TroveWithPendingRedistribution(
            owner=owner,
            status=TroveStatus.OPEN,
            collateral=Decimal(collateral),
            debt=Decimal(debt),
            stake=Decimal(collateral),
            snapshot_collateral=self.total_redistributed.collateral,
            snapshot_debt=self.total_redistributed.debt,
        )
        self.troves[owner] = trove
        self._order_cache = None
        return trove

    def close_trove(self, owner: str):
        trove = self.troves.pop(owner)
        self._order_cache = None
        return trove

    def set_next_call_to_fail(self, method: str):
        """Makes the next call to *method* raise ConnectionError."""
        self._failing.add(method)

    def calls_to(self, method: str) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == method]

    async def _enter(self, method: str, *args, block_tag: int | None = None):
        self.calls.append((method, *args, block_tag))
        if method in self._failing:
            self._failing.discard(method)
            log.error("MOCK_FORCED_FAILURE", method=method)
            raise ConnectionError(f"Forced failure for testing: {method}")
        delay = self.block_delays.get(block_tag)
        if delay:
            await asyncio.sleep(delay)

    # --- sorted list ---

    def _current(self, owner: str) -> UserTrove:
        return self.troves[owner].apply_redistribution(self.total_redistributed)

    def _nicr(self, owner: str) -> Decimal:
        return self._current(owner).nominal_collateral_ratio

    def sorted_owners(self) -> List[str]:
        """Open Troves from highest to lowest ratio; ties keep insertion order."""
        if self._order_cache is None:
            open_owners = [o for o, t in self.troves.items() if t.status == TroveStatus.OPEN]
            self._order_cache = sorted(open_owners, key=lambda o: -self._nicr(o))
        return self._order_cache

    def reference_insert_position(self, nominal_collateral_ratio: Decimal) -> Tuple[str, str]:
        """O(N) scan for the true (prev, next) of a ratio."""
        order = self.sorted_owners()
        keys = [-self._nicr(o) for o in order]
        i = bisect_right(keys, -nominal_collateral_ratio)
        prev = order[i - 1] if i > 0 else ZERO_ADDRESS
        next_ = order[i] if i < len(order) else ZERO_ADDRESS
        return prev, next_

    async def get_first(self) -> str:
        await self._enter("get_first")
        order = self.sorted_owners()
        return order[0] if order else ZERO_ADDRESS

    async def get_last(self) -> str:
        await self._enter("get_last")
        order = self.sorted_owners()
        return order[-1] if order else ZERO_ADDRESS

    async def get_next(self, address: str) -> str:
        await self._enter("get_next", address)
        order = self.sorted_owners()
        if address not in order or address == order[-1]:
            return ZERO_ADDRESS
        return order[order.index(address) + 1]

    async def get_prev(self, address: str) -> str:
        await self._enter("get_prev", address)
        order = self.sorted_owners()
        if address not in order or address == order[0]:
            return ZERO_ADDRESS
        return order[order.index(address) - 1]

    async def get_approx_hint(self, nominal_collateral_ratio: Decimal, num_trials: int, random_seed: int) -> ApproxHint:
        await self._enter("get_approx_hint", nominal_collateral_ratio, num_trials, random_seed)
        owners = [o for o in self.troves if self.troves[o].status == TroveStatus.OPEN]
        order = self.sorted_owners()
        hint = order[-1]
        diff = abs(nominal_collateral_ratio - self._nicr(hint))
        seed = random_seed
        for _ in range(1, num_trials):
            seed = next_random_seed(seed)
            candidate = owners[seed % len(owners)]
            candidate_diff = abs(self._nicr(candidate) - nominal_collateral_ratio)
            if candidate_diff < diff:
                hint, diff = candidate, candidate_diff
        return ApproxHint(hint_address=hint, diff=diff, latest_random_seed=seed)

    async def find_insert_position(self, nominal_collateral_ratio: Decimal, prev_id: str, next_id: str) -> Tuple[str, str]:
        await self._enter("find_insert_position", nominal_collateral_ratio, prev_id, next_id)
        return self.reference_insert_position(nominal_collateral_ratio)

    async def get_redemption_hints(self, amount: Decimal, price: Decimal, max_iterations: int) -> RedemptionHints:
        await self._enter("get_redemption_hints", amount, price, max_iterations)
        order = self.sorted_owners()
        remaining = Decimal(amount)
        partial_nicr = ZERO

        # Walk from the riskiest Trove, skipping any that are already under MCR.
        index = len(order) - 1
        while index >= 0 and self._current(order[index]).collateral_ratio(price) < MINIMUM_COLLATERAL_RATIO:
            index -= 1
        first_hint = order[index] if index >= 0 else ZERO_ADDRESS

        iterations = max_iterations or len(order)
        while index >= 0 and remaining > 0 and iterations > 0:
            iterations -= 1
            trove = self._current(order[index])
            net_debt = trove.net_debt
            if net_debt > remaining:
                if net_debt > LUSD_MINIMUM_NET_DEBT:
                    max_redeemable = min(remaining, net_debt - LUSD_MINIMUM_NET_DEBT)
                    new_collateral = trove.collateral - max_redeemable / price
                    new_debt = net_debt - max_redeemable + LUSD_LIQUIDATION_RESERVE
                    partial_nicr = Trove(collateral=new_collateral, debt=new_debt).nominal_collateral_ratio
                    remaining -= max_redeemable
                break
            remaining -= net_debt
            index -= 1

        return RedemptionHints(
            first_redemption_hint=first_hint,
            partial_redemption_hint_nicr=partial_nicr,
            truncated_amount=Decimal(amount) - remaining,
        )

    # --- reads ---

    async def get_block_number(self) -> int:
        await self._enter("get_block_number")
        return self.block_number

    async def get_block_timestamp(self, block_tag: int | None = None) -> int:
        await self._enter("get_block_timestamp", block_tag=block_tag)
        return self.block_timestamp

    async def get_number_of_troves(self, block_tag: int | None = None) -> int:
        await self._enter("get_number_of_troves", block_tag=block_tag)
        if self.number_of_troves_override is not None:
            return self.number_of_troves_override
        return len(self.sorted_owners())

    async def get_price(self, block_tag: int | None = None) -> Decimal:
        await self._enter("get_price", block_tag=block_tag)
        return self.block_prices.get(block_tag, self.price)

    async def get_total_redistributed(self, block_tag: int | None = None) -> Trove:
        await self._enter("get_total_redistributed", block_tag=block_tag)
        return self.total_redistributed

    async def get_total(self, block_tag: int | None = None) -> Trove:
        await self._enter("get_total", block_tag=block_tag)
        total = Trove()
        for owner in self.sorted_owners():
            total = total.add(self._current(owner))
        return total

    async def get_lusd_in_stability_pool(self, block_tag: int | None = None) -> Decimal:
        await self._enter("get_lusd_in_stability_pool", block_tag=block_tag)
        return self.lusd_in_stability_pool

    async def get_fee_snapshot(self, block_tag: int | None = None) -> FeeSnapshot:
        await self._enter("get_fee_snapshot", block_tag=block_tag)
        return self.fee_snapshot

    async def get_trove_before_redistribution(self, address: str, block_tag: int | None = None) -> TroveWithPendingRedistribution:
        await self._enter("get_trove_before_redistribution", address, block_tag=block_tag)
        return self.troves.get(address, TroveWithPendingRedistribution(owner=address))

    async def get_stability_deposit(self, address: str, block_tag: int | None = None) -> StabilityDeposit:
        await self._enter("get_stability_deposit", address, block_tag=block_tag)
        return self.deposits.get(address, StabilityDeposit())

    async def get_account_balance(self, address: str, block_tag: int | None = None) -> Decimal:
        await self._enter("get_account_balance", address, block_tag=block_tag)
        return self.account_balances.get(address, ZERO)

    async def get_lusd_balance(self, address: str, block_tag: int | None = None) -> Decimal:
        await self._enter("get_lusd_balance", address, block_tag=block_tag)
        return self.lusd_balances.get(address, ZERO)

    async def get_collateral_surplus_balance(self, address: str, block_tag: int | None = None) -> Decimal:
        await self._enter("get_collateral_surplus_balance", address, block_tag=block_tag)
        return self.collateral_surplus.get(address, ZERO)

    async def get_frontend_status(self, address: str, block_tag: int | None = None) -> FrontendStatus:
        await self._enter("get_frontend_status", address, block_tag=block_tag)
        return self.frontends.get(address, FrontendStatus())

    async def get_troves(
        self,
        first: int,
        sorted_by: str,
        starting_at: int = 0,
        before_redistribution: bool = False,
        block_tag: int | None = None,
    ) -> List[UserTrove]:
        check_listing_params(first, sorted_by, starting_at)
        await self._enter("get_troves", first, sorted_by, starting_at, block_tag=block_tag)
        order = self.sorted_owners()
        if sorted_by == "ascendingCollateralRatio":
            order = list(reversed(order))
        owners = order[starting_at:starting_at + first]
        if before_redistribution:
            return [self.troves[o] for o in owners]
        return [self._current(o) for o in owners]

    # --- transactions ---

    async def estimate_gas(self, contract: str, function: str, args: List[Any], tx: Mapping[str, Any]) -> int:
        await self._enter("estimate_gas", contract, function, list(args))
        if self.gas_for_call is not None:
            gas = self.gas_for_call(function, list(args))
            if gas is not None:
                return gas
        return self.gas_costs.get(function, 100_000)

    def populate_transaction(self, contract: str, function: str, args: List[Any], tx: Mapping[str, Any]) -> Dict[str, Any]:
        return {"to": f"0xMock{contract}", "data": f"{function}({args})", "value": 0, **tx}

    def redemption_details_parser(self):
        return no_details

    def trove_change_details_parser(self):
        return no_details


class MockBlockStream:
    """Block stream fed by the test through push()."""
    def __init__(self):
        self.queue: asyncio.Queue[int] = asyncio.Queue()

    def push(self, block_number: int):
        self.queue.put_nowait(block_number)

    async def stream(self):
        while True:
            yield await self.queue.get()
