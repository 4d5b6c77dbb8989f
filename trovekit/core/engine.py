# /trovekit/core/engine.py
# Caller-facing entry point: resolves hints, sizes gas and returns unsigned
# transactions for Trove, Stability Pool and redemption operations.
import asyncio
from decimal import Decimal
from typing import Any, Callable, Dict, List

from trovekit.core.errors import InvalidParamsError
from trovekit.core.gas_estimator import (
    DEFAULT_BORROWING_FEE_DECAY_TOLERANCE_MINUTES,
    GasEstimate,
    GasHeadroomEstimator,
    add_gas_for_lqty_issuance,
    add_gas_for_potential_list_traversal,
)
from trovekit.core.hints import HintPair, HintResolver
from trovekit.core.logger import get_logger
from trovekit.core.models import (
    ZERO,
    Trove,
    TroveAdjustmentParams,
    TroveCreationParams,
    TroveWithPendingRedistribution,
)
from trovekit.core.readable import CachedReader
from trovekit.core.redemption import RedemptionPlan, RedemptionPlanner
from trovekit.core.tx import PopulatedTransaction
from trovekit.core.utils import ZERO_ADDRESS, to_wei

log = get_logger(__name__)

DEFAULT_BORROWING_RATE_SLIPPAGE_TOLERANCE = Decimal("0.005")


class _BorrowingCall:
    """Everything needed to estimate and populate one openTrove/adjustTrove call."""
    def __init__(
        self,
        function: str,
        args_for: Callable[[Decimal | None], List[Any]],
        tx: Dict[str, Any],
        borrow_now: Decimal | None,
        decayed_call: Callable[[int], tuple[Trove, Decimal | None]],
        touches_base_rate: bool,
        parse,
    ):
        self.function = function
        self.args_for = args_for
        self.tx = tx
        self.borrow_now = borrow_now
        self.decayed_call = decayed_call
        self.touches_base_rate = touches_base_rate
        self.parse = parse


class TroveEngine:
    def __init__(
        self,
        chain,
        store=None,
        user_address: str | None = None,
        frontend_tag: str | None = None,
        hint_resolver: HintResolver | None = None,
    ):
        self.chain = chain
        self.store = store
        self.reader = CachedReader(chain, store)
        self.user_address = user_address or (store.user_address if store is not None else None)
        self.frontend_tag = frontend_tag or (store.frontend_tag if store is not None else None)
        self.hint_resolver = hint_resolver or HintResolver(chain, self.reader)
        self.gas_estimator = GasHeadroomEstimator(chain)
        self.redemption_planner = RedemptionPlanner(chain, self.reader, self.hint_resolver)
        log.info("TROVE_ENGINE_INITIALIZED", user=self.user_address)

    def _require_address(self, overrides: Dict[str, Any] | None) -> str:
        address = (overrides or {}).get("from") or self.user_address
        if not address:
            raise InvalidParamsError("an address is required for this operation")
        return address

    async def resolve_hints(self, nominal_collateral_ratio: Decimal, self_address: str | None = None) -> HintPair:
        return await self.hint_resolver.resolve(Decimal(nominal_collateral_ratio), self_address)

    async def _find_hints(self, trove: Trove, own_address: str | None = None) -> HintPair:
        if isinstance(trove, TroveWithPendingRedistribution):
            raise InvalidParamsError("rewards must be applied to this Trove before finding hints")
        return await self.hint_resolver.resolve(trove.nominal_collateral_ratio, own_address)

    async def _borrowing_rate_decay(self) -> Callable[[int], Decimal]:
        """Returns f(seconds) -> borrowing rate that many seconds after the latest block."""
        fees_factory, block_timestamp, total, price = await asyncio.gather(
            self.reader.get_fee_snapshot(),
            self.reader.get_block_timestamp(),
            self.reader.get_total(),
            self.reader.get_price(),
        )
        recovery_mode = total.collateral_ratio_is_below_critical(price)
        return lambda seconds: fees_factory.fees(block_timestamp + seconds, recovery_mode).borrowing_rate()

    # --- borrowing operations ---

    async def _prepare_open_trove(self, params, max_borrowing_rate, overrides) -> _BorrowingCall:
        params = TroveCreationParams.model_validate(params)
        decay = await self._borrowing_rate_decay()
        current_rate = decay(0)
        hints = await self._find_hints(Trove.create(params, current_rate))
        max_rate = Decimal(max_borrowing_rate) if max_borrowing_rate is not None else current_rate + DEFAULT_BORROWING_RATE_SLIPPAGE_TOLERANCE

        def args_for(borrow: Decimal | None) -> List[Any]:
            return [to_wei(max_rate), to_wei(borrow), hints.prev, hints.next]

        def decayed_call(tolerance_minutes: int):
            decayed_trove = Trove.create(params, decay(60 * tolerance_minutes))
            return decayed_trove, Trove.recreate(decayed_trove, current_rate).borrow_lusd

        return _BorrowingCall(
            "openTrove",
            args_for,
            {**(overrides or {}), "value": to_wei(params.deposit_collateral)},
            params.borrow_lusd,
            decayed_call,
            touches_base_rate=True,
            parse=self.chain.trove_change_details_parser(),
        )

    async def _prepare_adjust_trove(self, params, max_borrowing_rate, overrides) -> _BorrowingCall:
        params = TroveAdjustmentParams.model_validate(params)
        address = self._require_address(overrides)
        borrowing = params.borrow_lusd is not None

        if borrowing:
            trove, decay = await asyncio.gather(self.reader.get_trove(address), self._borrowing_rate_decay())
            current_rate = decay(0)
        else:
            trove, decay, current_rate = await self.reader.get_trove(address), None, None

        hints = await self._find_hints(trove.adjust(params, current_rate), address)
        if max_borrowing_rate is not None:
            max_rate = Decimal(max_borrowing_rate)
        elif current_rate is not None:
            max_rate = current_rate + DEFAULT_BORROWING_RATE_SLIPPAGE_TOLERANCE
        else:
            max_rate = ZERO

        def args_for(borrow: Decimal | None) -> List[Any]:
            debt_change = borrow if borrow is not None else (params.repay_lusd or ZERO)
            return [
                to_wei(max_rate),
                to_wei(params.withdraw_collateral or ZERO),
                to_wei(debt_change),
                borrow is not None,
                hints.prev,
                hints.next,
            ]

        def decayed_call(tolerance_minutes: int):
            decayed_trove = trove.adjust(params, decay(60 * tolerance_minutes) if decay else None)
            if not borrowing:
                return decayed_trove, None
            return decayed_trove, trove.adjust_to(decayed_trove, current_rate).borrow_lusd

        return _BorrowingCall(
            "adjustTrove",
            args_for,
            {**(overrides or {}), "from": address, "value": to_wei(params.deposit_collateral or ZERO)},
            params.borrow_lusd,
            decayed_call,
            touches_base_rate=borrowing,
            parse=self.chain.trove_change_details_parser(),
        )

    async def _estimate(self, call: _BorrowingCall, tolerance_minutes: int) -> GasEstimate:
        decayed_trove, borrow_later = call.decayed_call(tolerance_minutes)
        self.gas_estimator.ensure_debt_survives_decay(decayed_trove, tolerance_minutes)
        return await self.gas_estimator.estimate(
            "borrowerOperations",
            call.function,
            call.args_for,
            call.tx,
            call.borrow_now,
            borrow_later,
            touches_base_rate=call.touches_base_rate,
            tolerance_minutes=tolerance_minutes,
        )

    async def _populate_borrowing(self, call: _BorrowingCall, tolerance_minutes: int | None) -> PopulatedTransaction:
        tx = dict(call.tx)
        gas_headroom = None
        if "gas" not in tx:
            if tolerance_minutes is None:
                tolerance_minutes = DEFAULT_BORROWING_FEE_DECAY_TOLERANCE_MINUTES
            estimate = await self._estimate(call, tolerance_minutes)
            tx["gas"] = estimate.gas_limit
            gas_headroom = estimate.gas_headroom
        raw = self.chain.populate_transaction("borrowerOperations", call.function, call.args_for(call.borrow_now), tx)
        return PopulatedTransaction(raw, parse=call.parse, gas_headroom=gas_headroom)

    async def estimate_gas_for_borrowing_op(
        self,
        op: TroveCreationParams | TroveAdjustmentParams,
        tolerance_minutes: int = DEFAULT_BORROWING_FEE_DECAY_TOLERANCE_MINUTES,
        max_borrowing_rate: Decimal | None = None,
        overrides: Dict[str, Any] | None = None,
    ) -> GasEstimate:
        """
        Estimates a padded gas limit for opening (TroveCreationParams) or
        adjusting (TroveAdjustmentParams) a Trove.

        Raises:
            DebtBelowMinimumError: if borrowing fee decay over *tolerance_minutes*
                could leave the Trove below the minimum debt.
        """
        if isinstance(op, TroveCreationParams):
            call = await self._prepare_open_trove(op, max_borrowing_rate, overrides)
        else:
            call = await self._prepare_adjust_trove(op, max_borrowing_rate, overrides)
        return await self._estimate(call, tolerance_minutes)

    async def open_trove(self, params, max_borrowing_rate: Decimal | None = None, tolerance_minutes: int | None = None, overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        call = await self._prepare_open_trove(params, max_borrowing_rate, overrides)
        return await self._populate_borrowing(call, tolerance_minutes)

    async def adjust_trove(self, params, max_borrowing_rate: Decimal | None = None, tolerance_minutes: int | None = None, overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        call = await self._prepare_adjust_trove(params, max_borrowing_rate, overrides)
        return await self._populate_borrowing(call, tolerance_minutes)

    # --- other operations ---

    async def close_trove(self, overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        tx = {**(overrides or {}), "from": self._require_address(overrides)}
        if "gas" not in tx:
            tx["gas"] = await self.chain.estimate_gas("borrowerOperations", "closeTrove", [], tx)
        raw = self.chain.populate_transaction("borrowerOperations", "closeTrove", [], tx)
        return PopulatedTransaction(raw, parse=self.chain.trove_change_details_parser())

    async def liquidate(self, address: str | List[str], overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        if isinstance(address, (list, tuple)):
            function, args = "batchLiquidateTroves", [list(address)]
        else:
            function, args = "liquidate", [address]
        return await self._populate_liquidation(function, args, overrides)

    async def liquidate_up_to(self, maximum_number_of_troves_to_liquidate: int, overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        if not isinstance(maximum_number_of_troves_to_liquidate, int) or maximum_number_of_troves_to_liquidate <= 0:
            raise InvalidParamsError("maximum number of Troves to liquidate must be a positive integer")
        return await self._populate_liquidation("liquidateTroves", [maximum_number_of_troves_to_liquidate], overrides)

    async def _populate_liquidation(self, function: str, args: List[Any], overrides: Dict[str, Any] | None) -> PopulatedTransaction:
        return await self._populate_simple("troveManager", function, args, overrides, add_gas_for_lqty_issuance)

    # --- stability pool and collateral surplus ---

    async def _populate_simple(self, contract: str, function: str, args: List[Any], overrides: Dict[str, Any] | None, pad=None) -> PopulatedTransaction:
        tx = dict(overrides or {})
        if "gas" not in tx:
            gas = await self.chain.estimate_gas(contract, function, args, tx)
            tx["gas"] = pad(gas) if pad is not None else gas
        return PopulatedTransaction(self.chain.populate_transaction(contract, function, args, tx))

    async def deposit_lusd_in_stability_pool(self, amount: Decimal, frontend_tag: str | None = None, overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        """Tops up the Stability Pool deposit, tagging it with *frontend_tag* or the engine's own tag."""
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidParamsError(f"deposit amount must be positive, got {amount}")
        tag = frontend_tag or self.frontend_tag or ZERO_ADDRESS
        return await self._populate_simple(
            "stabilityPool", "provideToSP", [to_wei(amount), tag], overrides, add_gas_for_lqty_issuance
        )

    async def withdraw_lusd_from_stability_pool(self, amount: Decimal, overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidParamsError(f"withdrawal amount must be positive, got {amount}")
        return await self._populate_simple(
            "stabilityPool", "withdrawFromSP", [to_wei(amount)], overrides, add_gas_for_lqty_issuance
        )

    async def withdraw_gains_from_stability_pool(self, overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        # A zero withdrawal pays out collateral and LQTY gains only.
        return await self._populate_simple(
            "stabilityPool", "withdrawFromSP", [0], overrides, add_gas_for_lqty_issuance
        )

    async def transfer_collateral_gain_to_trove(self, overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        """Moves the Stability Pool collateral gain into the caller's Trove, which may reposition it."""
        address = self._require_address(overrides)
        trove, deposit = await asyncio.gather(
            self.reader.get_trove(address),
            self.reader.get_stability_deposit(address),
        )
        final_trove = trove.add(Trove(collateral=deposit.collateral_gain))
        hints = await self._find_hints(final_trove, address)
        tx = {**(overrides or {}), "from": address}
        return await self._populate_simple(
            "stabilityPool",
            "withdrawETHGainToTrove",
            list(hints.as_tuple()),
            tx,
            lambda gas: add_gas_for_lqty_issuance(add_gas_for_potential_list_traversal(gas)),
        )

    async def claim_collateral_surplus(self, overrides: Dict[str, Any] | None = None) -> PopulatedTransaction:
        return await self._populate_simple("borrowerOperations", "claimCollateral", [], overrides)

    async def plan_redemption(self, amount: Decimal, max_redemption_rate: Decimal | None = None, overrides: Dict[str, Any] | None = None) -> RedemptionPlan:
        return await self.redemption_planner.plan(amount, max_redemption_rate, overrides)
