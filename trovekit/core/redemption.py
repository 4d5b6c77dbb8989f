# /trovekit/core/redemption.py
import asyncio
from decimal import Decimal
from typing import Any, Dict

from trovekit.core.errors import InvalidParamsError, RedemptionAmountTooLowError, RedemptionNotTruncatedError
from trovekit.core.gas_estimator import add_gas_for_base_rate_update
from trovekit.core.hints import HintPair, HintResolver
from trovekit.core.logger import get_logger, REDEMPTIONS_TRUNCATED
from trovekit.core.models import LUSD_MINIMUM_NET_DEBT
from trovekit.core.tx import PopulatedTransaction, DetailsParser, no_details
from trovekit.core.utils import to_wei

log = get_logger(__name__)

REDEEM_MAX_ITERATIONS = 70
DEFAULT_REDEMPTION_RATE_SLIPPAGE_TOLERANCE = Decimal("0.001")


class RedemptionPlan(PopulatedTransaction):
    """A redeemCollateral transaction for the largest amount that can be redeemed safely.

    When the requested amount would leave the last touched Trove with less
    than the minimum net debt, the amount is cut short and is_truncated is
    set; increase() then asks for a plan one minimum-debt quantum larger.
    """
    def __init__(
        self,
        raw_transaction: Dict[str, Any],
        planner: "RedemptionPlanner",
        attempted_amount: Decimal,
        redeemable_amount: Decimal,
        first_hint: str,
        partial_hints: HintPair,
        partial_hint_nicr: Decimal,
        max_redemption_rate: Decimal,
        requested_max_redemption_rate: Decimal | None = None,
        overrides: Dict[str, Any] | None = None,
        parse: DetailsParser = no_details,
        gas_headroom: int | None = None,
    ):
        super().__init__(raw_transaction, parse=parse, gas_headroom=gas_headroom)
        self.attempted_amount = attempted_amount
        self.redeemable_amount = redeemable_amount
        self.first_hint = first_hint
        self.partial_hints = partial_hints
        self.partial_hint_nicr = partial_hint_nicr
        self.max_redemption_rate = max_redemption_rate
        self._planner = planner
        self._requested_max_redemption_rate = requested_max_redemption_rate
        self._overrides = overrides

    @property
    def is_truncated(self) -> bool:
        return self.redeemable_amount < self.attempted_amount

    async def increase(self, max_redemption_rate: Decimal | None = None) -> "RedemptionPlan":
        """Re-plans for the redeemable amount plus one minimum net debt, with fresh hints."""
        if not self.is_truncated:
            raise RedemptionNotTruncatedError(
                "increase() can only be called when the redemption amount is truncated"
            )
        return await self._planner.plan(
            self.redeemable_amount + LUSD_MINIMUM_NET_DEBT,
            max_redemption_rate if max_redemption_rate is not None else self._requested_max_redemption_rate,
            self._overrides,
        )


class RedemptionPlanner:
    def __init__(self, chain, reader, hint_resolver: HintResolver, max_iterations: int = REDEEM_MAX_ITERATIONS):
        self.chain = chain
        self.reader = reader
        self.hint_resolver = hint_resolver
        self.max_iterations = max_iterations

    async def _find_redemption_hints(self, amount: Decimal):
        price = await self.reader.get_price()
        hints = await self.chain.get_redemption_hints(amount, price, self.max_iterations)

        if hints.partial_redemption_hint_nicr == 0:
            partial_hints = HintPair()
        else:
            partial_hints = await self.hint_resolver.resolve(hints.partial_redemption_hint_nicr)

        return hints, partial_hints

    async def plan(
        self,
        amount: Decimal,
        max_redemption_rate: Decimal | None = None,
        overrides: Dict[str, Any] | None = None,
    ) -> RedemptionPlan:
        """
        Plans a redemption of up to *amount* LUSD.

        Args:
            amount: LUSD the caller wants to redeem.
            max_redemption_rate: Fee ceiling. Defaults to the current rate for the
                redeemable amount plus a small slippage tolerance, capped at 100%.
            overrides: Transaction fields; a "gas" entry disables estimation.

        Returns:
            A RedemptionPlan whose redeemable_amount may be below *amount*.
        """
        attempted_amount = Decimal(amount)
        if attempted_amount <= 0:
            raise InvalidParamsError(f"redemption amount must be positive, got {amount}")

        fees, total, (hints, partial_hints) = await asyncio.gather(
            self.reader.get_fees(),
            self.reader.get_total(),
            self._find_redemption_hints(attempted_amount),
        )
        redeemable_amount = hints.truncated_amount

        if redeemable_amount == 0:
            raise RedemptionAmountTooLowError(
                f"amount too low to redeem (try at least {LUSD_MINIMUM_NET_DEBT})"
            )

        if max_redemption_rate is not None:
            max_rate = Decimal(max_redemption_rate)
        else:
            max_rate = min(
                fees.redemption_rate(redeemable_amount / total.debt) + DEFAULT_REDEMPTION_RATE_SLIPPAGE_TOLERANCE,
                Decimal(1),
            )

        args = [
            to_wei(redeemable_amount),
            hints.first_redemption_hint,
            partial_hints.prev,
            partial_hints.next,
            to_wei(hints.partial_redemption_hint_nicr),
            self.max_iterations,
            to_wei(max_rate),
        ]
        tx = dict(overrides or {})
        if "gas" not in tx:
            gas = await self.chain.estimate_gas("troveManager", "redeemCollateral", args, tx)
            tx["gas"] = add_gas_for_base_rate_update()(gas)

        plan = RedemptionPlan(
            self.chain.populate_transaction("troveManager", "redeemCollateral", args, tx),
            planner=self,
            attempted_amount=attempted_amount,
            redeemable_amount=redeemable_amount,
            first_hint=hints.first_redemption_hint,
            partial_hints=partial_hints,
            partial_hint_nicr=hints.partial_redemption_hint_nicr,
            max_redemption_rate=max_rate,
            requested_max_redemption_rate=max_redemption_rate,
            overrides=overrides,
            parse=self.chain.redemption_details_parser(),
        )

        if plan.is_truncated:
            REDEMPTIONS_TRUNCATED.inc()
            log.warning(
                "REDEMPTION_AMOUNT_TRUNCATED",
                attempted=str(attempted_amount),
                redeemable=str(redeemable_amount),
            )
        log.info("REDEMPTION_PLANNED", redeemable=str(redeemable_amount), max_rate=str(max_rate))
        return plan
