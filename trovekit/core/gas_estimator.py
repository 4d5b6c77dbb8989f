# /trovekit/core/gas_estimator.py
# Gas limits for borrowing transactions that stay sufficient while the
# transaction waits to be mined and the borrowing rate keeps decaying.
import asyncio
import math
from decimal import Decimal
from typing import Any, Callable, Dict, List

from pydantic import BaseModel, ConfigDict

from trovekit.core.errors import DebtBelowMinimumError
from trovekit.core.logger import get_logger, GAS_ESTIMATES
from trovekit.core.models import Trove, LUSD_MINIMUM_DEBT

log = get_logger(__name__)

DEFAULT_BORROWING_FEE_DECAY_TOLERANCE_MINUTES = 10

# Measured against the deployed contracts; re-measure for a different deployment.
BASE_RATE_UPDATE_GAS = 10_000
BASE_RATE_UPDATE_GAS_PER_DOUBLING = 1_414
LIST_TRAVERSAL_GAS = 80_000
LQTY_ISSUANCE_GAS = 50_000


def add_gas_for_base_rate_update(max_minutes_since_last_update: int = DEFAULT_BORROWING_FEE_DECAY_TOLERANCE_MINUTES) -> Callable[[int], int]:
    """Padding for the base rate write, which costs more the more minutes of decay it applies."""
    extra = BASE_RATE_UPDATE_GAS + BASE_RATE_UPDATE_GAS_PER_DOUBLING * math.ceil(math.log2(max_minutes_since_last_update + 1))
    return lambda gas: gas + extra

def add_gas_for_potential_list_traversal(gas: int) -> int:
    return gas + LIST_TRAVERSAL_GAS

def add_gas_for_lqty_issuance(gas: int) -> int:
    return gas + LQTY_ISSUANCE_GAS


class GasEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    gas_limit: int
    gas_now: int
    gas_headroom: int


class GasHeadroomEstimator:
    """
    Estimates a borrowing transaction twice: once as it would execute now and
    once with the borrow amount needed to reach the same Trove after the
    borrowing rate has decayed for the tolerated number of minutes. The limit
    covers the worse of the two.
    """
    def __init__(self, chain):
        self.chain = chain
        log.info("GAS_HEADROOM_ESTIMATOR_INITIALIZED")

    @staticmethod
    def ensure_debt_survives_decay(decayed_trove: Trove, tolerance_minutes: int):
        """Raises DebtBelowMinimumError if decay could push the Trove under the minimum debt."""
        if decayed_trove.debt < LUSD_MINIMUM_DEBT:
            raise DebtBelowMinimumError(LUSD_MINIMUM_DEBT, tolerance_minutes)

    async def estimate(
        self,
        contract: str,
        function: str,
        args_for: Callable[[Decimal | None], List[Any]],
        tx: Dict[str, Any],
        borrow_now: Decimal | None,
        borrow_later: Decimal | None = None,
        touches_base_rate: bool = True,
        tolerance_minutes: int = DEFAULT_BORROWING_FEE_DECAY_TOLERANCE_MINUTES,
    ) -> GasEstimate:
        """
        Args:
            contract: Contract key understood by the chain reader.
            function: Contract function being called.
            args_for: Builds the call arguments for a given borrow amount.
            tx: Transaction fields (from, value) shared by both estimates.
            borrow_now: Borrow amount at the current rate.
            borrow_later: Borrow amount under the decayed rate, or None if nothing is borrowed.
            touches_base_rate: Whether the call writes the base rate.
            tolerance_minutes: How long the transaction may sit unmined.

        Returns:
            GasEstimate with the padded limit and the headroom over the current estimate.
        """
        if borrow_later is not None:
            gas_now, gas_later = await asyncio.gather(
                self.chain.estimate_gas(contract, function, args_for(borrow_now), tx),
                self.chain.estimate_gas(contract, function, args_for(borrow_later), tx),
            )
        else:
            gas_now = await self.chain.estimate_gas(contract, function, args_for(borrow_now), tx)
            gas_later = 0

        gas_limit = max(add_gas_for_potential_list_traversal(gas_now), gas_later)
        if touches_base_rate:
            gas_limit = add_gas_for_base_rate_update(tolerance_minutes)(gas_limit)

        GAS_ESTIMATES.labels(function).inc()
        log.info(
            "GAS_HEADROOM_ESTIMATED",
            function=function,
            gas_now=gas_now,
            gas_later=gas_later,
            gas_limit=gas_limit,
            tolerance_minutes=tolerance_minutes,
        )
        return GasEstimate(gas_limit=gas_limit, gas_now=gas_now, gas_headroom=gas_limit - gas_now)
