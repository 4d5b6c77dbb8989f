# /trovekit/core/hints.py
import math
import random
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from trovekit.core.logger import get_logger, HINT_SEARCHES, APPROX_HINT_CALLS
from trovekit.core.utils import ZERO_ADDRESS, same_address

log = get_logger(__name__)

# Upper bound on trials per getApproxHint call, to stay inside public RPC
# gas caps for eth_call.
MAX_TRIALS_PER_CALL = 2500


class HintPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    prev: str = ZERO_ADDRESS
    next: str = ZERO_ADDRESS

    def as_tuple(self) -> tuple[str, str]:
        return self.prev, self.next


def trial_batches(total_trials: int, max_per_call: int = MAX_TRIALS_PER_CALL) -> list[int]:
    """Splits *total_trials* into chunks of at most *max_per_call*."""
    batches = [max_per_call] * (total_trials // max_per_call)
    if total_trials % max_per_call:
        batches.append(total_trials % max_per_call)
    return batches


class HintResolver:
    """
    Finds (prev, next) neighbours for a nominal collateral ratio in the sorted
    Trove list without walking it: ceil(10*sqrt(N)) random samples taken on
    chain narrow it to one close Trove, then findInsertPosition settles the
    exact spot starting from there.
    """
    def __init__(self, chain, reader=None, rng: random.Random | None = None):
        self.chain = chain
        # Trove count may come from a cached reader; list walks always go to the chain.
        self.reader = reader or chain
        self.rng = rng or random.Random()

    async def _find_hint(self, nominal_collateral_ratio: Decimal, number_of_troves: int) -> str:
        total_trials = math.ceil(10 * math.sqrt(number_of_troves))
        seed = self.rng.randrange(2**53)
        best = None

        for trials in trial_batches(total_trials):
            result = await self.chain.get_approx_hint(nominal_collateral_ratio, trials, seed)
            APPROX_HINT_CALLS.inc()
            seed = result.latest_random_seed
            if best is None or result.diff < best.diff:
                best = result

        log.debug(
            "APPROX_HINT_FOUND",
            ncr=str(nominal_collateral_ratio),
            trials=total_trials,
            hint=best.hint_address,
            diff=str(best.diff),
        )
        return best.hint_address

    async def resolve(self, nominal_collateral_ratio: Decimal, own_address: str | None = None) -> HintPair:
        """
        Resolves the insert position for a Trove with the given ratio.

        Args:
            nominal_collateral_ratio: Target sort key. Infinite for a Trove with no debt.
            own_address: The Trove being repositioned, which must not be used as its own hint.

        Returns:
            A HintPair. Only an empty list yields two zero addresses.
        """
        HINT_SEARCHES.inc()
        number_of_troves = await self.reader.get_number_of_troves()

        if number_of_troves == 0:
            return HintPair()

        if nominal_collateral_ratio.is_infinite():
            return HintPair(prev=ZERO_ADDRESS, next=await self.chain.get_first())

        hint = await self._find_hint(nominal_collateral_ratio, number_of_troves)
        prev, next_ = await self.chain.find_insert_position(nominal_collateral_ratio, hint, hint)

        if own_address is not None:
            # The Trove is removed before reinsertion, so step over it.
            if same_address(prev, own_address):
                prev = await self.chain.get_prev(prev)
            elif same_address(next_, own_address):
                next_ = await self.chain.get_next(next_)

        # A zero hint makes the contract start from the head or tail of the list.
        if prev == ZERO_ADDRESS:
            prev = next_
        elif next_ == ZERO_ADDRESS:
            next_ = prev

        log.info("HINTS_RESOLVED", ncr=str(nominal_collateral_ratio), prev=prev, next=next_)
        return HintPair(prev=prev, next=next_)
