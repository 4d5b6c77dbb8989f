# /trovekit/core/fees.py
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from trovekit.core.models import (
    ZERO,
    MINIMUM_BORROWING_RATE,
    MAXIMUM_BORROWING_RATE,
    MINIMUM_REDEMPTION_RATE,
)

MINUTE_DECAY_FACTOR = Decimal("0.999037758833783")
BETA = Decimal(2)


class Fees(BaseModel):
    """Borrowing and redemption rates as a function of time.

    The base rate decays once per whole minute elapsed since the last fee
    operation; rates are evaluated at the latest block's timestamp unless a
    later time is passed explicitly.
    """
    model_config = ConfigDict(frozen=True)

    base_rate_without_decay: Decimal
    last_fee_operation_time: int
    time_of_latest_block: int
    recovery_mode: bool = False

    def base_rate(self, when: int | None = None) -> Decimal:
        when = self.time_of_latest_block if when is None else when
        minutes_passed = max(when - self.last_fee_operation_time, 0) // 60
        return MINUTE_DECAY_FACTOR ** minutes_passed * self.base_rate_without_decay

    def borrowing_rate(self, when: int | None = None) -> Decimal:
        if self.recovery_mode:
            return ZERO
        return min(MINIMUM_BORROWING_RATE + self.base_rate(when), MAXIMUM_BORROWING_RATE)

    def redemption_rate(self, redeemed_fraction_of_supply: Decimal = ZERO, when: int | None = None) -> Decimal:
        base_rate = self.base_rate(when)
        if redeemed_fraction_of_supply:
            base_rate += Decimal(redeemed_fraction_of_supply) / BETA
        return min(MINIMUM_REDEMPTION_RATE + base_rate, Decimal(1))

    def with_recovery_mode(self, recovery_mode: bool) -> "Fees":
        return self.model_copy(update={"recovery_mode": recovery_mode})


class FeeSnapshot(BaseModel):
    """The two storage values fee rates are derived from, as of one block."""
    model_config = ConfigDict(frozen=True)

    base_rate_without_decay: Decimal
    last_fee_operation_time: int

    def fees(self, block_timestamp: int, recovery_mode: bool = False) -> Fees:
        return Fees(
            base_rate_without_decay=self.base_rate_without_decay,
            last_fee_operation_time=self.last_fee_operation_time,
            time_of_latest_block=block_timestamp,
            recovery_mode=recovery_mode,
        )
