# /trovekit/core/state.py
# Immutable snapshots published by the block-polled store.
from decimal import Decimal
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from trovekit.core.fees import Fees, FeeSnapshot
from trovekit.core.models import (
    ZERO,
    FrontendStatus,
    StabilityDeposit,
    Trove,
    TroveWithPendingRedistribution,
    UserTrove,
)


class ExtraState(BaseModel):
    """Block-level values that are merged rather than replaced on update."""
    model_config = ConfigDict(frozen=True)

    block_tag: int | None = None
    block_timestamp: int | None = None
    fees_factory: FeeSnapshot | None = None


class BaseState(BaseModel):
    """Everything fetched for one block. User fields are zero when no user is bound."""
    model_config = ConfigDict(frozen=True)

    price: Decimal
    number_of_troves: int
    total_redistributed: Trove
    total: Trove
    lusd_in_stability_pool: Decimal
    riskiest_trove_before_redistribution: TroveWithPendingRedistribution
    frontend: FrontendStatus
    fees_in_normal_mode: Fees

    account_balance: Decimal = ZERO
    lusd_balance: Decimal = ZERO
    collateral_surplus_balance: Decimal = ZERO
    trove_before_redistribution: TroveWithPendingRedistribution = Field(default_factory=TroveWithPendingRedistribution)
    stability_deposit: StabilityDeposit = Field(default_factory=StabilityDeposit)
    own_frontend: FrontendStatus = Field(default_factory=FrontendStatus)


class StoreSnapshot(BaseState):
    block_tag: int
    block_timestamp: int
    fees_factory: FeeSnapshot

    trove: UserTrove
    fees: Fees
    borrowing_rate: Decimal
    redemption_rate: Decimal
    have_undercollateralized_troves: bool

    @classmethod
    def derive(cls, base: BaseState, extra: ExtraState) -> "StoreSnapshot":
        fees = base.fees_in_normal_mode.with_recovery_mode(
            base.total.collateral_ratio_is_below_critical(base.price)
        )
        riskiest = base.riskiest_trove_before_redistribution.apply_redistribution(base.total_redistributed)
        return cls(
            **dict(base),
            block_tag=extra.block_tag,
            block_timestamp=extra.block_timestamp,
            fees_factory=extra.fees_factory,
            trove=base.trove_before_redistribution.apply_redistribution(base.total_redistributed),
            fees=fees,
            borrowing_rate=fees.borrowing_rate(),
            redemption_rate=fees.redemption_rate(),
            have_undercollateralized_troves=riskiest.collateral_ratio_is_below_minimum(base.price),
        )

    @property
    def extra(self) -> ExtraState:
        return ExtraState(
            block_tag=self.block_tag,
            block_timestamp=self.block_timestamp,
            fees_factory=self.fees_factory,
        )


def reduce_extra(old: ExtraState, update: ExtraState) -> ExtraState:
    return ExtraState(
        block_tag=update.block_tag if update.block_tag is not None else old.block_tag,
        block_timestamp=update.block_timestamp if update.block_timestamp is not None else old.block_timestamp,
        fees_factory=update.fees_factory if update.fees_factory is not None else old.fees_factory,
    )


def changed_fields(old: StoreSnapshot, new: StoreSnapshot) -> Dict[str, Any]:
    return {
        name: getattr(new, name)
        for name in type(new).model_fields
        if getattr(old, name) != getattr(new, name)
    }
