# /trovekit/core/models.py
# Value types for positions and the records the chain reader hands back.
# Amounts are Decimals in whole units; conversion to 18-decimal integers
# happens only when talking to contracts.
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from trovekit.core.utils import ZERO_ADDRESS

ZERO = Decimal(0)
INFINITY = Decimal("Infinity")

LUSD_LIQUIDATION_RESERVE = Decimal(200)
LUSD_MINIMUM_NET_DEBT = Decimal(1800)
LUSD_MINIMUM_DEBT = LUSD_LIQUIDATION_RESERVE + LUSD_MINIMUM_NET_DEBT

MINIMUM_COLLATERAL_RATIO = Decimal("1.1")
CRITICAL_COLLATERAL_RATIO = Decimal("1.5")

MINIMUM_BORROWING_RATE = Decimal("0.005")
MAXIMUM_BORROWING_RATE = Decimal("0.05")
MINIMUM_REDEMPTION_RATE = Decimal("0.005")

NOMINAL_COLLATERAL_RATIO_PRECISION = Decimal(100)


def apply_fee(borrowing_rate: Decimal | None, debt_increase: Decimal) -> Decimal:
    return debt_increase * (1 + (borrowing_rate or ZERO))

def unapply_fee(borrowing_rate: Decimal | None, debt_increase: Decimal) -> Decimal:
    return debt_increase / (1 + (borrowing_rate or ZERO))


class TroveCreationParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    deposit_collateral: Decimal
    borrow_lusd: Decimal

    @model_validator(mode="after")
    def _check_amounts(self):
        if self.deposit_collateral <= 0:
            raise ValueError("deposit_collateral must be positive")
        if self.borrow_lusd <= 0:
            raise ValueError("borrow_lusd must be positive")
        return self


class TroveAdjustmentParams(BaseModel):
    """Change to an existing Trove. Zero amounts are treated as absent."""
    model_config = ConfigDict(frozen=True)

    deposit_collateral: Decimal | None = None
    withdraw_collateral: Decimal | None = None
    borrow_lusd: Decimal | None = None
    repay_lusd: Decimal | None = None

    @model_validator(mode="before")
    @classmethod
    def _drop_zeros(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is None or not (v == 0)}
        return data

    @model_validator(mode="after")
    def _check_combination(self):
        for name in ("deposit_collateral", "withdraw_collateral", "borrow_lusd", "repay_lusd"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must not be negative")
        if self.deposit_collateral is not None and self.withdraw_collateral is not None:
            raise ValueError("can't deposit and withdraw collateral in the same adjustment")
        if self.borrow_lusd is not None and self.repay_lusd is not None:
            raise ValueError("can't borrow and repay LUSD in the same adjustment")
        if all(getattr(self, n) is None for n in ("deposit_collateral", "withdraw_collateral", "borrow_lusd", "repay_lusd")):
            raise ValueError("adjustment must change at least one of collateral or debt")
        return self


class Trove(BaseModel):
    model_config = ConfigDict(frozen=True)

    collateral: Decimal = ZERO
    debt: Decimal = ZERO

    @property
    def net_debt(self) -> Decimal:
        if self.debt < LUSD_LIQUIDATION_RESERVE:
            raise ValueError(f"Trove debt {self.debt} is less than the liquidation reserve")
        return self.debt - LUSD_LIQUIDATION_RESERVE

    @property
    def nominal_collateral_ratio(self) -> Decimal:
        """Price-independent ratio the sorted list is ordered by."""
        if self.debt == 0:
            return INFINITY
        return self.collateral * NOMINAL_COLLATERAL_RATIO_PRECISION / self.debt

    @property
    def is_empty(self) -> bool:
        return self.collateral == 0 and self.debt == 0

    def collateral_ratio(self, price: Decimal) -> Decimal:
        if self.debt == 0:
            return INFINITY
        return self.collateral * price / self.debt

    def collateral_ratio_is_below_minimum(self, price: Decimal) -> bool:
        return self.collateral_ratio(price) < MINIMUM_COLLATERAL_RATIO

    def collateral_ratio_is_below_critical(self, price: Decimal) -> bool:
        return self.collateral_ratio(price) < CRITICAL_COLLATERAL_RATIO

    def add(self, other: "Trove") -> "Trove":
        return Trove(collateral=self.collateral + other.collateral, debt=self.debt + other.debt)

    def subtract(self, other: "Trove") -> "Trove":
        return Trove(
            collateral=max(self.collateral - other.collateral, ZERO),
            debt=max(self.debt - other.debt, ZERO),
        )

    def adjust(self, params, borrowing_rate: Decimal | None = None) -> "Trove":
        params = TroveAdjustmentParams.model_validate(params)
        collateral = self.collateral + (params.deposit_collateral or ZERO) - (params.withdraw_collateral or ZERO)
        debt = self.debt - (params.repay_lusd or ZERO)
        if params.borrow_lusd is not None:
            debt += apply_fee(borrowing_rate, params.borrow_lusd)
        if collateral < 0 or debt < 0:
            raise ValueError("adjustment would leave the Trove with negative collateral or debt")
        return Trove(collateral=collateral, debt=debt)

    def adjust_to(self, target: "Trove", borrowing_rate: Decimal | None = None) -> TroveAdjustmentParams:
        """Adjustment that turns this Trove into *target* when applied at *borrowing_rate*."""
        params: dict[str, Decimal] = {}
        collateral_change = target.collateral - self.collateral
        debt_change = target.debt - self.debt
        if collateral_change > 0:
            params["deposit_collateral"] = collateral_change
        elif collateral_change < 0:
            params["withdraw_collateral"] = -collateral_change
        if debt_change > 0:
            params["borrow_lusd"] = unapply_fee(borrowing_rate, debt_change)
        elif debt_change < 0:
            params["repay_lusd"] = -debt_change
        return TroveAdjustmentParams(**params)

    @classmethod
    def create(cls, params, borrowing_rate: Decimal | None = None) -> "Trove":
        params = TroveCreationParams.model_validate(params)
        return Trove(
            collateral=params.deposit_collateral,
            debt=LUSD_LIQUIDATION_RESERVE + apply_fee(borrowing_rate, params.borrow_lusd),
        )

    @classmethod
    def recreate(cls, trove: "Trove", borrowing_rate: Decimal | None = None) -> TroveCreationParams:
        """Creation params that would produce *trove* at *borrowing_rate*."""
        return TroveCreationParams(
            deposit_collateral=trove.collateral,
            borrow_lusd=unapply_fee(borrowing_rate, trove.net_debt),
        )


class TroveStatus(str, Enum):
    NON_EXISTENT = "nonExistent"
    OPEN = "open"
    CLOSED_BY_OWNER = "closedByOwner"
    CLOSED_BY_LIQUIDATION = "closedByLiquidation"
    CLOSED_BY_REDEMPTION = "closedByRedemption"

    @classmethod
    def from_code(cls, code: int) -> "TroveStatus":
        codes = [cls.NON_EXISTENT, cls.OPEN, cls.CLOSED_BY_OWNER, cls.CLOSED_BY_LIQUIDATION, cls.CLOSED_BY_REDEMPTION]
        if not isinstance(code, int) or not 0 <= code < len(codes):
            raise ValueError(f"invalid Trove status code {code!r}")
        return codes[code]


class UserTrove(Trove):
    owner: str = ZERO_ADDRESS
    status: TroveStatus = TroveStatus.NON_EXISTENT


class TroveWithPendingRedistribution(UserTrove):
    """A Trove as stored on chain, before pending redistribution rewards are added."""
    stake: Decimal = ZERO
    snapshot_collateral: Decimal = ZERO
    snapshot_debt: Decimal = ZERO

    def apply_redistribution(self, total_redistributed: Trove) -> UserTrove:
        pending_collateral = (total_redistributed.collateral - self.snapshot_collateral) * self.stake
        pending_debt = (total_redistributed.debt - self.snapshot_debt) * self.stake
        return UserTrove(
            owner=self.owner,
            status=self.status,
            collateral=self.collateral + pending_collateral,
            debt=self.debt + pending_debt,
        )


class StabilityDeposit(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_lusd: Decimal = ZERO
    current_lusd: Decimal = ZERO
    collateral_gain: Decimal = ZERO
    lqty_reward: Decimal = ZERO
    frontend_tag: str = ZERO_ADDRESS


class FrontendStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    registered: bool = False
    kickback_rate: Decimal | None = None


class ApproxHint(BaseModel):
    model_config = ConfigDict(frozen=True)

    hint_address: str
    diff: Decimal
    latest_random_seed: int


class RedemptionHints(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_redemption_hint: str
    partial_redemption_hint_nicr: Decimal
    truncated_amount: Decimal
