# /test/test_models.py
import decimal
from decimal import Decimal

import pytest
from pydantic import ValidationError

from trovekit.core.fees import FeeSnapshot, MINUTE_DECAY_FACTOR
from trovekit.core.models import (
    INFINITY,
    LUSD_LIQUIDATION_RESERVE,
    Trove,
    TroveAdjustmentParams,
    TroveCreationParams,
    TroveStatus,
    TroveWithPendingRedistribution,
)
from trovekit.core.utils import decimalify, to_wei

# --- Trove arithmetic ---

def test_create_adds_fee_and_liquidation_reserve():
    trove = Trove.create({"deposit_collateral": 10, "borrow_lusd": 1000}, Decimal("0.005"))
    assert trove.collateral == Decimal(10)
    assert trove.debt == Decimal("1205.000")
    assert trove.net_debt == Decimal("1005.000")


def test_recreate_reverses_create():
    rate = Decimal("0.0175")
    trove = Trove.create(TroveCreationParams(deposit_collateral=Decimal(7), borrow_lusd=Decimal(3333)), rate)
    params = Trove.recreate(trove, rate)
    assert params.deposit_collateral == Decimal(7)
    assert abs(params.borrow_lusd - Decimal(3333)) < Decimal("1e-30")


def test_adjust_to_reaches_the_target_trove():
    rate = Decimal("0.01")
    trove = Trove(collateral=Decimal(10), debt=Decimal(3000))
    target = Trove(collateral=Decimal(8), debt=Decimal(4010))
    params = trove.adjust_to(target, rate)
    assert params.withdraw_collateral == Decimal(2)
    assert params.borrow_lusd == Decimal(1000)
    assert trove.adjust(params, rate) == target


def test_nominal_ratio_is_infinite_without_debt():
    assert Trove(collateral=Decimal(1)).nominal_collateral_ratio == INFINITY
    assert Trove(collateral=Decimal(30), debt=Decimal(2000)).nominal_collateral_ratio == Decimal("1.5")


def test_net_debt_below_reserve_is_an_error():
    with pytest.raises(ValueError):
        Trove(collateral=Decimal(1), debt=LUSD_LIQUIDATION_RESERVE - 1).net_debt


def test_collateral_ratio_thresholds():
    trove = Trove(collateral=Decimal(10), debt=Decimal(1500))
    assert trove.collateral_ratio_is_below_critical(Decimal(200))
    assert not trove.collateral_ratio_is_below_minimum(Decimal(200))
    assert trove.collateral_ratio_is_below_minimum(Decimal(150))


def test_apply_redistribution_adds_pending_rewards():
    trove = TroveWithPendingRedistribution(
        owner="0xA",
        status=TroveStatus.OPEN,
        collateral=Decimal(10),
        debt=Decimal(2000),
        stake=Decimal(10),
        snapshot_collateral=Decimal("0.1"),
        snapshot_debt=Decimal(20),
    )
    total_redistributed = Trove(collateral=Decimal("0.3"), debt=Decimal(50))
    applied = trove.apply_redistribution(total_redistributed)
    assert applied.collateral == Decimal("12.0")
    assert applied.debt == Decimal(2300)
    assert applied.owner == "0xA"


# --- parameter validation ---

def test_adjustment_rejects_contradictory_changes():
    with pytest.raises(ValidationError):
        TroveAdjustmentParams(deposit_collateral=Decimal(1), withdraw_collateral=Decimal(1))
    with pytest.raises(ValidationError):
        TroveAdjustmentParams(borrow_lusd=Decimal(1), repay_lusd=Decimal(1))


def test_adjustment_requires_a_change_and_ignores_zeros():
    with pytest.raises(ValidationError):
        TroveAdjustmentParams()
    params = TroveAdjustmentParams(deposit_collateral=0, borrow_lusd=Decimal(5))
    assert params.deposit_collateral is None
    assert params.borrow_lusd == Decimal(5)


def test_creation_rejects_non_positive_amounts():
    with pytest.raises(ValidationError):
        TroveCreationParams(deposit_collateral=Decimal(1), borrow_lusd=Decimal(-1))


def test_status_codes():
    assert TroveStatus.from_code(0) == TroveStatus.NON_EXISTENT
    assert TroveStatus.from_code(4) == TroveStatus.CLOSED_BY_REDEMPTION
    with pytest.raises(ValueError):
        TroveStatus.from_code(5)


# --- fees ---

def _fees(base_rate: str, minutes_ago: int = 0, recovery_mode: bool = False):
    now = 1_700_000_000
    snapshot = FeeSnapshot(base_rate_without_decay=Decimal(base_rate), last_fee_operation_time=now - minutes_ago * 60)
    return snapshot.fees(now, recovery_mode)


def test_base_rate_decays_per_whole_minute():
    fees = _fees("0.02", minutes_ago=60)
    assert fees.base_rate() == MINUTE_DECAY_FACTOR ** 60 * Decimal("0.02")
    # 59 extra seconds don't complete another minute
    assert fees.base_rate(fees.time_of_latest_block + 59) == fees.base_rate()
    assert fees.base_rate(fees.time_of_latest_block + 60) < fees.base_rate()


def test_borrowing_rate_bounds():
    assert _fees("0").borrowing_rate() == Decimal("0.005")
    assert _fees("0.5").borrowing_rate() == Decimal("0.05")
    assert _fees("0.02", recovery_mode=True).borrowing_rate() == 0


def test_redemption_rate_includes_redeemed_fraction_and_caps_at_one():
    fees = _fees("0")
    assert fees.redemption_rate(Decimal("0.1")) == Decimal("0.055")
    assert _fees("0.9").redemption_rate(Decimal("0.5")) == Decimal(1)


# --- fixed point conversion ---

def test_conversions_leave_the_global_decimal_context_alone():
    assert decimal.getcontext().prec == decimal.DefaultContext.prec


def test_to_wei_keeps_every_digit_of_large_amounts():
    assert to_wei(Decimal("1234567890123.123456789012345678")) == 1234567890123123456789012345678
    assert to_wei(decimalify(2**256 - 1)) == 2**256 - 1
    assert to_wei(Decimal("0.0000000000000000019")) == 1


def test_decimalify_is_exact_under_a_narrow_caller_context():
    with decimal.localcontext() as ctx:
        ctx.prec = 6
        assert decimalify(1234567890123456789) == Decimal("1.234567890123456789")
