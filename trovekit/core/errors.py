# /trovekit/core/errors.py
from decimal import Decimal


class TroveKitError(Exception):
    pass

class InvalidParamsError(TroveKitError, ValueError):
    """Bad caller input. Raised before anything is sent to the chain."""

class RedemptionAmountTooLowError(InvalidParamsError):
    pass

class RedemptionNotTruncatedError(TroveKitError):
    pass

class DebtBelowMinimumError(TroveKitError):
    """A borrowing operation whose debt could decay below the minimum before mining."""

    def __init__(self, minimum_debt: Decimal, tolerance_minutes: int):
        self.minimum_debt = minimum_debt
        self.tolerance_minutes = tolerance_minutes
        super().__init__(
            f"Trove's debt might fall below {minimum_debt} within {tolerance_minutes} minutes"
        )

class StoreNotLoadedError(TroveKitError):
    pass
