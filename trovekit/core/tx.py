# /trovekit/core/tx.py
from typing import Any, Callable, Dict, Mapping

DetailsParser = Callable[[Mapping[str, Any]], Any]


def no_details(receipt: Mapping[str, Any]) -> None:
    return None


class PopulatedTransaction:
    """An unsigned transaction ready to be signed and sent by a wallet.

    Signing and submission happen elsewhere; once mined, pass the receipt to
    parse_details() to get the typed result of the call.
    """
    def __init__(self, raw_transaction: Dict[str, Any], parse: DetailsParser = no_details, gas_headroom: int | None = None):
        self.raw_transaction = raw_transaction
        self.gas_headroom = gas_headroom
        self._parse = parse

    @property
    def gas_limit(self) -> int | None:
        return self.raw_transaction.get("gas")

    def parse_details(self, receipt: Mapping[str, Any]) -> Any:
        return self._parse(receipt)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(raw_transaction={self.raw_transaction!r}, gas_headroom={self.gas_headroom!r})"
