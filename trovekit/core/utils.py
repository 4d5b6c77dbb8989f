# /trovekit/core/utils.py
import asyncio
from decimal import Context, Decimal, ROUND_DOWN
from typing import Any, Awaitable, Dict

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
DECIMAL_PRECISION = 10**18
# Wide enough for any uint256; the caller's decimal context is left alone.
WEI_CONTEXT = Context(prec=80)


def decimalify(value: int) -> Decimal:
    """Converts an 18-decimal fixed point integer from the chain to a Decimal."""
    return WEI_CONTEXT.divide(Decimal(value), DECIMAL_PRECISION)

def to_wei(value: Decimal) -> int:
    return int(WEI_CONTEXT.multiply(Decimal(value), DECIMAL_PRECISION).to_integral_value(rounding=ROUND_DOWN))

def same_address(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return False
    return a.lower() == b.lower()

async def gather_values(awaitables: Dict[str, Awaitable[Any]]) -> Dict[str, Any]:
    """Awaits a dict of awaitables concurrently, keeping the keys."""
    keys = list(awaitables)
    results = await asyncio.gather(*(awaitables[k] for k in keys))
    return dict(zip(keys, results))
