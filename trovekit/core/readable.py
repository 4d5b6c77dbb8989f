# /trovekit/core/readable.py
# Reads served from the store's snapshot when it can answer them, from the
# chain otherwise.
from decimal import Decimal
from operator import attrgetter
from typing import Any, List

from trovekit.core.errors import InvalidParamsError
from trovekit.core.fees import Fees, FeeSnapshot
from trovekit.core.logger import get_logger, CACHE_HITS, CACHE_MISSES
from trovekit.core.models import (
    FrontendStatus,
    StabilityDeposit,
    Trove,
    TroveWithPendingRedistribution,
    UserTrove,
)
from trovekit.core.utils import gather_values, same_address

log = get_logger(__name__)

SORT_ORDERS = ("ascendingCollateralRatio", "descendingCollateralRatio")


def check_listing_params(first: Any, sorted_by: Any, starting_at: Any = 0):
    """Validates get_troves() paging arguments. Raises InvalidParamsError."""
    for name, value in (("first", first), ("starting_at", starting_at)):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidParamsError(f"{name} must be a non-negative integer, got {value!r}")
    if sorted_by not in SORT_ORDERS:
        raise InvalidParamsError(f"sorted_by must be one of {', '.join(SORT_ORDERS)}, got {sorted_by!r}")


class CachedReader:
    """
    Read interface of the engine.

    Each cacheable field maps to (snapshot accessor, hit predicate, live
    fetcher). A read is answered from the store when the predicate holds for
    the requested block tag and address, and goes to the chain otherwise.
    """
    def __init__(self, chain, store=None):
        self.chain = chain
        self.store = store

        block, user, frontend = self._block_hit, self._user_hit, self._frontend_hit
        self._fields = {
            "price": (attrgetter("price"), block, chain.get_price),
            "number_of_troves": (attrgetter("number_of_troves"), block, chain.get_number_of_troves),
            "total_redistributed": (attrgetter("total_redistributed"), block, chain.get_total_redistributed),
            "total": (attrgetter("total"), block, chain.get_total),
            "lusd_in_stability_pool": (attrgetter("lusd_in_stability_pool"), block, chain.get_lusd_in_stability_pool),
            "block_timestamp": (attrgetter("block_timestamp"), block, chain.get_block_timestamp),
            "fees_factory": (attrgetter("fees_factory"), block, chain.get_fee_snapshot),
            "fees": (attrgetter("fees"), block, self._live_fees),
            "trove_before_redistribution": (attrgetter("trove_before_redistribution"), user, chain.get_trove_before_redistribution),
            "trove": (attrgetter("trove"), user, self._live_trove),
            "stability_deposit": (attrgetter("stability_deposit"), user, chain.get_stability_deposit),
            "account_balance": (attrgetter("account_balance"), user, chain.get_account_balance),
            "lusd_balance": (attrgetter("lusd_balance"), user, chain.get_lusd_balance),
            "collateral_surplus_balance": (attrgetter("collateral_surplus_balance"), user, chain.get_collateral_surplus_balance),
            "frontend": (attrgetter("frontend"), frontend, chain.get_frontend_status),
        }

    # --- hit predicates ---

    def _block_hit(self, block_tag: int | None, address: str | None = None) -> bool:
        if self.store is None or not self.store.loaded:
            return False
        return block_tag is None or block_tag == self.store.state.block_tag

    def _bound_hit(self, block_tag: int | None, address: str | None, bound: str | None) -> bool:
        # Snapshot fields are zero-filled when nothing is bound, so an unbound store never answers.
        if not self._block_hit(block_tag) or bound is None:
            return False
        return address is None or same_address(address, bound)

    def _user_hit(self, block_tag: int | None, address: str | None = None) -> bool:
        return self._bound_hit(block_tag, address, self.store and self.store.user_address)

    def _frontend_hit(self, block_tag: int | None, address: str | None = None) -> bool:
        return self._bound_hit(block_tag, address, self.store and self.store.frontend_tag)

    # --- dispatch ---

    def _bound_address(self, field: str) -> str | None:
        if self.store is None:
            return None
        return self.store.frontend_tag if field == "frontend" else self.store.user_address

    async def _read_block_field(self, field: str, block_tag: int | None):
        cached, hit, live = self._fields[field]
        if hit(block_tag):
            CACHE_HITS.labels(field).inc()
            return cached(self.store.state)
        CACHE_MISSES.labels(field).inc()
        return await live(block_tag)

    async def _read_address_field(self, field: str, address: str | None, block_tag: int | None):
        cached, hit, live = self._fields[field]
        if hit(block_tag, address):
            CACHE_HITS.labels(field).inc()
            return cached(self.store.state)
        CACHE_MISSES.labels(field).inc()
        address = address or self._bound_address(field)
        if address is None:
            raise InvalidParamsError(f"an address is required to read {field}")
        return await live(address, block_tag)

    # --- live composites ---

    async def _live_trove(self, address: str, block_tag: int | None = None) -> UserTrove:
        values = await gather_values({
            "trove": self.chain.get_trove_before_redistribution(address, block_tag),
            "total_redistributed": self.chain.get_total_redistributed(block_tag),
        })
        return values["trove"].apply_redistribution(values["total_redistributed"])

    async def _live_fees(self, block_tag: int | None = None) -> Fees:
        values = await gather_values({
            "fees_factory": self.chain.get_fee_snapshot(block_tag),
            "block_timestamp": self.chain.get_block_timestamp(block_tag),
            "total": self.chain.get_total(block_tag),
            "price": self.chain.get_price(block_tag),
        })
        recovery_mode = values["total"].collateral_ratio_is_below_critical(values["price"])
        return values["fees_factory"].fees(values["block_timestamp"], recovery_mode)

    # --- block scoped ---

    async def get_price(self, block_tag: int | None = None) -> Decimal:
        return await self._read_block_field("price", block_tag)

    async def get_number_of_troves(self, block_tag: int | None = None) -> int:
        return await self._read_block_field("number_of_troves", block_tag)

    async def get_total_redistributed(self, block_tag: int | None = None) -> Trove:
        return await self._read_block_field("total_redistributed", block_tag)

    async def get_total(self, block_tag: int | None = None) -> Trove:
        return await self._read_block_field("total", block_tag)

    async def get_lusd_in_stability_pool(self, block_tag: int | None = None) -> Decimal:
        return await self._read_block_field("lusd_in_stability_pool", block_tag)

    async def get_block_timestamp(self, block_tag: int | None = None) -> int:
        return await self._read_block_field("block_timestamp", block_tag)

    async def get_fee_snapshot(self, block_tag: int | None = None) -> FeeSnapshot:
        return await self._read_block_field("fees_factory", block_tag)

    async def get_fees(self, block_tag: int | None = None) -> Fees:
        return await self._read_block_field("fees", block_tag)

    # --- user scoped ---

    async def get_trove_before_redistribution(self, address: str | None = None, block_tag: int | None = None) -> TroveWithPendingRedistribution:
        return await self._read_address_field("trove_before_redistribution", address, block_tag)

    async def get_trove(self, address: str | None = None, block_tag: int | None = None) -> UserTrove:
        return await self._read_address_field("trove", address, block_tag)

    async def get_stability_deposit(self, address: str | None = None, block_tag: int | None = None) -> StabilityDeposit:
        return await self._read_address_field("stability_deposit", address, block_tag)

    async def get_account_balance(self, address: str | None = None, block_tag: int | None = None) -> Decimal:
        return await self._read_address_field("account_balance", address, block_tag)

    async def get_lusd_balance(self, address: str | None = None, block_tag: int | None = None) -> Decimal:
        return await self._read_address_field("lusd_balance", address, block_tag)

    async def get_collateral_surplus_balance(self, address: str | None = None, block_tag: int | None = None) -> Decimal:
        return await self._read_address_field("collateral_surplus_balance", address, block_tag)

    # --- frontend scoped ---

    async def get_frontend_status(self, address: str | None = None, block_tag: int | None = None) -> FrontendStatus:
        return await self._read_address_field("frontend", address, block_tag)

    # --- never cached ---

    async def get_troves(
        self,
        first: int,
        sorted_by: str,
        starting_at: int = 0,
        before_redistribution: bool = False,
        block_tag: int | None = None,
    ) -> List[UserTrove]:
        check_listing_params(first, sorted_by, starting_at)
        return await self.chain.get_troves(
            first=first,
            sorted_by=sorted_by,
            starting_at=starting_at,
            before_redistribution=before_redistribution,
            block_tag=block_tag,
        )
