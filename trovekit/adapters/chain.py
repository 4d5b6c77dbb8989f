# /trovekit/adapters/chain.py
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Tuple

from pydantic import BaseModel, ConfigDict
from web3 import AsyncWeb3, AsyncHTTPProvider, Web3
from web3.contract.async_contract import AsyncContract
from web3.logs import DISCARD

from trovekit.abis.liquity import CONTRACT_ABIS
from trovekit.core.fees import FeeSnapshot
from trovekit.core.logger import get_logger
from trovekit.core.models import (
    ZERO,
    ApproxHint,
    FrontendStatus,
    RedemptionHints,
    StabilityDeposit,
    Trove,
    TroveStatus,
    TroveWithPendingRedistribution,
    UserTrove,
)
from trovekit.core.readable import check_listing_params
from trovekit.core.utils import decimalify, gather_values, to_wei

log = get_logger(__name__)


class RedemptionDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    attempted_lusd_amount: Decimal
    actual_lusd_amount: Decimal
    collateral_taken: Decimal
    fee: Decimal


class TroveChangeDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    new_trove: Trove
    fee: Decimal = ZERO


class Web3ChainReader:
    """Read-only contract calls plus gas estimation and transaction population over AsyncWeb3."""
    def __init__(self, w3: AsyncWeb3, addresses: Mapping[str, str]):
        self.w3 = w3
        self.contracts: Dict[str, AsyncContract] = {
            name: w3.eth.contract(address=Web3.to_checksum_address(addresses[name]), abi=abi)
            for name, abi in CONTRACT_ABIS.items()
        }
        log.info("CHAIN_READER_INITIALIZED", contracts=sorted(self.contracts))

    @classmethod
    def from_settings(cls, settings) -> "Web3ChainReader":
        w3 = AsyncWeb3(AsyncHTTPProvider(settings.RPC_URL.get_secret_value()))
        return cls(w3, settings.contract_addresses)

    async def _call(self, contract: str, function: str, *args, block_tag: int | None = None) -> Any:
        fn = getattr(self.contracts[contract].functions, function)(*args)
        try:
            return await fn.call(block_identifier=block_tag if block_tag is not None else "latest")
        except Exception as e:
            log.error("CHAIN_CALL_FAILED", contract=contract, function=function, block=block_tag, error=str(e))
            raise

    # --- block level ---

    async def get_block_number(self) -> int:
        return await self.w3.eth.block_number

    async def get_block_timestamp(self, block_tag: int | None = None) -> int:
        block = await self.w3.eth.get_block(block_tag if block_tag is not None else "latest")
        return block["timestamp"]

    # --- system state ---

    async def get_number_of_troves(self, block_tag: int | None = None) -> int:
        return await self._call("troveManager", "getTroveOwnersCount", block_tag=block_tag)

    async def get_price(self, block_tag: int | None = None) -> Decimal:
        # fetchPrice is non-view; eth_call gives the price without a transaction.
        return decimalify(await self._call("priceFeed", "fetchPrice", block_tag=block_tag))

    async def get_total_redistributed(self, block_tag: int | None = None) -> Trove:
        values = await gather_values({
            "collateral": self._call("troveManager", "L_ETH", block_tag=block_tag),
            "debt": self._call("troveManager", "L_LUSDDebt", block_tag=block_tag),
        })
        return Trove(collateral=decimalify(values["collateral"]), debt=decimalify(values["debt"]))

    async def get_total(self, block_tag: int | None = None) -> Trove:
        values = await gather_values({
            "active_collateral": self._call("activePool", "getETH", block_tag=block_tag),
            "active_debt": self._call("activePool", "getLUSDDebt", block_tag=block_tag),
            "default_collateral": self._call("defaultPool", "getETH", block_tag=block_tag),
            "default_debt": self._call("defaultPool", "getLUSDDebt", block_tag=block_tag),
        })
        active = Trove(collateral=decimalify(values["active_collateral"]), debt=decimalify(values["active_debt"]))
        default = Trove(collateral=decimalify(values["default_collateral"]), debt=decimalify(values["default_debt"]))
        return active.add(default)

    async def get_lusd_in_stability_pool(self, block_tag: int | None = None) -> Decimal:
        return decimalify(await self._call("stabilityPool", "getTotalLUSDDeposits", block_tag=block_tag))

    async def get_fee_snapshot(self, block_tag: int | None = None) -> FeeSnapshot:
        values = await gather_values({
            "base_rate": self._call("troveManager", "baseRate", block_tag=block_tag),
            "last_fee_operation_time": self._call("troveManager", "lastFeeOperationTime", block_tag=block_tag),
        })
        return FeeSnapshot(
            base_rate_without_decay=decimalify(values["base_rate"]),
            last_fee_operation_time=values["last_fee_operation_time"],
        )

    # --- per address ---

    async def get_trove_before_redistribution(self, address: str, block_tag: int | None = None) -> TroveWithPendingRedistribution:
        address = Web3.to_checksum_address(address)
        values = await gather_values({
            "trove": self._call("troveManager", "Troves", address, block_tag=block_tag),
            "snapshot": self._call("troveManager", "rewardSnapshots", address, block_tag=block_tag),
        })
        debt, coll, stake, status_code, _ = values["trove"]
        status = TroveStatus.from_code(status_code)
        if status != TroveStatus.OPEN:
            return TroveWithPendingRedistribution(owner=address, status=status)

        snapshot_collateral, snapshot_debt = values["snapshot"]
        return TroveWithPendingRedistribution(
            owner=address,
            status=status,
            collateral=decimalify(coll),
            debt=decimalify(debt),
            stake=decimalify(stake),
            snapshot_collateral=decimalify(snapshot_collateral),
            snapshot_debt=decimalify(snapshot_debt),
        )

    async def get_stability_deposit(self, address: str, block_tag: int | None = None) -> StabilityDeposit:
        address = Web3.to_checksum_address(address)
        values = await gather_values({
            "deposit": self._call("stabilityPool", "deposits", address, block_tag=block_tag),
            "current_lusd": self._call("stabilityPool", "getCompoundedLUSDDeposit", address, block_tag=block_tag),
            "collateral_gain": self._call("stabilityPool", "getDepositorETHGain", address, block_tag=block_tag),
            "lqty_reward": self._call("stabilityPool", "getDepositorLQTYGain", address, block_tag=block_tag),
        })
        initial_value, frontend_tag = values["deposit"]
        return StabilityDeposit(
            initial_lusd=decimalify(initial_value),
            current_lusd=decimalify(values["current_lusd"]),
            collateral_gain=decimalify(values["collateral_gain"]),
            lqty_reward=decimalify(values["lqty_reward"]),
            frontend_tag=frontend_tag,
        )

    async def get_account_balance(self, address: str, block_tag: int | None = None) -> Decimal:
        balance = await self.w3.eth.get_balance(
            Web3.to_checksum_address(address),
            block_identifier=block_tag if block_tag is not None else "latest",
        )
        return decimalify(balance)

    async def get_lusd_balance(self, address: str, block_tag: int | None = None) -> Decimal:
        return decimalify(await self._call("lusdToken", "balanceOf", Web3.to_checksum_address(address), block_tag=block_tag))

    async def get_collateral_surplus_balance(self, address: str, block_tag: int | None = None) -> Decimal:
        return decimalify(await self._call("collSurplusPool", "getCollateral", Web3.to_checksum_address(address), block_tag=block_tag))

    async def get_frontend_status(self, address: str, block_tag: int | None = None) -> FrontendStatus:
        kickback_rate, registered = await self._call("stabilityPool", "frontEnds", Web3.to_checksum_address(address), block_tag=block_tag)
        if not registered:
            return FrontendStatus()
        return FrontendStatus(registered=True, kickback_rate=decimalify(kickback_rate))

    async def get_troves(
        self,
        first: int,
        sorted_by: str,
        starting_at: int = 0,
        before_redistribution: bool = False,
        block_tag: int | None = None,
    ) -> List[UserTrove]:
        check_listing_params(first, sorted_by, starting_at)
        # Negative indices count from the tail of the list.
        start_idx = starting_at if sorted_by == "descendingCollateralRatio" else -(starting_at + 1)
        rows = await self._call("multiTroveGetter", "getMultipleSortedTroves", start_idx, first, block_tag=block_tag)
        troves = [
            TroveWithPendingRedistribution(
                owner=owner,
                status=TroveStatus.OPEN,
                collateral=decimalify(coll),
                debt=decimalify(debt),
                stake=decimalify(stake),
                snapshot_collateral=decimalify(snapshot_eth),
                snapshot_debt=decimalify(snapshot_debt),
            )
            for owner, debt, coll, stake, snapshot_eth, snapshot_debt in rows
        ]
        if before_redistribution:
            return troves
        total_redistributed = await self.get_total_redistributed(block_tag)
        return [trove.apply_redistribution(total_redistributed) for trove in troves]

    # --- sorted list and hints ---

    async def get_first(self) -> str:
        return await self._call("sortedTroves", "getFirst")

    async def get_last(self) -> str:
        return await self._call("sortedTroves", "getLast")

    async def get_next(self, address: str) -> str:
        return await self._call("sortedTroves", "getNext", Web3.to_checksum_address(address))

    async def get_prev(self, address: str) -> str:
        return await self._call("sortedTroves", "getPrev", Web3.to_checksum_address(address))

    async def get_approx_hint(self, nominal_collateral_ratio: Decimal, num_trials: int, random_seed: int) -> ApproxHint:
        hint_address, diff, latest_random_seed = await self._call(
            "hintHelpers", "getApproxHint", to_wei(nominal_collateral_ratio), num_trials, random_seed
        )
        return ApproxHint(hint_address=hint_address, diff=decimalify(diff), latest_random_seed=latest_random_seed)

    async def find_insert_position(self, nominal_collateral_ratio: Decimal, prev_id: str, next_id: str) -> Tuple[str, str]:
        prev, next_ = await self._call(
            "sortedTroves", "findInsertPosition", to_wei(nominal_collateral_ratio), prev_id, next_id
        )
        return prev, next_

    async def get_redemption_hints(self, amount: Decimal, price: Decimal, max_iterations: int) -> RedemptionHints:
        first_hint, partial_nicr, truncated = await self._call(
            "hintHelpers", "getRedemptionHints", to_wei(amount), to_wei(price), max_iterations
        )
        return RedemptionHints(
            first_redemption_hint=first_hint,
            partial_redemption_hint_nicr=decimalify(partial_nicr),
            truncated_amount=decimalify(truncated),
        )

    # --- transactions ---

    def _normalize_tx(self, tx: Mapping[str, Any]) -> Dict[str, Any]:
        tx = dict(tx)
        if tx.get("from"):
            tx["from"] = Web3.to_checksum_address(tx["from"])
        return tx

    async def estimate_gas(self, contract: str, function: str, args: List[Any], tx: Mapping[str, Any]) -> int:
        fn = getattr(self.contracts[contract].functions, function)(*args)
        try:
            return await fn.estimate_gas(self._normalize_tx(tx))
        except Exception as e:
            log.error("GAS_ESTIMATION_FAILED", contract=contract, function=function, error=str(e))
            raise

    def populate_transaction(self, contract: str, function: str, args: List[Any], tx: Mapping[str, Any]) -> Dict[str, Any]:
        target = self.contracts[contract]
        return {
            "to": target.address,
            "data": target.encode_abi(function, args=list(args)),
            "value": 0,
            **self._normalize_tx(tx),
        }

    # --- receipt parsing ---

    def redemption_details_parser(self):
        event = self.contracts["troveManager"].events.Redemption()

        def parse(receipt) -> RedemptionDetails:
            (log_entry,) = event.process_receipt(receipt, errors=DISCARD)
            args = log_entry["args"]
            return RedemptionDetails(
                attempted_lusd_amount=decimalify(args["_attemptedLUSDAmount"]),
                actual_lusd_amount=decimalify(args["_actualLUSDAmount"]),
                collateral_taken=decimalify(args["_ETHSent"]),
                fee=decimalify(args["_ETHFee"]),
            )

        return parse

    def trove_change_details_parser(self):
        events = self.contracts["borrowerOperations"].events

        def parse(receipt) -> TroveChangeDetails:
            (updated,) = events.TroveUpdated().process_receipt(receipt, errors=DISCARD)
            fees = events.LUSDBorrowingFeePaid().process_receipt(receipt, errors=DISCARD)
            return TroveChangeDetails(
                new_trove=Trove(
                    collateral=decimalify(updated["args"]["_coll"]),
                    debt=decimalify(updated["args"]["_debt"]),
                ),
                fee=decimalify(fees[0]["args"]["_LUSDFee"]) if fees else ZERO,
            )

        return parse
