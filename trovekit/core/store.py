# /trovekit/core/store.py
import asyncio
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from trovekit.core.errors import StoreNotLoadedError
from trovekit.core.logger import (
    get_logger,
    bind_block,
    STORE_UPDATES,
    STORE_STALE_DISCARDED,
    STORE_FETCH_FAILURES,
    STORE_STREAM_FAILURES,
    STORE_LISTENER_FAILURES,
)
from trovekit.core.models import FrontendStatus, TroveWithPendingRedistribution
from trovekit.core.state import BaseState, ExtraState, StoreSnapshot, changed_fields, reduce_extra
from trovekit.core.utils import gather_values

log = get_logger(__name__)

StoreListener = Callable[[StoreSnapshot, StoreSnapshot, Dict[str, Any]], None]


class StoreStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    UPDATING = "updating"
    STOPPED = "stopped"


class BlockPolledStore:
    """
    Keeps a snapshot of protocol state for one user and frontend tag,
    refetched on every new block.

    Fetches are started per block and never cancelled by newer ones. A fetch
    that completes for a block older than the applied snapshot is dropped, so
    the visible snapshot only moves forward. A failed fetch is logged and the
    previous snapshot stays in place. If the block stream itself fails, the
    store logs it, flags block_stream_failed and resubscribes.
    """
    def __init__(
        self,
        reader,
        blocks,
        user_address: str | None = None,
        frontend_tag: str | None = None,
        resubscribe_delay: float = 5.0,
    ):
        self.reader = reader
        self.blocks = blocks
        self.user_address = user_address
        self.frontend_tag = frontend_tag
        self.resubscribe_delay = resubscribe_delay

        self.status = StoreStatus.IDLE
        self.on_loaded: Callable[[StoreSnapshot], None] | None = None
        self.last_error: Exception | None = None
        # Set while the block stream is down; cleared by the next block it delivers.
        self.block_stream_failed = False

        self._state: StoreSnapshot | None = None
        self._listeners: List[StoreListener] = []
        self._listener_task: asyncio.Task | None = None
        self._fetches: set[asyncio.Task] = set()
        self._loaded = asyncio.Event()

    @property
    def loaded(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> StoreSnapshot:
        if self._state is None:
            raise StoreNotLoadedError("store hasn't loaded yet")
        return self._state

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Calls *listener(new, old, changes)* whenever an update changes the snapshot."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_loaded(self) -> StoreSnapshot:
        await self._loaded.wait()
        return self.state

    def start(self) -> Callable[[], None]:
        """Fetches the current block and starts following new ones. Returns stop()."""
        if self._listener_task is not None:
            log.warning("STORE_ALREADY_RUNNING")
            return self.stop

        self.status = StoreStatus.LOADING
        self.block_stream_failed = False
        self._spawn_fetch(None)
        self._listener_task = asyncio.create_task(self._follow_blocks())
        log.info("STORE_STARTED", user=self.user_address, frontend=self.frontend_tag)
        return self.stop

    def stop(self):
        if self.status == StoreStatus.STOPPED:
            return

        if self._listener_task is not None:
            self._listener_task.cancel()
            self._listener_task = None
        for task in list(self._fetches):
            task.cancel()
        self._fetches.clear()

        self._state = None
        self._loaded.clear()
        self.status = StoreStatus.STOPPED
        log.info("STORE_STOPPED")

    async def _follow_blocks(self):
        while True:
            try:
                async for block_number in self.blocks.stream():
                    log.debug("STORE_NEW_BLOCK", block=block_number)
                    self.block_stream_failed = False
                    self._spawn_fetch(block_number)
                log.warning("STORE_BLOCK_STREAM_ENDED")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                STORE_STREAM_FAILURES.inc()
                self.last_error = e
                self.block_stream_failed = True
                log.error("STORE_BLOCK_STREAM_FAILED", error=str(e), exc_info=True)
            await asyncio.sleep(self.resubscribe_delay)
            log.info("STORE_BLOCK_STREAM_RESUBSCRIBING")

    def _spawn_fetch(self, block_tag: int | None):
        task = asyncio.create_task(self._refresh(block_tag))
        self._fetches.add(task)
        task.add_done_callback(self._fetches.discard)

    async def _refresh(self, block_tag: int | None):
        if block_tag is not None:
            bind_block(block_tag)
        if self.status == StoreStatus.LOADED:
            self.status = StoreStatus.UPDATING
        try:
            base, extra = await self._fetch(block_tag)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            STORE_FETCH_FAILURES.inc()
            self.last_error = e
            log.error("STORE_FETCH_FAILED", block=block_tag, error=str(e), exc_info=True)
        else:
            self._apply(base, extra)
        finally:
            if self.status == StoreStatus.UPDATING and not self._other_fetches_pending():
                self.status = StoreStatus.LOADED

    def _other_fetches_pending(self) -> bool:
        current = asyncio.current_task()
        return any(task is not current and not task.done() for task in self._fetches)

    async def _fetch(self, block_tag: int | None) -> Tuple[BaseState, ExtraState]:
        if block_tag is None:
            # Pin "latest" so every read below sees the same block.
            block_tag = await self.reader.get_block_number()

        r = self.reader
        reads = {
            "block_timestamp": r.get_block_timestamp(block_tag),
            "fees_factory": r.get_fee_snapshot(block_tag),
            "price": r.get_price(block_tag),
            "number_of_troves": r.get_number_of_troves(block_tag),
            "total_redistributed": r.get_total_redistributed(block_tag),
            "total": r.get_total(block_tag),
            "lusd_in_stability_pool": r.get_lusd_in_stability_pool(block_tag),
            "riskiest_troves": r.get_troves(
                first=1,
                sorted_by="ascendingCollateralRatio",
                before_redistribution=True,
                block_tag=block_tag,
            ),
        }
        if self.frontend_tag:
            reads["frontend"] = r.get_frontend_status(self.frontend_tag, block_tag)
        if self.user_address:
            address = self.user_address
            reads.update(
                account_balance=r.get_account_balance(address, block_tag),
                lusd_balance=r.get_lusd_balance(address, block_tag),
                collateral_surplus_balance=r.get_collateral_surplus_balance(address, block_tag),
                trove_before_redistribution=r.get_trove_before_redistribution(address, block_tag),
                stability_deposit=r.get_stability_deposit(address, block_tag),
                own_frontend=r.get_frontend_status(address, block_tag),
            )

        values = await gather_values(reads)

        riskiest_troves = values.pop("riskiest_troves")
        block_timestamp = values.pop("block_timestamp")
        fees_factory = values.pop("fees_factory")
        values.setdefault("frontend", FrontendStatus())

        base = BaseState(
            **values,
            riskiest_trove_before_redistribution=riskiest_troves[0] if riskiest_troves else TroveWithPendingRedistribution(),
            fees_in_normal_mode=fees_factory.fees(block_timestamp, False),
        )
        extra = ExtraState(block_tag=block_tag, block_timestamp=block_timestamp, fees_factory=fees_factory)
        return base, extra

    def _apply(self, base: BaseState, extra: ExtraState):
        if self.status == StoreStatus.STOPPED:
            return

        old = self._state
        if old is not None and extra.block_tag < old.block_tag:
            STORE_STALE_DISCARDED.inc()
            log.info("STORE_STALE_FETCH_DISCARDED", block=extra.block_tag, applied_block=old.block_tag)
            return

        if old is None:
            self._state = StoreSnapshot.derive(base, extra)
            self.status = StoreStatus.LOADED
            self._loaded.set()
            STORE_UPDATES.inc()
            log.info("STORE_LOADED", block=self._state.block_tag)
            if self.on_loaded is not None:
                callback, self.on_loaded = self.on_loaded, None
                self._notify("on_loaded", callback, self._state)
            return

        new = StoreSnapshot.derive(base, reduce_extra(old.extra, extra))
        changes = changed_fields(old, new)
        if not changes:
            return

        self._state = new
        STORE_UPDATES.inc()
        log.debug("STORE_UPDATED", block=new.block_tag, changed=sorted(changes))
        for listener in list(self._listeners):
            self._notify("listener", listener, new, old, changes)

    def _notify(self, kind: str, callback: Callable[..., None], *args):
        # Callback errors are logged; later callbacks still run.
        try:
            callback(*args)
        except Exception as e:
            STORE_LISTENER_FAILURES.inc()
            log.error("STORE_LISTENER_FAILED", kind=kind, error=str(e), exc_info=True)
