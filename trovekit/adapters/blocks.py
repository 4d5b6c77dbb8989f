# /trovekit/adapters/blocks.py
# New-block notifications for the store: a newHeads websocket subscription,
# or polling when no websocket endpoint is configured.
import asyncio
import json
from typing import AsyncIterator

import websockets
from websockets.exceptions import ConnectionClosed

from trovekit.core.logger import get_logger

log = get_logger(__name__)


def parse_new_head(message: str | bytes) -> int | None:
    """Returns the block number carried by an eth_subscription newHeads message."""
    data = json.loads(message)
    params = data.get("params") if isinstance(data, dict) else None
    head = params.get("result") if isinstance(params, dict) else None
    if not isinstance(head, dict) or "number" not in head:
        return None
    return int(head["number"], 16)


class WebsocketBlockStream:
    def __init__(self, wss_urls: list[str], stall_timeout: float = 60.0, reconnect_delay: float = 5.0):
        self.wss_urls = wss_urls
        self.idx = 0
        self.connection = None
        # No head for this long means the feed is stuck; try the next URL.
        self.stall_timeout = stall_timeout
        self.reconnect_delay = reconnect_delay

    async def connect(self):
        url = self.wss_urls[self.idx]
        log.info("BLOCK_STREAM_CONNECTING", url=url)
        try:
            self.connection = await websockets.connect(url)
            await self.connection.send(json.dumps({
                "jsonrpc": "2.0", "id": 1, "method": "eth_subscribe", "params": ["newHeads"]
            }))
            await self.connection.recv()
            log.info("BLOCK_STREAM_CONNECTED_AND_SUBSCRIBED")
        except (ConnectionClosed, OSError) as e:
            log.error("BLOCK_STREAM_CONNECTION_FAILED", error=str(e), exc_info=True)
            self.connection = None
            raise

    async def _drop_connection(self):
        if self.connection is not None:
            connection, self.connection = self.connection, None
            await connection.close()

    async def stream(self) -> AsyncIterator[int]:
        last = None
        while True:
            if self.connection is None:
                try:
                    await self.connect()
                except (ConnectionClosed, OSError):
                    await asyncio.sleep(self.reconnect_delay)
                    self.idx = (self.idx + 1) % len(self.wss_urls)
                    continue

            try:
                message = await asyncio.wait_for(self.connection.recv(), timeout=self.stall_timeout)
                number = parse_new_head(message)
                if number is not None and number != last:
                    last = number
                    yield number
            except asyncio.TimeoutError:
                log.warning("BLOCK_STREAM_STALLED", url=self.wss_urls[self.idx])
                self.idx = (self.idx + 1) % len(self.wss_urls)
                await self._drop_connection()
            except ConnectionClosed:
                log.warning("BLOCK_STREAM_CONNECTION_CLOSED_RECONNECTING")
                self.connection = None
            except ValueError as e:
                log.error("BLOCK_STREAM_BAD_MESSAGE", error=str(e))


class PollingBlockStream:
    def __init__(self, chain, interval: float = 4.0):
        self.chain = chain
        self.interval = interval

    async def stream(self) -> AsyncIterator[int]:
        last = None
        while True:
            try:
                number = await self.chain.get_block_number()
            except Exception as e:
                log.warning("BLOCK_POLL_FAILED", error=str(e))
            else:
                if last is None or number > last:
                    last = number
                    yield number
            await asyncio.sleep(self.interval)
