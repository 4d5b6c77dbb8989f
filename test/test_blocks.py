# /test/test_blocks.py
import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosed

from trovekit.adapters import blocks as blocks_module
from trovekit.adapters.blocks import PollingBlockStream, WebsocketBlockStream, parse_new_head


def test_parse_new_head():
    message = json.dumps({
        "jsonrpc": "2.0",
        "method": "eth_subscription",
        "params": {"subscription": "0x9ce59a13", "result": {"number": "0x1b4", "hash": "0xabc"}},
    })
    assert parse_new_head(message) == 436


def test_parse_ignores_subscription_confirmation():
    assert parse_new_head(json.dumps({"jsonrpc": "2.0", "id": 1, "result": "0x9ce59a13"})) is None


def test_parse_rejects_garbage():
    with pytest.raises(ValueError):
        parse_new_head("not json")


def test_parse_ignores_messages_without_a_head():
    assert parse_new_head(json.dumps({"jsonrpc": "2.0", "method": "eth_subscription", "params": None})) is None
    assert parse_new_head(json.dumps({"params": {"result": None}})) is None
    assert parse_new_head(json.dumps([1, 2])) is None


@pytest.mark.asyncio
async def test_polling_stream_yields_each_new_block_once(chain):
    """
    GIVEN a node whose first poll fails
    WHEN the stream is polled across an unchanged and then an advanced head
    THEN each block number is yielded once and the failure is skipped.
    """
    chain.set_next_call_to_fail("get_block_number")
    stream = PollingBlockStream(chain, interval=0).stream()
    try:
        assert await stream.__anext__() == 100
        chain.block_number = 102
        assert await stream.__anext__() == 102
    finally:
        await stream.aclose()

    # one failed poll, one at 100, then at least one at 102
    assert len(chain.calls_to("get_block_number")) >= 3


def head(number: int) -> str:
    return json.dumps({
        "jsonrpc": "2.0",
        "method": "eth_subscription",
        "params": {"subscription": "0x1", "result": {"number": hex(number)}},
    })


STALL = object()


class FakeConnection:
    """Replays a script of messages; exceptions in the script are raised, STALL never answers."""
    def __init__(self, script):
        self.script = list(script)
        self.sent = []
        self.closed = False

    async def send(self, message):
        self.sent.append(json.loads(message))

    async def recv(self):
        if not self.script:
            await asyncio.Event().wait()
        item = self.script.pop(0)
        if item is STALL:
            await asyncio.Event().wait()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_websockets(monkeypatch):
    """Hands out scripted connections in order and records which URL each was opened on."""
    opened = []
    scripts = []

    async def connect(url):
        connection = FakeConnection(scripts.pop(0))
        opened.append((url, connection))
        return connection

    monkeypatch.setattr(blocks_module.websockets, "connect", connect)
    return scripts, opened


SUBSCRIBED = json.dumps({"jsonrpc": "2.0", "id": 1, "result": "0x1"})


@pytest.mark.asyncio
async def test_websocket_stream_subscribes_and_drops_repeated_heads(fake_websockets):
    scripts, opened = fake_websockets
    scripts.append([SUBSCRIBED, head(16), head(16), "not json", head(17)])

    stream = WebsocketBlockStream(["wss://one"], reconnect_delay=0).stream()
    try:
        assert await stream.__anext__() == 16
        assert await stream.__anext__() == 17
    finally:
        await stream.aclose()

    url, connection = opened[0]
    assert url == "wss://one"
    assert connection.sent == [{"jsonrpc": "2.0", "id": 1, "method": "eth_subscribe", "params": ["newHeads"]}]


@pytest.mark.asyncio
async def test_stalled_websocket_rotates_to_the_next_url(fake_websockets):
    """
    GIVEN a first endpoint that goes silent after one head
    WHEN the stall timeout passes
    THEN the stalled connection is closed and the stream continues on the next URL.
    """
    scripts, opened = fake_websockets
    scripts.append([SUBSCRIBED, head(16), STALL])
    scripts.append([SUBSCRIBED, head(17)])

    stream = WebsocketBlockStream(["wss://one", "wss://two"], stall_timeout=0.05, reconnect_delay=0).stream()
    try:
        assert await stream.__anext__() == 16
        assert await stream.__anext__() == 17
    finally:
        await stream.aclose()

    assert [url for url, _ in opened] == ["wss://one", "wss://two"]
    assert opened[0][1].closed


@pytest.mark.asyncio
async def test_closed_websocket_reconnects_to_the_same_url(fake_websockets):
    scripts, opened = fake_websockets
    scripts.append([SUBSCRIBED, head(16), ConnectionClosed(None, None)])
    scripts.append([SUBSCRIBED, head(16), head(18)])

    stream = WebsocketBlockStream(["wss://one", "wss://two"], reconnect_delay=0).stream()
    try:
        assert await stream.__anext__() == 16
        assert await stream.__anext__() == 18
    finally:
        await stream.aclose()

    assert [url for url, _ in opened] == ["wss://one", "wss://one"]


@pytest.mark.asyncio
async def test_failed_connect_moves_on_to_the_next_url(monkeypatch):
    opened = []

    async def connect(url):
        opened.append(url)
        if url == "wss://one":
            raise OSError("connection refused")
        return FakeConnection([SUBSCRIBED, head(20)])

    monkeypatch.setattr(blocks_module.websockets, "connect", connect)

    stream = WebsocketBlockStream(["wss://one", "wss://two"], reconnect_delay=0).stream()
    try:
        assert await stream.__anext__() == 20
    finally:
        await stream.aclose()

    assert opened == ["wss://one", "wss://two"]
