# /test/test_service.py
import pytest
from aiohttp import test_utils

from conftest import eventually
from main import make_app
from trovekit.core.engine import TroveEngine
from trovekit.core.store import BlockPolledStore


@pytest.mark.asyncio
async def test_endpoints_report_starting_before_load(chain, blocks):
    store = BlockPolledStore(chain, blocks)
    async with test_utils.TestClient(test_utils.TestServer(make_app(store, TroveEngine(chain, store)))) as client:
        r = await client.get("/healthz")
        assert r.status == 503
        assert (await r.json())["status"] == "starting"

        r = await client.get("/state")
        assert r.status == 503


@pytest.mark.asyncio
async def test_endpoints_serve_the_loaded_snapshot(chain, blocks, five_troves):
    store = BlockPolledStore(chain, blocks)
    store.start()
    try:
        await store.wait_loaded()
        async with test_utils.TestClient(test_utils.TestServer(make_app(store, TroveEngine(chain, store)))) as client:
            r = await client.get("/healthz")
            assert r.status == 200
            assert await r.json() == {"status": "ok", "store": "loaded", "block": 100}

            r = await client.get("/state")
            body = await r.json()
            assert body["block_tag"] == 100
            assert body["number_of_troves"] == 5

            r = await client.get("/hints", params={"ncr": "2.15"})
            assert await r.json() == {"prev": "p220", "next": "p210"}

            r = await client.get("/hints", params={"ncr": "lots"})
            assert r.status == 400

            r = await client.get("/hints", params={"ncr": "NaN"})
            assert r.status == 400
    finally:
        store.stop()


class DeadBlockStream:
    async def stream(self):
        raise ConnectionError("websocket refused")
        yield


@pytest.mark.asyncio
async def test_healthz_reports_a_down_block_stream(chain):
    """
    GIVEN a loaded store whose block stream keeps failing
    WHEN /healthz is requested
    THEN it answers 503 with the stream error rather than "ok".
    """
    store = BlockPolledStore(chain, DeadBlockStream(), resubscribe_delay=60)
    store.start()
    try:
        await store.wait_loaded()
        await eventually(lambda: store.block_stream_failed)
        async with test_utils.TestClient(test_utils.TestServer(make_app(store, TroveEngine(chain, store)))) as client:
            r = await client.get("/healthz")
            assert r.status == 503
            assert await r.json() == {
                "status": "block_stream_down",
                "store": "loaded",
                "block": 100,
                "error": "websocket refused",
            }
    finally:
        store.stop()
