# /main.py
# Runs the block-polled store against a live node and serves its snapshot.
import asyncio
from decimal import Decimal, InvalidOperation
from aiohttp import web

from trovekit.core.config import settings
from trovekit.core.config_validator import validate as validate_config
from trovekit.core.decorators import retriable_chain_call
from trovekit.core.engine import TroveEngine
from trovekit.core.logger import configure_logging, get_logger
from trovekit.core.store import BlockPolledStore
from trovekit.adapters.blocks import PollingBlockStream, WebsocketBlockStream
from trovekit.adapters.chain import Web3ChainReader


def make_app(store: BlockPolledStore, engine: TroveEngine) -> web.Application:
    async def healthz(request):
        """Provides a JSON health status for the service."""
        healthy = store.loaded and not store.block_stream_failed
        if healthy:
            status = "ok"
        elif store.block_stream_failed:
            status = "block_stream_down"
        else:
            status = "starting"
        body = {"status": status, "store": store.status.value}
        if store.loaded:
            body["block"] = store.state.block_tag
        if store.block_stream_failed and store.last_error is not None:
            body["error"] = str(store.last_error)
        return web.json_response(body, status=200 if healthy else 503)

    async def state(request):
        if not store.loaded:
            return web.json_response({"error": "store not loaded"}, status=503)
        return web.Response(text=store.state.model_dump_json(), content_type="application/json")

    async def hints(request):
        try:
            ratio = Decimal(request.query["ncr"])
            if ratio.is_nan():
                raise InvalidOperation
        except (KeyError, InvalidOperation):
            return web.json_response({"error": "ncr query parameter must be a number"}, status=400)
        pair = await engine.resolve_hints(ratio, request.query.get("self"))
        return web.json_response({"prev": pair.prev, "next": pair.next})

    app = web.Application()
    app.add_routes([
        web.get("/healthz", healthz),
        web.get("/state", state),
        web.get("/hints", hints),
    ])
    return app


async def main():
    configure_logging()
    log = get_logger("trovekit.System")
    validate_config()
    log.info("TROVEKIT_SERVICE_STARTING")

    chain = Web3ChainReader.from_settings(settings)
    latest = await retriable_chain_call(chain.get_block_number)()
    log.info("CHAIN_CONNECTED", block=latest)

    if settings.BLOCK_WSS_URL:
        urls = [u.strip() for u in settings.BLOCK_WSS_URL.get_secret_value().split(",")]
        blocks = WebsocketBlockStream(urls)
    else:
        blocks = PollingBlockStream(chain, settings.BLOCK_POLL_INTERVAL)

    store = BlockPolledStore(chain, blocks, settings.USER_ADDRESS, settings.FRONTEND_TAG)
    store.on_loaded = lambda snapshot: log.info("STORE_READY", block=snapshot.block_tag)
    store.subscribe(lambda new, old, changes: log.info("STORE_UPDATED", block=new.block_tag, changed=sorted(changes)))
    engine = TroveEngine(chain, store)

    app = make_app(store, engine)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", settings.HEALTH_PORT or 8080)
    await site.start()
    log.info("HEALTHCHECK_SERVER_STARTED", port=settings.HEALTH_PORT or 8080)

    stop = store.start()
    try:
        await asyncio.Event().wait()
    finally:
        stop()
        await runner.cleanup()
        log.warning("SYSTEM_SHUTDOWN_COMPLETE")

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
