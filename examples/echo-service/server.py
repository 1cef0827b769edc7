"""Echo service: a remote object with two methods and a counter.

Serves the object descriptor at ``/`` and answers conditional GETs as long
polls, so clients with long polling enabled see ``counter`` change every
few seconds.

Run:
    uv run python examples/echo-service/server.py
"""

import asyncio
import logging
import time
import uuid
from typing import Any

from aiohttp import web

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

HOST = "127.0.0.1"
PORT = 3000
BASE_URL = f"http://{HOST}:{PORT}/"

SCHEMA_ID = str(uuid.uuid4())
INSTANCE_ID = str(uuid.uuid4())


class EchoService:
    """State of the single served object."""

    def __init__(self) -> None:
        self.counter = 0
        self.changed = asyncio.Event()

    @property
    def hash(self) -> str:
        return f"counter-{self.counter}"

    def tick(self) -> None:
        self.counter += 1
        self.changed.set()
        self.changed = asyncio.Event()

    def descriptor(self) -> dict[str, Any]:
        return {
            "$id": INSTANCE_ID,
            "$hash": self.hash,
            "$ref": BASE_URL,
            "$type": "EchoService",
            "$prototype": {
                "$id": SCHEMA_ID,
                "$hash": "echo-schema-1",
                "$ref": BASE_URL,
                "$type": ["EchoService", "Service"],
                "echo": {"$type": "Function", "$args": ["value"]},
                "getDate": {"$type": "Function", "$args": []},
                "counter": 0,
            },
            "counter": self.counter,
        }

    async def get_object(self, request: web.Request) -> web.Response:
        etag = request.headers.get("If-None-Match")
        if etag == self.hash:
            # Prefer: wait=N
            _, _, wait = request.headers.get("Prefer", "").partition("=")
            try:
                await asyncio.wait_for(self.changed.wait(), timeout=int(wait or 0))
            except asyncio.TimeoutError:
                pass
            if etag == self.hash:
                return web.Response(status=304)
        return web.json_response(self.descriptor())

    async def call(self, request: web.Request) -> web.Response:
        method = request.match_info["method"]
        args = (await request.json()).get("args", [])
        logger.info("%s(%s)", method, ", ".join(map(repr, args)))

        match method:
            case "echo":
                value = args[0] if args else None
                return web.json_response({"$type": type(value).__name__, "$path": "payload", "payload": value})
            case "getDate":
                now_ms = int(time.time() * 1000)
                return web.json_response({"$type": "Date", "$path": "payload", "payload": now_ms})
            case _:
                raise web.HTTPNotFound(text=f"Method '{method}' not found")


async def ticker(service: EchoService, interval: float = 3.0) -> None:
    while True:
        await asyncio.sleep(interval)
        service.tick()
        logger.info("counter = %d", service.counter)


async def main() -> None:
    """Run the echo server."""
    service = EchoService()

    app = web.Application()
    app.router.add_get("/", service.get_object)
    app.router.add_post("/{method}", service.call)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, HOST, PORT)
    await site.start()
    tick_task = asyncio.create_task(ticker(service))

    print(f"Echo server running on {BASE_URL}")
    print()
    print("Run client with: uv run python examples/echo-service/client.py")
    print("Press Ctrl+C to stop")

    try:
        await asyncio.Event().wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        tick_task.cancel()
        await runner.cleanup()


if __name__ == "__main__":
    asyncio.run(main())
