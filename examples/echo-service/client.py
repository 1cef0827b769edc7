"""Echo service client.

Calls both remote methods, then watches the server-side counter through
long polling for a few seconds.

Run (after starting server):
    uv run python examples/echo-service/client.py
"""

import asyncio
import logging

from cloudclient import HttpTransport, LongPollingConfig, ResolveOptions, cloud_client

URL = "http://127.0.0.1:3000"


async def main() -> None:
    """Run the echo client."""
    logging.basicConfig(level=logging.INFO)
    print("Echo Client")
    print("=" * 40)

    options = ResolveOptions(
        enable_long_polling=True,
        long_polling=LongPollingConfig(min_delay_ms=200, prefer_wait=10),
    )

    async with HttpTransport() as transport:
        instance = await cloud_client(URL, transport, options)
        print(f"\nGot {instance!r} with types {instance.type_names()}")

        date = await instance.getDate()
        print(f"  getDate() returned {date.isoformat()} ({type(date).__name__})")

        text = await instance.echo("foobar")
        print(f"  echo('foobar') returned {text!r}")

        print("\nWatching counter for 10 seconds...")
        seen = instance.counter
        for _ in range(20):
            await asyncio.sleep(0.5)
            if instance.counter != seen:
                seen = instance.counter
                print(f"  counter = {seen}")

        instance.stop_polling()

    print("\n" + "=" * 40)
    print("Done")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except Exception as e:
        print(f"\nError: {e}")
        print("Make sure the server is running: uv run python examples/echo-service/server.py")
