"""Long-polling synchronization of proxy instances.

Each instance with long polling enabled owns one ``LongPoller``: an asyncio
task that repeatedly issues a conditional GET for the instance's ``$ref``
with its current ``$hash`` as ETag, and merges changed state into the
instance. The server holds the request open (``Prefer: wait=N``) until the
object changes or the wait elapses.

Loop states::

    Waiting -> Requesting -> Applying | Skipping | Erroring -> Waiting ...
                                                          \\-> Stopped

Poll failures never end the loop; only ``stop()`` does.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from cloudclient.config import DEFAULT_LONG_POLLING, LongPollingConfig
from cloudclient.error import ConfigurationError, HTTPError, TransientPollError
from cloudclient.transport import STATUS_CODE_KEY

logger = logging.getLogger(__name__)

GetRequestFunc = Callable[..., Awaitable[Any]]
StopHandle = Callable[[], None]

NOT_MODIFIED = 304

# asyncio only keeps weak references to tasks; running pollers live here
_active_tasks: set[asyncio.Task[None]] = set()


def update_data(target: MutableMapping[str, Any], data: Mapping[str, Any]) -> None:
    """Merge a poll response into a live instance.

    ``$id``, ``$hash`` and every key not starting with ``$`` or ``_`` are
    copied; other ``$``/``_`` keys are skipped.
    """
    for key, value in data.items():
        if key in ("$id", "$hash") or not key.startswith(("$", "_")):
            target[key] = value


def _field(instance: Any, key: str) -> Any:
    try:
        return instance[key]
    except KeyError:
        return None


@dataclass(slots=True)
class PollContext:
    """Per-instance polling state.

    Only ``running`` is changed from outside the loop (by ``stop()``).
    """

    target_url: str
    last_hash: str
    last_poll_time: float | None = None
    running: bool = True


class LongPoller:
    """Keeps one instance in sync with its remote object.

    Example:
        ```python
        poller = LongPoller(instance, transport.get)
        poller.start()
        ...
        poller.stop()
        await poller.join()
        ```
    """

    __slots__ = ("instance", "context", "_get_request", "_config", "_task", "_wake")

    def __init__(
        self,
        instance: Any,
        get_request: GetRequestFunc,
        config: LongPollingConfig | None = None,
    ) -> None:
        url = _field(instance, "$ref")
        etag = _field(instance, "$hash")
        if not (url and etag):
            raise ConfigurationError(
                "Long polling requires an instance with $ref and $hash"
            )
        self.instance = instance
        self.context = PollContext(target_url=url, last_hash=etag)
        self._get_request = get_request
        self._config = config or DEFAULT_LONG_POLLING
        self._task: asyncio.Task[None] | None = None
        self._wake: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self.context.running

    def start(self) -> StopHandle:
        """Start the poll loop in the running event loop.

        Returns:
            The stop handle (``self.stop``)
        """
        if self._task is not None:
            return self.stop
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise ConfigurationError("Long polling requires a running event loop") from e

        self._wake = asyncio.Event()
        self._task = loop.create_task(self._run())
        _active_tasks.add(self._task)
        self._task.add_done_callback(_active_tasks.discard)
        logger.info("Started long polling %s", self.context.target_url)
        return self.stop

    def stop(self) -> None:
        """Stop polling. Safe to call more than once.

        A request already in flight completes; no new request is issued.
        """
        if not self.context.running:
            return
        self.context.running = False
        if self._wake is not None:
            self._wake.set()
        logger.info("Stopped long polling %s", self.context.target_url)

    async def join(self) -> None:
        """Wait until the poll loop has exited."""
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        ctx = self.context
        while ctx.running:
            await self._wait()
            if not ctx.running:
                break
            await self._poll_once()

    async def _wait(self) -> None:
        last = self.context.last_poll_time
        elapsed = 0.0 if last is None else asyncio.get_running_loop().time() - last
        delay = max(0.0, self._config.min_delay - elapsed)
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _poll_once(self) -> None:
        ctx = self.context
        loop = asyncio.get_running_loop()
        try:
            try:
                body = await self._get_request(
                    ctx.target_url,
                    wait=self._config.prefer_wait,
                    etag=ctx.last_hash,
                )
            finally:
                ctx.last_poll_time = loop.time()
        except HTTPError as e:
            if e.is_not_modified:
                return
            logger.warning("%s", TransientPollError(ctx.target_url, e))
            return
        except Exception as e:
            logger.warning("%s", TransientPollError(ctx.target_url, e))
            return

        if isinstance(body, Mapping):
            if body.get(STATUS_CODE_KEY) == NOT_MODIFIED:
                return
            update_data(self.instance, body)
            new_hash = _field(self.instance, "$hash")
            if new_hash:
                ctx.last_hash = new_hash
            logger.debug("Updated %s to %s", ctx.target_url, ctx.last_hash)
            return

        logger.warning("Could not update %s from poll response: %r", ctx.target_url, body)


def start_long_polling(
    instance: Any,
    get_request: GetRequestFunc,
    config: LongPollingConfig | None = None,
) -> StopHandle:
    """Start polling for ``instance`` and return its stop handle."""
    return LongPoller(instance, get_request, config).start()
