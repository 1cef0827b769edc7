"""Pytest configuration and shared helpers for all tests."""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable

SCHEMA_ID = "6f1c1b1e-2d3a-4b5c-8d9e-0f1a2b3c4d5e"
INSTANCE_ID = "0b7e6c52-97a4-4c8e-9a51-3d2f1e0c9b8a"
BASE_URL = "http://h/"


@dataclass
class RecordedGet:
    url: str
    etag: str | None
    wait: int | None
    time: float


@dataclass
class RecordedPost:
    url: str
    body: Any


class FakeTransport:
    """In-memory transport for testing.

    GETs without an etag are answered from ``routes``. Conditional GETs
    (long polls) consume ``poll_responses`` in order and answer 304 once it
    is exhausted. An exception in either place is raised instead of returned.
    POSTs return ``post_result``.
    """

    def __init__(
        self,
        routes: dict[str, Any] | None = None,
        poll_responses: list[Any] | None = None,
        post_result: Any = None,
    ) -> None:
        self.routes = routes or {}
        self.poll_responses = list(poll_responses or [])
        self.post_result = post_result if post_result is not None else {"$type": "undefined"}
        self.gets: list[RecordedGet] = []
        self.posts: list[RecordedPost] = []

    async def get(self, url: str, *, etag: str | None = None, wait: int | None = None) -> Any:
        self.gets.append(RecordedGet(url, etag, wait, asyncio.get_running_loop().time()))
        if etag is not None:
            response = self.poll_responses.pop(0) if self.poll_responses else {"_statusCode": 304}
        else:
            response = self.routes[url]
        if isinstance(response, BaseException):
            raise response
        return response

    async def post(self, url: str, body: Any) -> Any:
        self.posts.append(RecordedPost(url, body))
        if isinstance(self.post_result, BaseException):
            raise self.post_result
        return self.post_result


class FakeClock:
    """Manually advanced time source for cache tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_schema(**overrides: Any) -> dict[str, Any]:
    """A schema descriptor with two methods and two properties."""
    schema: dict[str, Any] = {
        "$id": SCHEMA_ID,
        "$hash": "schema-1",
        "$ref": BASE_URL,
        "$type": "Foo",
        "send": {"$type": "Function", "$ref": BASE_URL + "send", "$args": ["data"]},
        "getDate": {"$type": "Function", "$ref": BASE_URL + "getDate", "$args": []},
        "title": "untitled",
        "tags": ["a", "b"],
    }
    schema.update(overrides)
    return schema


def make_instance(schema: dict[str, Any] | None = None, **overrides: Any) -> dict[str, Any]:
    """An instance descriptor embedding ``schema`` as ``$prototype``."""
    descriptor: dict[str, Any] = {
        "$id": INSTANCE_ID,
        "$hash": "A",
        "$ref": BASE_URL,
        "$type": "Foo",
        "$prototype": schema if schema is not None else make_schema(),
        "title": "hello",
        "_statusCode": 200,
    }
    descriptor.update(overrides)
    return descriptor


async def wait_for_condition(
    condition: Callable[[], bool],
    timeout: float = 2.0,
    interval: float = 0.005,
) -> None:
    """Poll ``condition`` until it holds, failing after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(interval)
