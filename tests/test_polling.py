"""Tests for the long-polling synchronizer."""

import asyncio
import logging

import pytest

from cloudclient.config import LongPollingConfig
from cloudclient.error import ConfigurationError, HTTPError
from cloudclient.polling import LongPoller, start_long_polling, update_data
from cloudclient.proxy import build_cloud_class

from tests.conftest import BASE_URL, FakeTransport, make_instance, make_schema, wait_for_condition

FAST = LongPollingConfig(min_delay_ms=100, prefer_wait=5)
FASTER = LongPollingConfig(min_delay_ms=10, prefer_wait=5)


class TestUpdateData:
    """Tests for update_data()."""

    def test_filtering(self) -> None:
        url = "http://h/obj"
        target = {"$ref": url}
        data = {"$ref": url, "foo": "bar", "_bar": "x", "$bar": "y", "$id": "1", "$hash": "2"}
        update_data(target, data)
        assert target == {"$ref": url, "foo": "bar", "$id": "1", "$hash": "2"}

    def test_status_code_skipped(self) -> None:
        target = {}
        update_data(target, {"_statusCode": 200, "count": 3})
        assert target == {"count": 3}

    def test_overwrites_existing(self) -> None:
        target = {"count": 1, "other": True}
        update_data(target, {"count": 2})
        assert target == {"count": 2, "other": True}


@pytest.mark.asyncio
class TestLongPoller:
    """Tests for LongPoller."""

    async def test_requires_ref_and_hash(self) -> None:
        with pytest.raises(ConfigurationError):
            LongPoller({"$ref": BASE_URL}, FakeTransport().get, FAST)
        with pytest.raises(ConfigurationError):
            LongPoller({"$hash": "A"}, FakeTransport().get, FAST)
        with pytest.raises(ConfigurationError):
            LongPoller({"$ref": "", "$hash": "A"}, FakeTransport().get, FAST)

    async def test_updates_in_sequence_and_stops(self) -> None:
        transport = FakeTransport(poll_responses=[
            {"$ref": BASE_URL, "$hash": "B", "count": 1, "_statusCode": 200},
            {"$ref": BASE_URL, "$hash": "C", "count": 2, "_statusCode": 200},
        ])
        instance = {"$ref": BASE_URL, "$hash": "A"}
        loop = asyncio.get_running_loop()
        started = loop.time()

        poller = LongPoller(instance, transport.get, FAST)
        stop = poller.start()
        await wait_for_condition(lambda: instance.get("$hash") == "C")
        stop()
        await asyncio.wait_for(poller.join(), timeout=1.0)
        await asyncio.sleep(0.2)

        assert instance["count"] == 2
        assert len(transport.gets) == 2
        first, second = transport.gets
        assert first.url == BASE_URL
        assert (first.etag, first.wait) == ("A", 5)
        assert (second.etag, second.wait) == ("B", 5)
        assert first.time - started >= 0.09
        assert second.time - first.time >= 0.09
        assert "_statusCode" not in instance

    async def test_stop_is_idempotent(self) -> None:
        poller = LongPoller({"$ref": BASE_URL, "$hash": "A"}, FakeTransport().get, FAST)
        poller.start()
        poller.stop()
        poller.stop()
        await asyncio.wait_for(poller.join(), timeout=1.0)
        assert poller.running is False

    async def test_stop_before_first_request(self) -> None:
        transport = FakeTransport()
        poller = LongPoller({"$ref": BASE_URL, "$hash": "A"}, transport.get, FAST)
        poller.start()
        await asyncio.sleep(0)
        poller.stop()
        await asyncio.wait_for(poller.join(), timeout=1.0)
        assert transport.gets == []

    async def test_not_modified_status_skips_merge(self) -> None:
        transport = FakeTransport(poll_responses=[
            {"_statusCode": 304, "count": 99},
            {"$hash": "B", "count": 1, "_statusCode": 200},
        ])
        instance = {"$ref": BASE_URL, "$hash": "A"}
        poller = LongPoller(instance, transport.get, FASTER)
        poller.start()
        await wait_for_condition(lambda: instance.get("$hash") == "B")
        poller.stop()
        await poller.join()
        assert instance["count"] == 1
        assert transport.gets[1].etag == "A"

    async def test_not_modified_error_is_not_logged(self, caplog) -> None:
        transport = FakeTransport(poll_responses=[
            HTTPError(304),
            {"$hash": "B", "_statusCode": 200},
        ])
        instance = {"$ref": BASE_URL, "$hash": "A"}
        poller = LongPoller(instance, transport.get, FASTER)
        with caplog.at_level(logging.WARNING, logger="cloudclient.polling"):
            poller.start()
            await wait_for_condition(lambda: instance.get("$hash") == "B")
            poller.stop()
            await poller.join()
        assert caplog.records == []

    async def test_errors_are_logged_and_loop_continues(self, caplog) -> None:
        transport = FakeTransport(poll_responses=[
            RuntimeError("connection reset"),
            HTTPError(503),
            "not an object",
            {"$hash": "B", "_statusCode": 200},
        ])
        instance = {"$ref": BASE_URL, "$hash": "A"}
        poller = LongPoller(instance, transport.get, FASTER)
        with caplog.at_level(logging.WARNING, logger="cloudclient.polling"):
            poller.start()
            await wait_for_condition(lambda: instance.get("$hash") == "B")
            poller.stop()
            await poller.join()

        messages = [r.getMessage() for r in caplog.records]
        assert len(messages) == 3
        assert "connection reset" in messages[0]
        assert "503" in messages[1]
        assert "Could not update" in messages[2]
        assert len(transport.gets) >= 4

    async def test_failed_request_still_spaces_next_one(self) -> None:
        transport = FakeTransport(poll_responses=[
            RuntimeError("down"),
            {"$hash": "B", "_statusCode": 200},
        ])
        instance = {"$ref": BASE_URL, "$hash": "A"}
        poller = LongPoller(instance, transport.get, FAST)
        poller.start()
        await wait_for_condition(lambda: instance.get("$hash") == "B")
        poller.stop()
        await poller.join()
        assert transport.gets[1].time - transport.gets[0].time >= 0.09

    async def test_start_twice_returns_same_handle(self) -> None:
        poller = LongPoller({"$ref": BASE_URL, "$hash": "A"}, FakeTransport().get, FAST)
        stop = poller.start()
        assert poller.start() == stop
        stop()
        await poller.join()


class TestStartWithoutLoop:
    """Starting outside an event loop is a configuration error."""

    def test_no_running_loop(self) -> None:
        with pytest.raises(ConfigurationError):
            start_long_polling({"$ref": BASE_URL, "$hash": "A"}, FakeTransport().get, FAST)


@pytest.mark.asyncio
class TestProxyInstancePolling:
    """Long polling of proxy instances built from descriptors."""

    async def test_instance_is_updated_until_stopped(self) -> None:
        transport = FakeTransport(poll_responses=[
            {"$ref": BASE_URL, "$hash": "B", "title": "changed", "_statusCode": 200},
            {"$ref": BASE_URL, "$hash": "C", "title": "changed again", "_statusCode": 200},
        ])
        proxy_type = build_cloud_class(
            make_schema(),
            transport.get,
            transport.post,
            enable_long_polling=True,
            long_polling=FAST,
        )
        instance = proxy_type(make_instance())
        assert instance.title == "hello"

        await wait_for_condition(lambda: instance["$hash"] == "C")
        instance.stop_polling()
        instance.stop_polling()
        await asyncio.sleep(0.3)

        assert instance.title == "changed again"
        assert len(transport.gets) == 2
