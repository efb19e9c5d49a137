"""Tests for the HTTP and in-memory key/value gateways."""

import asyncio
import json

import httpx
import pytest

from core.api.kv_gateway import HttpKVGateway, InMemoryKVGateway
from exceptions.exceptions import StoreError, WriteConflictError


KEY = "crqa.hns/skapp.hns/newcontent/index.json"


class FakeStore:
    """Minimal REST JSON store honouring If-Match / If-None-Match."""

    def __init__(self):
        self.documents = {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = request.url.path[len("/kv/"):]

        if request.method == "GET":
            if key not in self.documents:
                return httpx.Response(404)
            body, etag = self.documents[key]
            return httpx.Response(200, json=body, headers={"ETag": etag})

        current = self.documents.get(key)
        if request.headers.get("If-None-Match") == "*" and current is not None:
            return httpx.Response(412)
        if_match = request.headers.get("If-Match")
        if if_match is not None and (current is None or current[1] != if_match):
            return httpx.Response(412)

        etag = f'"v{len(self.requests)}"'
        self.documents[key] = (json.loads(request.content), etag)
        return httpx.Response(204, headers={"ETag": etag})


def make_gateway(handler, **kwargs):
    return HttpKVGateway(
        "http://store.test/kv",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def run(gateway, scenario):
    async def wrapped():
        try:
            return await scenario(gateway)
        finally:
            await gateway.aclose()
    return asyncio.run(wrapped())


class TestHttpKVGateway:

    def test_absent_key_reads_as_none(self):
        store = FakeStore()
        assert run(make_gateway(store), lambda gw: gw.get(KEY)) is None
        assert store.requests[0].url.path == f"/kv/{KEY}"

    def test_set_then_get_round_trips(self):
        store = FakeStore()

        async def scenario(gw):
            await gw.set(KEY, {"pageSize": 1000})
            return await gw.get_versioned(KEY)

        snapshot = run(make_gateway(store), scenario)
        assert snapshot.value == {"pageSize": 1000}
        assert snapshot.version is not None
        assert store.requests[0].method == "PUT"

    def test_conditional_create_uses_if_none_match(self):
        store = FakeStore()

        async def scenario(gw):
            await gw.set_if(KEY, {"a": 1}, None)
            await gw.set_if(KEY, {"a": 2}, None)

        with pytest.raises(WriteConflictError):
            run(make_gateway(store), scenario)
        assert store.requests[0].headers["If-None-Match"] == "*"
        assert store.documents[KEY][0] == {"a": 1}

    def test_conditional_update_with_stale_etag_conflicts(self):
        store = FakeStore()

        async def scenario(gw):
            first = await gw.set_if(KEY, {"a": 1}, None)
            second = await gw.set_if(KEY, {"a": 2}, first)
            await gw.set_if(KEY, {"a": 3}, first)
            return second

        with pytest.raises(WriteConflictError):
            run(make_gateway(store), scenario)
        assert store.documents[KEY][0] == {"a": 2}

    def test_bearer_token_is_sent(self):
        store = FakeStore()
        run(make_gateway(store, token="secret"), lambda gw: gw.get(KEY))
        assert store.requests[0].headers["Authorization"] == "Bearer secret"

    def test_server_error_is_a_store_error(self):
        gateway = make_gateway(lambda request: httpx.Response(503))
        with pytest.raises(StoreError) as excinfo:
            run(gateway, lambda gw: gw.get(KEY))
        assert excinfo.value.operation == "get"
        assert excinfo.value.key == KEY

    def test_failed_write_is_a_store_error(self):
        gateway = make_gateway(lambda request: httpx.Response(500))
        with pytest.raises(StoreError) as excinfo:
            run(gateway, lambda gw: gw.set(KEY, {}))
        assert excinfo.value.operation == "set"

    def test_timeout_is_a_store_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(StoreError) as excinfo:
            run(make_gateway(handler), lambda gw: gw.get(KEY))
        assert "timed out" in excinfo.value.details

    def test_invalid_json_is_a_store_error(self):
        gateway = make_gateway(lambda request: httpx.Response(200, content=b"not json"))
        with pytest.raises(StoreError):
            run(gateway, lambda gw: gw.get(KEY))


class TestInMemoryKVGateway:

    def test_versions_increase_per_write(self):
        gateway = InMemoryKVGateway()

        async def scenario():
            await gateway.set(KEY, 1)
            await gateway.set(KEY, 2)
            return await gateway.get_versioned(KEY)

        snapshot = asyncio.run(scenario())
        assert (snapshot.value, snapshot.version) == (2, "2")

    def test_returned_values_are_copies(self):
        gateway = InMemoryKVGateway({KEY: {"entries": []}})

        async def scenario():
            value = await gateway.get(KEY)
            value["entries"].append("x")
            return await gateway.get(KEY)

        assert asyncio.run(scenario()) == {"entries": []}

    def test_set_if_rejects_stale_version(self):
        gateway = InMemoryKVGateway({KEY: {"a": 1}})
        with pytest.raises(WriteConflictError):
            asyncio.run(gateway.set_if(KEY, {"a": 2}, None))
        assert gateway.snapshot(KEY) == {"a": 1}
