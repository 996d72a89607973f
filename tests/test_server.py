from __future__ import annotations

import json

import pytest
from aiohttp import test_utils

from mqttsnap.ingestion.classify import classify
from mqttsnap.models.value import ObjectValue, TextValue
from mqttsnap.server import create_app
from mqttsnap.state.store import TopicStore


@pytest.mark.asyncio
async def test_empty_store_returns_empty_object() -> None:
    async with test_utils.TestClient(test_utils.TestServer(create_app(TopicStore()))) as client:
        resp = await client.get("/")
        assert resp.status == 200
        assert resp.content_type == "application/json"
        assert await resp.json() == {}


@pytest.mark.asyncio
async def test_values_are_served_untagged() -> None:
    store = TopicStore()
    await store.upsert("sensors/temp", classify(b'{"c":21.5}'))
    await store.upsert("list", classify(b'[{"a":1},{"a":2}]'))
    await store.upsert("text", classify(b"hello"))
    await store.upsert("numbers", classify(b"[1,2,3]"))

    async with test_utils.TestClient(test_utils.TestServer(create_app(store))) as client:
        resp = await client.get("/")
        assert resp.status == 200
        body = json.loads(await resp.text())

    assert body == {
        "sensors/temp": {"c": 21.5},
        "list": [{"a": 1}, {"a": 2}],
        "text": "hello",
        "numbers": "[1,2,3]",
    }


@pytest.mark.asyncio
async def test_non_ascii_text_round_trips() -> None:
    store = TopicStore()
    await store.upsert("greeting", classify("héllo wörld".encode()))

    async with test_utils.TestClient(test_utils.TestServer(create_app(store))) as client:
        resp = await client.get("/")
        assert await resp.json() == {"greeting": "héllo wörld"}


@pytest.mark.asyncio
async def test_serialization_failure_returns_error_message() -> None:
    store = TopicStore()
    await store.upsert("bad", ObjectValue(value={"nan": float("nan")}))

    async with test_utils.TestClient(test_utils.TestServer(create_app(store))) as client:
        resp = await client.get("/")
        assert resp.status == 500
        body = await resp.json()

    assert set(body) == {"error_message"}
    assert body["error_message"]


@pytest.mark.asyncio
async def test_only_get_root_is_routed() -> None:
    async with test_utils.TestClient(test_utils.TestServer(create_app(TopicStore()))) as client:
        assert (await client.post("/")).status == 405
        assert (await client.get("/topics")).status == 404


@pytest.mark.asyncio
async def test_unencodable_text_returns_json_error() -> None:
    store = TopicStore()
    await store.upsert("ok", ObjectValue(value={"ok": 1}))
    await store.upsert("bad", TextValue(value="\ud800"))

    async with test_utils.TestClient(test_utils.TestServer(create_app(store))) as client:
        resp = await client.get("/")
        assert resp.status == 500
        assert resp.content_type == "application/json"
        body = await resp.json()

    assert set(body) == {"error_message"}
    assert "surrogates not allowed" in body["error_message"]


@pytest.mark.asyncio
async def test_surrogate_payload_does_not_break_snapshot() -> None:
    store = TopicStore()
    await store.upsert("ok", classify(b'{"ok":1}'))
    await store.upsert("bad", classify(rb'{"a":"\ud800"}'))

    async with test_utils.TestClient(test_utils.TestServer(create_app(store))) as client:
        resp = await client.get("/")
        assert resp.status == 200
        body = await resp.json()

    assert body == {"ok": {"ok": 1}, "bad": '{"a":"\\ud800"}'}
