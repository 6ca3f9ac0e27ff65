"""Tests for the SQLite key-value store."""

import pytest

from activity_tracker.kvstore import KeyValueStore


@pytest.mark.asyncio
async def test_get_missing_returns_none(store):
    assert await store.get("nope") is None


@pytest.mark.asyncio
async def test_set_overwrites(store):
    await store.set("k", "1")
    await store.set("k", "2")
    assert await store.get("k") == "2"


@pytest.mark.asyncio
async def test_json_round_trip_keeps_unicode(store):
    await store.set_json("k", {"title": "Cuidados Personales ñ"})
    assert await store.get_json("k") == {"title": "Cuidados Personales ñ"}


@pytest.mark.asyncio
async def test_corrupt_json_is_absent(store):
    await store.set("k", "{not json")
    assert await store.get_json("k", default="fallback") == "fallback"


@pytest.mark.asyncio
async def test_delete(store):
    await store.set("k", "v")
    assert await store.delete("k") is True
    assert await store.delete("k") is False


@pytest.mark.asyncio
async def test_keys_by_prefix(store):
    await store.set("activity-tracker-data-ana", "[]")
    await store.set("activity-tracker-data-luis", "[]")
    await store.set("theme", "dark")
    assert await store.keys("activity-tracker-data") == [
        "activity-tracker-data-ana", "activity-tracker-data-luis",
    ]


@pytest.mark.asyncio
async def test_persists_across_connections(tmp_path):
    path = str(tmp_path / "kv.db")
    async with KeyValueStore(path) as kv:
        await kv.set("k", "v")
    async with KeyValueStore(path) as kv:
        assert await kv.get("k") == "v"
