import asyncio
import json
from typing import Optional

import pytest
from pydantic import BaseModel
from structlog.testing import capture_logs

from dreamrent.cache import CachePolicy, EntityCache, LookupIndex, first_hit
from dreamrent.errors import RemoteError
from dreamrent.storage import MemoryCache

TTL = 300


class Item(BaseModel):
    id: str
    name: str
    photo: Optional[str] = None


class Remote:
    """Counts fetches and serves whatever ``items`` currently holds."""

    def __init__(self, items=None, error=None):
        self.items = list(items or [])
        self.error = error
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


def make_items(count, name_length=10, photo_length=0):
    return [
        Item(
            id=f"i{index}",
            name="n" * name_length,
            photo="x" * photo_length if photo_length else None,
        )
        for index in range(count)
    ]


def make_cache(remote, clock, store=None, policy=None, defaults=None):
    return EntityCache(
        "items",
        Item,
        store if store is not None else MemoryCache(),
        remote.fetch,
        clock,
        policy or CachePolicy(ttl=TTL),
        defaults=defaults,
    )


async def test_first_hit_returns_first_non_none():
    async def missing():
        return None

    async def empty():
        return []

    async def full():
        return [1]

    assert await first_hit([missing, empty, full], [9]) == []
    assert await first_hit([missing, full], [9]) == [1]
    assert await first_hit([missing], [9]) == [9]


async def test_fresh_entry_served_without_awaiting_remote(clock):
    remote = Remote(make_items(2))
    cache = make_cache(remote, clock)
    await cache.write(make_items(3))

    records = await cache.get_list()
    assert [item.id for item in records] == ["i0", "i1", "i2"]
    assert remote.calls == 0

    await cache.drain()
    assert remote.calls == 1
    assert [item.id for item in await cache.read()] == ["i0", "i1"]


async def test_entry_is_fresh_up_to_ttl(clock):
    cache = make_cache(Remote(), clock)
    await cache.write(make_items(1))
    clock.advance(TTL)
    assert await cache.read() is not None
    clock.advance(1)
    assert await cache.read() is None


async def test_expired_entry_triggers_exactly_one_fetch(clock):
    remote = Remote(make_items(1))
    cache = make_cache(remote, clock)
    await cache.write(make_items(4))
    clock.advance(TTL + 1)

    records = await cache.get_list()
    assert remote.calls == 1
    assert [item.id for item in records] == ["i0"]

    await cache.drain()
    assert remote.calls == 1


async def test_remote_failure_without_defaults_returns_empty(clock):
    remote = Remote(error=RemoteError("down"))
    cache = make_cache(remote, clock)
    assert await cache.get_list() == []


async def test_revalidation_failure_keeps_entry(clock):
    remote = Remote(error=RemoteError("down"))
    cache = make_cache(remote, clock)
    await cache.write(make_items(2))

    assert len(await cache.get_list()) == 2
    await cache.drain()
    assert len(await cache.read()) == 2


async def test_local_write_during_revalidation_wins(clock):
    gate = asyncio.Event()
    store = MemoryCache()

    async def slow_fetch():
        await gate.wait()
        return make_items(5)

    cache = EntityCache("items", Item, store, slow_fetch, clock, CachePolicy(ttl=TTL))
    await cache.write(make_items(1))
    await cache.get_list()
    await asyncio.sleep(0)

    await cache.invalidate()
    gate.set()
    await cache.drain()
    assert await store.get(cache.key) is None


async def test_config_kind_falls_back_to_defaults(clock):
    defaults = make_items(2)
    empty = Remote([])
    cache = make_cache(empty, clock, defaults=lambda: list(defaults))
    assert [item.id for item in await cache.get_list()] == ["i0", "i1"]
    assert await cache.read() is not None

    broken = Remote(error=RemoteError("down"))
    cache = make_cache(broken, clock, defaults=lambda: list(defaults))
    assert len(await cache.get_list()) == 2


async def test_malformed_entry_is_dropped(clock):
    store = MemoryCache()
    remote = Remote(make_items(1))
    cache = make_cache(remote, clock, store=store)

    await store.set(cache.key, "{not json")
    with capture_logs() as logs:
        records = await cache.get_list()
    assert [item.id for item in records] == ["i0"]
    assert any(entry["event"] == "cache_entry_corrupt" for entry in logs)

    await store.set(cache.key, json.dumps({"items": []}))
    assert await cache.read() is None


async def test_oversized_entry_loses_stripped_fields(clock):
    store = MemoryCache()
    policy = CachePolicy(ttl=TTL, max_bytes=1000, degraded_items=2, strip_fields=("photo",))
    cache = make_cache(Remote(), clock, store=store, policy=policy)

    assert await cache.write(make_items(5, name_length=100, photo_length=1000))
    records = await cache.read()
    assert len(records) == 5
    assert all(item.photo is None for item in records)
    assert len((await store.get(cache.key)).encode()) <= 1000


async def test_oversized_entry_is_truncated_after_stripping(clock):
    store = MemoryCache()
    policy = CachePolicy(ttl=TTL, max_bytes=500, degraded_items=2, strip_fields=("photo",))
    cache = make_cache(Remote(), clock, store=store, policy=policy)

    assert await cache.write(make_items(5, name_length=100, photo_length=1000))
    records = await cache.read()
    assert [item.id for item in records] == ["i0", "i1"]
    assert all(item.photo is None for item in records)


async def test_entry_too_large_for_any_form_is_skipped_and_warned_once(clock):
    store = MemoryCache()
    policy = CachePolicy(ttl=TTL, max_bytes=200, degraded_items=2, strip_fields=("photo",))
    cache = make_cache(Remote(), clock, store=store, policy=policy)

    with capture_logs() as logs:
        assert not await cache.write(make_items(5, name_length=100))
        assert not await cache.write(make_items(5, name_length=100))
    assert await store.get(cache.key) is None
    skipped = [entry for entry in logs if entry["event"] == "cache_too_large_skipping_write"]
    assert len(skipped) == 1
    assert skipped[0]["log_level"] == "warning"


async def test_max_items_caps_entry(clock):
    policy = CachePolicy(ttl=TTL, max_items=3)
    cache = make_cache(Remote(), clock, policy=policy)
    await cache.write(make_items(10))
    assert len(await cache.read()) == 3


async def test_quota_error_retries_with_degraded_payload(clock):
    store = MemoryCache(quota_bytes=1000)
    policy = CachePolicy(ttl=TTL, degraded_items=2, strip_fields=("photo",))
    cache = make_cache(Remote(), clock, store=store, policy=policy)

    with capture_logs() as logs:
        assert await cache.write(make_items(5, photo_length=1000))
    records = await cache.read()
    assert [item.id for item in records] == ["i0", "i1"]
    assert all(item.photo is None for item in records)
    assert any(entry["event"] == "cache_quota_exceeded_retrying_lightweight" for entry in logs)


async def test_second_quota_failure_is_silent(clock):
    store = MemoryCache(quota_bytes=50)
    policy = CachePolicy(ttl=TTL, degraded_items=2, strip_fields=("photo",))
    cache = make_cache(Remote(), clock, store=store, policy=policy)

    assert not await cache.write(make_items(5, photo_length=1000))
    assert await store.get(cache.key) is None


async def test_each_warning_event_is_logged_once(clock):
    store = MemoryCache(quota_bytes=1000)
    policy = CachePolicy(ttl=TTL, max_bytes=2000, degraded_items=2, strip_fields=("photo",))
    cache = make_cache(Remote(), clock, store=store, policy=policy)

    with capture_logs() as logs:
        assert await cache.write(make_items(5, photo_length=300))
        assert not await cache.write(make_items(5, name_length=1000))
        assert not await cache.write(make_items(5, name_length=1000))
    events = [entry["event"] for entry in logs if entry["log_level"] == "warning"]
    assert events == [
        "cache_quota_exceeded_retrying_lightweight",
        "cache_too_large_skipping_write",
    ]


async def test_invalid_remote_records_count_as_fetch_failure(clock):
    async def fetch():
        return [Item.model_validate({"id": "i0"})]

    cache = EntityCache("items", Item, MemoryCache(), fetch, clock, CachePolicy(ttl=TTL))
    with capture_logs() as logs:
        assert await cache.get_list() == []
    assert any(entry["event"] == "remote_fetch_failed" for entry in logs)

    defaults = make_items(2)
    cache = EntityCache(
        "items", Item, MemoryCache(), fetch, clock, CachePolicy(ttl=TTL), defaults=lambda: list(defaults)
    )
    assert [item.id for item in await cache.get_list()] == ["i0", "i1"]


async def test_lookup_index_rebuilds_after_ttl(clock):
    loads = []

    async def load():
        loads.append(clock.now())
        return make_items(3)

    index = LookupIndex(load, clock, ttl=60)
    assert (await index.get("i1")).id == "i1"
    assert await index.get("missing") is None
    assert len(loads) == 1

    clock.advance(60)
    await index.get("i0")
    assert len(loads) == 2

    index.clear()
    assert not index.is_fresh()
    await index.get("i0")
    assert len(loads) == 3


@pytest.mark.parametrize("kind", ["users", "contacts", "mopeds", "deals", "stages", "fields", "groups"])
def test_entry_key_per_kind(kind, clock):
    cache = EntityCache(kind, Item, MemoryCache(), Remote().fetch, clock, CachePolicy(ttl=TTL))
    assert cache.key == f"crm_{kind}_cache"
