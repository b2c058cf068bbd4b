"""Stale-while-revalidate caching of entity lists.

One :class:`EntityCache` exists per entity kind. A fresh cache entry is
served immediately while a background task refreshes it from the remote
data source; a missing or expired entry is loaded through an ordered chain
of strategies (remote, then hard-coded defaults where the kind has them).

Entries are stored as a single JSON envelope ``{"savedAt": ..., "items":
[...]}`` so a write either replaces the whole entry or leaves it untouched.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
    TypeVar,
)

import structlog
from pydantic import BaseModel, ValidationError

from .clock import Clock
from .errors import RemoteError, StorageError, StorageQuotaError
from .storage import KeyValueStore

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

Strategy = Callable[[], Awaitable[Optional[List[Any]]]]


async def first_hit(strategies: Iterable[Strategy], default: List[Any]) -> List[Any]:
    """Run ``strategies`` in order and return the first non-``None`` result."""
    for strategy in strategies:
        result = await strategy()
        if result is not None:
            return result
    return default


class OnceLogger:
    """Emit each warning event at most once per key and process."""

    def __init__(self, log):
        self._log = log
        self._seen: Set[Tuple[str, str]] = set()

    def warning(self, key: str, event: str, **kw: Any) -> None:
        if (key, event) in self._seen:
            return
        self._seen.add((key, event))
        self._log.warning(event, **kw)

    def reset(self) -> None:
        self._seen.clear()


cache_warnings = OnceLogger(logger)


@dataclass(frozen=True)
class CachePolicy:
    """Freshness and size limits of one cache kind.

    Attributes:
        ttl: Seconds an entry stays fresh.
        max_items: Records kept in an entry.
        max_bytes: Byte budget of the serialized entry.
        degraded_items: Records kept when stripping fields was not enough.
        strip_fields: Serialized field names dropped from oversized entries.
    """

    ttl: float
    max_items: Optional[int] = None
    max_bytes: Optional[int] = None
    degraded_items: Optional[int] = None
    strip_fields: Sequence[str] = ()


class EntityCache(Generic[T]):
    """Cache of one entity list in the local key/value store.

    Args:
        kind: Entity kind, used in the storage key and in log events.
        model: Model class of the cached records.
        store: Key/value store holding the entry.
        fetch: Loads the full list from the remote data source.
        clock: Time source for expiry.
        policy: Freshness and size limits.
        defaults: Hard-coded records used when the remote has none.
    """

    def __init__(
        self,
        kind: str,
        model: Type[T],
        store: KeyValueStore,
        fetch: Callable[[], Awaitable[List[T]]],
        clock: Clock,
        policy: CachePolicy,
        defaults: Optional[Callable[[], List[T]]] = None,
    ):
        self.kind = kind
        self.key = f"crm_{kind}_cache"
        self.model = model
        self.store = store
        self.fetch = fetch
        self.clock = clock
        self.policy = policy
        self.defaults = defaults
        self._pending: Set[asyncio.Task] = set()
        self._generation = 0
        self._listeners: List[Callable[[List[T]], None]] = []

    def on_refresh(self, listener: Callable[[List[T]], None]) -> None:
        """Call ``listener`` with every list freshly loaded from the remote."""
        self._listeners.append(listener)

    def _notify(self, records: List[T]) -> None:
        for listener in self._listeners:
            listener(records)

    # reading

    async def read(self) -> Optional[List[T]]:
        """Return the cached records, or ``None`` when missing or expired.

        Unreadable entries are logged, removed and reported as missing.
        """
        try:
            raw = await self.store.get(self.key)
        except StorageError as exc:
            cache_warnings.warning(self.kind, "cache_read_failed", kind=self.kind, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            envelope = json.loads(raw)
            saved_at = float(envelope["savedAt"])
            records = [self.model.model_validate(item) for item in envelope["items"]]
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.error("cache_entry_corrupt", kind=self.kind, error=str(exc))
            await self.invalidate()
            return None
        if self.clock.now() - saved_at > self.policy.ttl:
            await self.invalidate()
            return None
        return records

    async def get_list(self) -> List[T]:
        """Return the entity list, serving a fresh entry without waiting.

        A fresh entry triggers a background revalidation. Otherwise the
        remote is queried, falling back to the defaults of configuration
        kinds and finally to an empty list. Never raises for remote errors
        or for remote records that fail validation.
        """
        cached = await self.read()
        if cached is not None:
            self._schedule(self.revalidate())
            return cached
        return await first_hit([self._from_remote, self._from_defaults], [])

    async def _from_remote(self) -> Optional[List[T]]:
        generation = self._generation
        try:
            records = await self.fetch()
        except (RemoteError, ValidationError) as exc:
            logger.error("remote_fetch_failed", kind=self.kind, error=str(exc))
            return None
        if not records and self.defaults is not None:
            return None
        if generation == self._generation:
            await self.write(records)
        self._notify(records)
        return records

    async def _from_defaults(self) -> Optional[List[T]]:
        if self.defaults is None:
            return None
        records = self.defaults()
        await self.write(records)
        return records

    async def revalidate(self) -> None:
        """Refresh the entry from the remote; failures are only logged."""
        generation = self._generation
        try:
            records = await self.fetch()
        except Exception as exc:
            logger.error("cache_revalidate_failed", kind=self.kind, error=str(exc))
            return
        if not records and self.defaults is not None:
            return
        if generation != self._generation:
            # invalidated by a local write while fetching
            return
        await self.write(records)
        self._notify(records)

    def _schedule(self, coro: Awaitable[None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for scheduled background revalidations to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # writing

    def _encode(self, items: List[Dict[str, Any]]) -> str:
        return json.dumps(
            {"savedAt": self.clock.now(), "items": items},
            ensure_ascii=False,
            separators=(",", ":"),
        )

    def _fits(self, payload: str) -> bool:
        budget = self.policy.max_bytes
        return budget is None or len(payload.encode("utf-8")) <= budget

    def _strip(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        fields = set(self.policy.strip_fields)
        return [{k: v for k, v in item.items() if k not in fields} for item in items]

    def _degraded(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        limit = self.policy.degraded_items
        return self._strip(items[:limit] if limit is not None else items)

    def _fit(self, items: List[Dict[str, Any]]) -> Optional[str]:
        """Return the largest representation within budget, if any."""
        if self.policy.max_items is not None:
            items = items[: self.policy.max_items]
        candidates = [
            lambda: items,
            lambda: self._strip(items),
            lambda: self._degraded(items),
        ]
        for candidate in candidates:
            payload = self._encode(candidate())
            if self._fits(payload):
                return payload
        return None

    async def write(self, records: List[T]) -> bool:
        """Persist ``records``, degrading oversized entries.

        Returns:
            bool: Whether an entry was written.
        """
        items = [record.model_dump(mode="json", by_alias=True) for record in records]
        payload = self._fit(items)
        if payload is None:
            cache_warnings.warning(
                self.kind,
                "cache_too_large_skipping_write",
                kind=self.kind,
                records=len(items),
            )
            return False
        try:
            await self.store.set(self.key, payload)
            return True
        except StorageQuotaError:
            cache_warnings.warning(
                self.kind, "cache_quota_exceeded_retrying_lightweight", kind=self.kind
            )
        except StorageError as exc:
            cache_warnings.warning(self.kind, "cache_write_failed", kind=self.kind, error=str(exc))
            return False
        try:
            await self.store.delete(self.key)
            payload = self._encode(self._degraded(items))
            if not self._fits(payload):
                return False
            await self.store.set(self.key, payload)
            return True
        except StorageError:
            return False

    async def invalidate(self) -> None:
        """Drop the entry so the next read goes to the remote."""
        self._generation += 1
        try:
            await self.store.delete(self.key)
        except StorageError as exc:
            cache_warnings.warning(self.kind, "cache_invalidate_failed", kind=self.kind, error=str(exc))


class LookupIndex(Generic[T]):
    """Short-lived id → record map over a cached list.

    The index is rebuilt from ``load`` whenever it is missing or older than
    ``ttl`` seconds, so detail views can resolve one record without
    refetching the list each time.
    """

    def __init__(self, load: Callable[[], Awaitable[List[T]]], clock: Clock, ttl: float):
        self._load = load
        self._clock = clock
        self.ttl = ttl
        self._index: Optional[Dict[str, T]] = None
        self._built_at = 0.0

    def rebuild(self, records: Iterable[T]) -> None:
        self._index = {record.id: record for record in records}
        self._built_at = self._clock.now()

    def is_fresh(self) -> bool:
        return self._index is not None and self._clock.now() - self._built_at < self.ttl

    def clear(self) -> None:
        self._index = None

    async def get(self, record_id: str) -> Optional[T]:
        if not self.is_fresh():
            self.rebuild(await self._load())
        return self._index.get(record_id) if self._index is not None else None
