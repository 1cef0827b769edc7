"""Cache of built proxy types.

Entries are keyed by type name, then by schema ``$id``. A hit refreshes the
entry's access time. A miss first sweeps its type bucket, dropping entries
not accessed for ``ttl`` seconds (five minutes by default), then builds and
inserts the new type.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from cloudclient.proxy import ProxyType

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass(slots=True)
class CacheEntry:
    """A cached proxy type and when it was last used."""

    type_name: str
    id: str
    proxy_type: ProxyType
    last_access: float


@dataclass(slots=True)
class _Bucket:
    lock: threading.Lock = field(default_factory=threading.Lock)
    entries: dict[str, CacheEntry] = field(default_factory=dict)


class TypeCache:
    """Maps ``(type name, id)`` to a built ``ProxyType``.

    Each type bucket has its own lock, held across lookup, sweep and build,
    so concurrent lookups of one key from several threads build once.

    Args:
        ttl: Seconds of inactivity after which a sweep evicts an entry
        clock: Monotonic time source, in seconds
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._buckets_lock = threading.Lock()

    def _bucket(self, type_name: str) -> _Bucket:
        with self._buckets_lock:
            bucket = self._buckets.get(type_name)
            if bucket is None:
                bucket = self._buckets[type_name] = _Bucket()
            return bucket

    def lookup(
        self,
        type_name: str,
        instance_id: str,
        build: Callable[[], ProxyType],
    ) -> ProxyType:
        """Return the cached type for the key, building it on a miss."""
        bucket = self._bucket(type_name)
        with bucket.lock:
            now = self._clock()
            entry = bucket.entries.get(instance_id)
            if entry is not None:
                entry.last_access = now
                logger.debug("Cache hit for %s %s", type_name, instance_id)
                return entry.proxy_type

            self._sweep(bucket, now)

            logger.debug("Cache miss for %s %s", type_name, instance_id)
            proxy_type = build()
            bucket.entries[instance_id] = CacheEntry(
                type_name=type_name,
                id=instance_id,
                proxy_type=proxy_type,
                last_access=now,
            )
            return proxy_type

    def _sweep(self, bucket: _Bucket, now: float) -> None:
        stale = [
            key for key, entry in bucket.entries.items()
            if now - entry.last_access >= self.ttl
        ]
        for key in stale:
            entry = bucket.entries.pop(key)
            logger.debug("Evicted %s %s", entry.type_name, key)

    def get(self, type_name: str, instance_id: str) -> ProxyType | None:
        """Peek at an entry without refreshing or sweeping."""
        bucket = self._buckets.get(type_name)
        if bucket is None:
            return None
        entry = bucket.entries.get(instance_id)
        return entry.proxy_type if entry is not None else None

    def clear(self) -> None:
        with self._buckets_lock:
            self._buckets.clear()

    def get_stats(self) -> dict[str, int]:
        """Number of type buckets and cached entries."""
        buckets = list(self._buckets.values())
        return {
            "types": len(buckets),
            "entries": sum(len(b.entries) for b in buckets),
        }

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        type_name, instance_id = key
        bucket = self._buckets.get(type_name)
        return bucket is not None and instance_id in bucket.entries

    def __len__(self) -> int:
        return self.get_stats()["entries"]


default_cache = TypeCache()
