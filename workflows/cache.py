"""In-process TTL cache with pluggable eviction.

Keys are built with ``CacheKey.build`` which freezes nested structures, so the
same logical request always maps to the same key regardless of dict ordering.
``CacheBackend`` is the seam for swapping in a distributed cache.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Hashable,
    Iterable,
    Optional,
    Protocol,
    Set,
    Tuple,
    TypeVar,
)

logger = logging.getLogger(__name__)

V = TypeVar("V")

_MISSING = object()


def _freeze(value: Any) -> Hashable:
    if isinstance(value, dict):
        return tuple(sorted((str(k), _freeze(v)) for k, v in value.items()))
    if isinstance(value, (set, frozenset)):
        return tuple(sorted((_freeze(v) for v in value), key=repr))
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, float):
        return round(value, 6)
    if hasattr(value, "model_dump"):
        return _freeze(value.model_dump())
    if isinstance(value, str):
        return value
    return value if isinstance(value, Hashable) else repr(value)


@dataclass(frozen=True)
class CacheKey:
    """Structurally hashed composite key."""

    namespace: str
    parts: Tuple[Tuple[str, Hashable], ...]

    @classmethod
    def build(cls, namespace: str, **parts: Any) -> "CacheKey":
        return cls(namespace, tuple(sorted((name, _freeze(value)) for name, value in parts.items())))


class EvictionPolicy(Protocol):
    def touch(self, key: Hashable) -> None: ...

    def remove(self, key: Hashable) -> None: ...

    def victim(self) -> Optional[Hashable]: ...


class LRUEviction:
    """Least-recently-used ordering."""

    def __init__(self) -> None:
        self._order: "OrderedDict[Hashable, None]" = OrderedDict()

    def touch(self, key: Hashable) -> None:
        self._order[key] = None
        self._order.move_to_end(key)

    def remove(self, key: Hashable) -> None:
        self._order.pop(key, None)

    def victim(self) -> Optional[Hashable]:
        return next(iter(self._order), None)


class FIFOEviction(LRUEviction):
    """Insertion order; reads do not refresh an entry."""

    def touch(self, key: Hashable) -> None:
        if key not in self._order:
            self._order[key] = None


class CacheBackend(Protocol[V]):
    def get(self, key: Hashable) -> Optional[V]: ...

    def set(self, key: Hashable, value: V, ttl: Optional[float] = None, tags: Iterable[str] = ()) -> None: ...

    def delete(self, key: Hashable) -> bool: ...

    def invalidate_by_tag(self, tag: str) -> int: ...

    def clear(self) -> None: ...


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float
    tags: Tuple[str, ...]


class TTLCache(Generic[V]):
    """Size-bounded cache where every entry also expires after a TTL."""

    def __init__(
        self,
        *,
        max_size: int = 1000,
        ttl_seconds: float = 1800.0,
        eviction: Optional[EvictionPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        self.max_size = max(1, max_size)
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._eviction = eviction or LRUEviction()
        self._clock = clock
        self._entries: Dict[Hashable, _Entry[V]] = {}
        self._tags: Dict[str, Set[Hashable]] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self._lookup(key, count=False) is not _MISSING

    def _drop(self, key: Hashable) -> None:
        entry = self._entries.pop(key, None)
        self._eviction.remove(key)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tags[tag]

    def _lookup(self, key: Hashable, count: bool = True) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at <= self._clock():
                self._drop(key)
                entry = None
            if entry is None:
                if count:
                    self._misses += 1
                return _MISSING
            if count:
                self._hits += 1
                self._eviction.touch(key)
            return entry.value

    def get(self, key: Hashable, default: Optional[V] = None) -> Optional[V]:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: Hashable, value: V, ttl: Optional[float] = None, tags: Iterable[str] = ()) -> None:
        ttl = self.ttl_seconds if ttl is None else ttl
        with self._lock:
            if key in self._entries:
                self._drop(key)
            while len(self._entries) >= self.max_size:
                victim = self._eviction.victim()
                if victim is None:
                    break
                self._drop(victim)
            entry = _Entry(value=value, expires_at=self._clock() + ttl, tags=tuple(tags))
            self._entries[key] = entry
            self._eviction.touch(key)
            for tag in entry.tags:
                self._tags.setdefault(tag, set()).add(key)

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            existed = key in self._entries
            self._drop(key)
            return existed

    def invalidate_by_tag(self, tag: str) -> int:
        with self._lock:
            keys = list(self._tags.get(tag, ()))
            for key in keys:
                self._drop(key)
            if keys:
                logger.debug(f"{self.name}: invalidated {len(keys)} entries tagged {tag!r}")
            return len(keys)

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                self._drop(key)
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            for key in list(self._entries):
                self._drop(key)
            self._hits = 0
            self._misses = 0

    def get_or_set(self, key: Hashable, factory: Callable[[], V], ttl: Optional[float] = None, tags: Iterable[str] = ()) -> V:
        value = self._lookup(key)
        if value is not _MISSING:
            return value
        value = factory()
        self.set(key, value, ttl=ttl, tags=tags)
        return value

    async def aget_or_set(
        self,
        key: Hashable,
        factory: Callable[[], Awaitable[V]],
        ttl: Optional[float] = None,
        tags: Iterable[str] = (),
    ) -> V:
        value = self._lookup(key)
        if value is not _MISSING:
            return value
        value = await factory()
        self.set(key, value, ttl=ttl, tags=tags)
        return value

    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "size": len(self._entries),
            "max_size": self.max_size,
            "hit_ratio": (self._hits / total) if total else 0.0,
        }


__all__ = [
    "CacheBackend",
    "CacheKey",
    "EvictionPolicy",
    "FIFOEviction",
    "LRUEviction",
    "TTLCache",
]
