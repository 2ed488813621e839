"""Bounded least-recently-used cache of embedding vectors."""

import hashlib
import threading
from collections import OrderedDict
from dataclasses import dataclass


def normalize_text(text: str) -> str:
    """Trim and collapse runs of whitespace to single spaces."""
    return " ".join(text.split())


def fingerprint(text: str) -> str:
    """Cache key for ``text``: sha256 of its normalized form."""
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache counters."""

    hits: int
    misses: int
    evictions: int
    size: int
    capacity: int


@dataclass(frozen=True)
class CacheEntry:
    """A cached vector and the recency marker of its last use."""

    vector: list[float]
    last_used: int


class EmbeddingCache:
    """In-memory LRU cache mapping text fingerprints to embedding vectors.

    Every operation runs under one lock, so the cache can be shared between
    concurrent ingestion and query tasks (and threads). The lock only guards
    dictionary work and is never held across a provider call. Contents are
    not persisted; a restart starts empty.
    """

    def __init__(self, capacity: int = 4096) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._clock = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def _tick(self) -> int:
        self._clock += 1
        return self._clock

    def get(self, key: str) -> list[float] | None:
        """Return the vector for ``key`` and mark it most recently used."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            self._entries[key] = CacheEntry(entry.vector, self._tick())
            self._entries.move_to_end(key)
            self._hits += 1
            return list(entry.vector)

    def put(self, key: str, vector: list[float]) -> None:
        """Insert or refresh ``key``, evicting the least recently used entry if full."""
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self._capacity:
                self._entries.popitem(last=False)
                self._evictions += 1
            self._entries[key] = CacheEntry(list(vector), self._tick())

    def entry(self, key: str) -> CacheEntry | None:
        """Peek at an entry without counting it as a use."""
        with self._lock:
            return self._entries.get(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._entries),
                capacity=self._capacity,
            )

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
