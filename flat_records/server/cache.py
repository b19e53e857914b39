"""In-process TTL cache and the read-through gate that fronts table reads."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(seconds=60)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _handle_expiry(
    expires_at: datetime, now: datetime, *, on_expire: Callable[[], None]
) -> bool:
    if now < expires_at:
        return False
    on_expire()
    return True


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value together with its lifetime."""

    key: str
    value: T
    created_at: datetime
    expires_at: datetime


class TTLCache:
    """Maps string keys to values that expire a fixed duration after insertion.

    Expiry is checked lazily on access. Every key also carries an
    invalidation generation which :meth:`delete` and :meth:`clear` advance;
    :meth:`set` can be made conditional on it so a value computed before an
    invalidation is never stored after it.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if ttl <= timedelta(0):
            msg = "ttl must be positive"
            raise ValueError(msg)
        self._ttl = ttl
        self._clock = clock or _utc_now
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._generations: defaultdict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def has(self, key: str) -> bool:
        return self.entry(key) is not None

    def get(self, key: str) -> Any:
        """Return the live value for ``key``; raises :class:`KeyError` on a miss."""

        entry = self.entry(key)
        if entry is None:
            raise KeyError(key)
        return entry.value

    def entry(self, key: str) -> CacheEntry[Any] | None:
        with self._lock:
            return self._live_entry(key, self._clock())

    def set(self, key: str, value: Any, *, generation: int | None = None) -> bool:
        """Insert or overwrite ``key``, restarting its TTL.

        When ``generation`` is given and ``key`` has been invalidated since
        that generation was read, nothing is stored and ``False`` is returned.
        """

        with self._lock:
            if generation is not None and generation != self._generations[key]:
                return False
            now = self._clock()
            self._entries[key] = CacheEntry(
                key=key, value=value, created_at=now, expires_at=now + self._ttl
            )
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._generations[key] += 1

    def clear(self) -> None:
        with self._lock:
            for key in set(self._entries) | set(self._generations):
                self._generations[key] += 1
            self._entries.clear()

    def generation(self, key: str) -> int:
        with self._lock:
            return self._generations[key]

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(
                1 for key in list(self._entries) if self._live_entry(key, now) is not None
            )

    def _live_entry(self, key: str, now: datetime) -> CacheEntry[Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if _handle_expiry(
            entry.expires_at, now, on_expire=lambda: self._entries.pop(key, None)
        ):
            return None
        return entry


class ReadThroughGate:
    """Serve a value from the cache, computing and storing it on a miss."""

    def __init__(self, cache: TTLCache) -> None:
        self._cache = cache
        self._key_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._key_locks_guard = threading.Lock()

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def fetch(self, key: str, producer: Callable[[], T]) -> T:
        """Return the cached value for ``key`` or the result of ``producer()``.

        ``producer`` runs at most once per call. Its result is stored only if
        ``key`` was not invalidated while it ran.
        """

        if (entry := self._cache.entry(key)) is not None:
            logger.debug("Cache hit for %s", key)
            return entry.value
        with self._lock_for_key(key):
            if (entry := self._cache.entry(key)) is not None:
                logger.debug("Cache hit for %s after waiting", key)
                return entry.value
            generation = self._cache.generation(key)
            value = producer()
            if self._cache.set(key, value, generation=generation):
                logger.debug("Cache populated for %s", key)
            else:
                logger.debug("Discarded result for %s invalidated during populate", key)
            return value

    def _lock_for_key(self, key: str) -> threading.Lock:
        with self._key_locks_guard:
            return self._key_locks[key]


__all__ = ["CacheEntry", "DEFAULT_TTL", "ReadThroughGate", "TTLCache"]
