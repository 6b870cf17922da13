"""
Cache Service

Namespaced key/value cache used by the element stores, the transmitter
registry and the weather enricher. Two backends are available:

    MemoryCacheBackend: process-local dict with a byte capacity
    RedisCacheBackend: shared Redis instance

Entries are stored as JSON together with the time their payload was fetched.
Freshness is decided here rather than by backend expiry so that stale entries
remain readable for fallback after a failed refresh.

Keys written through the service are recorded per namespace, which lets a
namespace be evicted by enumerating its known keys.
"""

import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

import redis
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ELEMENTS_NAMESPACE = "elements"
BULK_NAMESPACE = "bulk"
TRANSMITTERS_NAMESPACE = "transmitters"
WEATHER_NAMESPACE = "weather"

DEFAULT_NAMESPACES = (
    ELEMENTS_NAMESPACE,
    BULK_NAMESPACE,
    TRANSMITTERS_NAMESPACE,
    WEATHER_NAMESPACE,
)


class CacheWriteError(RuntimeError):
    """Raised when a cache backend refuses a write."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    key: str
    fetched_at: datetime
    payload: Any

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()

    def is_fresh(self, ttl: float, now: datetime) -> bool:
        return self.age_seconds(now) <= ttl


class MemoryCacheBackend:
    """In-process backend with a fixed byte capacity."""

    def __init__(self, max_bytes: int = 5_000_000):
        self.max_bytes = max_bytes
        self._store: Dict[str, str] = {}
        self._used_bytes = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        with self._lock:
            previous = self._store.get(key)
            freed = len(previous.encode("utf-8")) if previous is not None else 0
            if self._used_bytes - freed + size > self.max_bytes:
                raise CacheWriteError(
                    f"Memory cache full: writing {size} bytes to {key} would exceed "
                    f"{self.max_bytes} bytes"
                )
            self._store[key] = value
            self._used_bytes += size - freed

    def delete(self, key: str) -> None:
        with self._lock:
            previous = self._store.pop(key, None)
            if previous is not None:
                self._used_bytes -= len(previous.encode("utf-8"))

    @property
    def used_bytes(self) -> int:
        return self._used_bytes

    def ping(self) -> bool:
        return True


class RedisCacheBackend:
    """Redis backend. Read failures degrade to a miss; write failures raise."""

    def __init__(self, client: "redis.Redis"):
        self.client = client

    def get(self, key: str) -> Optional[str]:
        try:
            value = self.client.get(key)
        except redis.exceptions.RedisError as e:
            logger.warning(f"Redis read failed for {key}: {e}")
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(key, value)
        except redis.exceptions.RedisError as e:
            raise CacheWriteError(f"Redis write failed for {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.exceptions.RedisError as e:
            logger.warning(f"Redis delete failed for {key}: {e}")

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.exceptions.RedisError:
            return False


class CacheService:
    """
    Namespaced cache over a backend.

    Args:
        backend: MemoryCacheBackend or RedisCacheBackend
        clock: Callable returning the current UTC datetime
        namespaces: Namespaces to register up front
    """

    def __init__(
        self,
        backend,
        clock: Optional[Callable[[], datetime]] = None,
        namespaces=DEFAULT_NAMESPACES,
    ):
        self.backend = backend
        self._clock = clock or utc_now
        self._namespaces: Dict[str, Set[str]] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

        for namespace in namespaces:
            self.register_namespace(namespace)

    def register_namespace(self, name: str) -> None:
        with self._registry_lock:
            self._namespaces.setdefault(name, set())

    def _key(self, namespace: str, suffix: str) -> str:
        if namespace not in self._namespaces:
            raise KeyError(f"Unregistered cache namespace: {namespace}")
        return f"{namespace}:{suffix}"

    def _remember(self, namespace: str, key: str) -> None:
        with self._registry_lock:
            self._namespaces[namespace].add(key)

    def get(self, namespace: str, suffix: str, ttl: Optional[float] = None) -> Optional[CacheEntry]:
        """
        Read an entry.

        Args:
            namespace: Registered namespace
            suffix: Key within the namespace
            ttl: Maximum age in seconds; None ignores age

        Returns:
            The entry, or None when absent, unreadable or older than ttl
        """
        key = self._key(namespace, suffix)
        raw = self.backend.get(key)
        if raw is None:
            return None

        try:
            document = json.loads(raw)
            entry = CacheEntry(
                key=key,
                fetched_at=document["fetched_at"],
                payload=document["payload"],
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

        self._remember(namespace, key)

        if ttl is not None and not entry.is_fresh(ttl, self._clock()):
            return None
        return entry

    def put(
        self,
        namespace: str,
        suffix: str,
        payload: Any,
        fetched_at: Optional[datetime] = None,
    ) -> CacheEntry:
        """
        Write an entry, replacing any previous value.

        Raises:
            CacheWriteError: If the backend rejects the write
        """
        key = self._key(namespace, suffix)
        fetched_at = fetched_at or self._clock()
        raw = json.dumps({"fetched_at": fetched_at.isoformat(), "payload": payload})
        self.backend.set(key, raw)
        self._remember(namespace, key)
        return CacheEntry(key=key, fetched_at=fetched_at, payload=payload)

    def delete(self, namespace: str, suffix: str) -> None:
        key = self._key(namespace, suffix)
        self.backend.delete(key)
        with self._registry_lock:
            self._namespaces[namespace].discard(key)

    def keys(self, namespace: str) -> List[str]:
        self._key(namespace, "")
        with self._registry_lock:
            return sorted(self._namespaces[namespace])

    def evict_namespace(self, namespace: str) -> int:
        """Delete every known key of a namespace; returns the number evicted."""
        keys = self.keys(namespace)
        for key in keys:
            self.backend.delete(key)
        with self._registry_lock:
            self._namespaces[namespace].clear()
        if keys:
            logger.info(f"Evicted {len(keys)} entries from cache namespace '{namespace}'")
        return len(keys)

    @contextmanager
    def lock(self, namespace: str, suffix: str) -> Iterator[None]:
        """Serialize read-modify-write sequences on one key."""
        key = self._key(namespace, suffix)
        with self._registry_lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())
        with key_lock:
            yield


def create_cache_service(config, clock: Optional[Callable[[], datetime]] = None) -> CacheService:
    """
    Build a cache service for a configuration.

    Uses Redis when ``config.REDIS_URL`` is set and reachable, otherwise the
    in-memory backend.
    """
    if config.REDIS_URL:
        try:
            client = redis.from_url(config.REDIS_URL, decode_responses=True)
            client.ping()
            logger.info("Connected to Redis cache")
            return CacheService(RedisCacheBackend(client), clock=clock)
        except (redis.exceptions.RedisError, ValueError) as e:
            logger.warning(f"Redis unavailable: {e}. Using in-memory cache.")

    return CacheService(MemoryCacheBackend(config.MEMORY_CACHE_MAX_BYTES), clock=clock)
