"""
TTL caching with an in-memory or Redis-backed store
"""
import asyncio
import json
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

import redis
import structlog
from pydantic import TypeAdapter

from quizforge.config import Settings
from quizforge.models import CacheEntry, CacheStats, ModelResponse, ParsedPDF
from quizforge.services.monitoring import (
    CACHE_ENTRIES, CACHE_EVICTIONS, CACHE_REQUESTS, CACHE_WRITE_FAILURES
)

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_TTL = 30 * 60
DEFAULT_MAX_ENTRIES = 100
DEFAULT_SWEEP_INTERVAL = 5 * 60

MEMORY = "memory"
PERSISTENT = "persistent"

# Raised while decoding a stored record that is not what this build wrote
CORRUPT_RECORD_ERRORS = (ValueError, KeyError, TypeError)
# Raised while encoding or writing a record to Redis
WRITE_ERRORS = (redis.RedisError, ValueError, TypeError)


class MemoryStore:
    """Insertion-ordered in-process store. Overwriting a key keeps its position."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def read(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def write(self, key: str, entry: CacheEntry, ttl: float) -> None:
        self._entries[key] = entry

    def remove(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def contains(self, key: str) -> bool:
        return key in self._entries

    def oldest_key(self) -> Optional[str]:
        return next(iter(self._entries), None)

    def expired_keys(self, now: float) -> List[str]:
        return [k for k, e in self._entries.items() if e.expires_at < now]

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)


class RedisStore:
    """Stores JSON records under "<namespace>:<key>" in a shared Redis database."""

    def __init__(self, client, namespace: str, payload_type: Any = Any):
        self.client = client
        self.prefix = f"{namespace}:"
        self._adapter = TypeAdapter(payload_type)

    def _name(self, key: str) -> str:
        return self.prefix + key

    def encode(self, entry: CacheEntry) -> str:
        return json.dumps({
            "data": self._adapter.dump_python(entry.data, mode="json"),
            "timestamp": entry.timestamp,
            "expiresAt": entry.expires_at,
            "key": entry.key,
        })

    def decode(self, raw: str) -> CacheEntry:
        record = json.loads(raw)
        return CacheEntry(
            data=self._adapter.validate_python(record["data"]),
            key=record["key"],
            timestamp=float(record["timestamp"]),
            expires_at=float(record["expiresAt"]),
        )

    def read(self, key: str) -> Optional[CacheEntry]:
        raw = self.client.get(self._name(key))
        if raw is None:
            return None
        return self.decode(raw)

    def write(self, key: str, entry: CacheEntry, ttl: float) -> None:
        payload = self.encode(entry)
        # Redis-side expiry only reclaims space, the record's expiresAt is authoritative
        self.client.set(self._name(key), payload, px=max(1, int(ttl * 1000)) + 1000)

    def remove(self, key: str) -> bool:
        return bool(self.client.delete(self._name(key)))

    def contains(self, key: str) -> bool:
        return bool(self.client.exists(self._name(key)))

    def keys(self) -> List[str]:
        return [name[len(self.prefix):] for name in self.client.scan_iter(match=self.prefix + "*")]

    def raw_items(self) -> Iterator[Tuple[str, Optional[str]]]:
        for key in self.keys():
            yield key, self.client.get(self._name(key))

    def oldest_key(self) -> Optional[str]:
        oldest, oldest_ts = None, None
        for key, raw in self.raw_items():
            if raw is None:
                continue
            try:
                ts = float(json.loads(raw)["timestamp"])
            except CORRUPT_RECORD_ERRORS:
                return key
            if oldest_ts is None or ts < oldest_ts:
                oldest, oldest_ts = key, ts
        return oldest

    def clear(self) -> None:
        names = [self._name(k) for k in self.keys()]
        if names:
            self.client.delete(*names)

    def size(self) -> int:
        return len(self.keys())


class Cache(Generic[T]):
    """Key-value cache with per-entry expiry, bounded size and a periodic sweep.

    ``backend="persistent"`` keeps entries in Redis under the cache's own
    namespace. When Redis cannot be reached at construction the cache runs in
    memory instead. Failed writes keep that entry in memory for the life of the
    cache; failed or undecodable reads count as misses.
    """

    def __init__(
        self,
        name: str,
        ttl: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        backend: str = MEMORY,
        payload_type: Any = Any,
        redis_url: Optional[str] = None,
        client=None,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        if backend not in (MEMORY, PERSISTENT):
            raise ValueError(f"Unknown cache backend: {backend}")

        self.name = name
        self.ttl = ttl
        self.max_entries = max_entries
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

        # Entries whose persistent write failed live here from then on
        self._fallback = MemoryStore()
        self._degraded = set()

        self._store = None
        if backend == PERSISTENT:
            self._store = self._connect(client, redis_url, payload_type)
        if self._store is None:
            self._store = MemoryStore()
        self.backend = PERSISTENT if isinstance(self._store, RedisStore) else MEMORY

    def _connect(self, client, redis_url: Optional[str], payload_type: Any) -> Optional[RedisStore]:
        try:
            if client is None:
                client = redis.from_url(redis_url or "redis://localhost:6379/0", decode_responses=True)
            # Test connection
            client.ping()
            logger.info("cache_backend_connected", cache=self.name, backend=PERSISTENT)
            return RedisStore(client, self.name, payload_type)
        except (redis.RedisError, OSError, ValueError) as e:
            logger.warning("cache_backend_unavailable", cache=self.name, fallback=MEMORY, error=str(e))
            return None

    @property
    def persistent(self) -> bool:
        return self.backend == PERSISTENT

    def ping(self) -> bool:
        if not self.persistent:
            return True
        try:
            return bool(self._store.client.ping())
        except redis.RedisError as e:
            logger.warning("cache_ping_failed", cache=self.name, error=str(e))
            return False

    # -------------------- reads --------------------

    def _read(self, key: str) -> Optional[CacheEntry]:
        if key in self._degraded:
            return self._fallback.read(key)
        try:
            return self._store.read(key)
        except redis.RedisError as e:
            logger.warning("cache_read_failed", cache=self.name, key=key, error=str(e))
            return None
        except CORRUPT_RECORD_ERRORS as e:
            logger.warning("cache_entry_corrupt", cache=self.name, key=key, error=str(e))
            CACHE_EVICTIONS.labels(cache=self.name, reason="corrupt").inc()
            self._remove(key)
            return None

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._read(key)
            if entry is not None and entry.is_expired(self._clock()):
                CACHE_EVICTIONS.labels(cache=self.name, reason="expired").inc()
                self._remove(key)
                entry = None
        CACHE_REQUESTS.labels(cache=self.name, result="miss" if entry is None else "hit").inc()
        return entry

    def get(self, key: str) -> Optional[T]:
        """Get a live value, or None when absent or expired"""
        entry = self._lookup(key)
        return entry.data if entry is not None else None

    # -------------------- writes --------------------

    def _make_room(self, store, key: str) -> None:
        if store.contains(key) or store.size() < self.max_entries:
            return
        oldest = store.oldest_key()
        if oldest is not None:
            store.remove(oldest)
            CACHE_EVICTIONS.labels(cache=self.name, reason="capacity").inc()
            logger.debug("cache_entry_evicted", cache=self.name, key=oldest)

    def _write(self, store, key: str, entry: CacheEntry, ttl: float) -> None:
        self._make_room(store, key)
        store.write(key, entry, ttl)

    def set(self, key: str, data: T, ttl: Optional[float] = None) -> None:
        """Store data under key for ttl seconds (the cache default when None)"""
        ttl = self.ttl if ttl is None else max(ttl, 0)
        now = self._clock()
        entry = CacheEntry(data=data, key=key, timestamp=now, expires_at=now + ttl)

        with self._lock:
            if not self.persistent:
                self._write(self._store, key, entry, ttl)
                return
            if key in self._degraded:
                self._write(self._fallback, key, entry, ttl)
                return
            try:
                self._write(self._store, key, entry, ttl)
            except WRITE_ERRORS as e:
                logger.warning("cache_write_failed", cache=self.name, key=key, fallback=MEMORY, error=str(e))
                CACHE_WRITE_FAILURES.labels(cache=self.name).inc()
                self._degraded.add(key)
                self._write(self._fallback, key, entry, ttl)
                self._drop_persistent(key)

    def _drop_persistent(self, key: str) -> None:
        try:
            self._store.remove(key)
        except redis.RedisError as e:
            logger.warning("cache_delete_failed", cache=self.name, key=key, error=str(e))

    def _remove(self, key: str) -> None:
        # Degraded keys stay in memory until clear(), even once removed
        if key in self._degraded:
            self._fallback.remove(key)
            return
        self._drop_persistent(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._remove(key)

    def clear(self) -> None:
        """Remove every entry in this cache's namespace"""
        with self._lock:
            try:
                self._store.clear()
            except redis.RedisError as e:
                logger.warning("cache_clear_failed", cache=self.name, error=str(e))
            self._fallback.clear()
            self._degraded.clear()
        logger.info("cache_cleared", cache=self.name)

    async def get_or_set(self, key: str, producer: Callable[[], Awaitable[T]], ttl: Optional[float] = None) -> T:
        """Return the cached value, or await producer() and cache its result.

        Concurrent misses on the same key each run the producer. Producer
        exceptions propagate and nothing is stored.
        """
        entry = await self._offload(self._lookup, key)
        if entry is not None:
            return entry.data

        data = await producer()
        await self._offload(self.set, key, data, ttl)
        return data

    async def _offload(self, func, *args):
        # redis-py blocks, keep its round trips off the event loop
        if self.persistent:
            return await asyncio.to_thread(func, *args)
        return func(*args)

    # -------------------- maintenance --------------------

    def get_stats(self) -> CacheStats:
        with self._lock:
            try:
                size = self._store.size()
            except redis.RedisError as e:
                logger.warning("cache_stats_failed", cache=self.name, error=str(e))
                size = 0
            degraded = self._fallback.size()
        CACHE_ENTRIES.labels(cache=self.name).set(size + degraded)
        return CacheStats(size=size + degraded, backend=self.backend, degraded_entries=degraded)

    def _sweep_persistent(self, now: float) -> int:
        removed = 0
        for key, raw in self._store.raw_items():
            if raw is None:
                continue
            try:
                expired = self._store.decode(raw).expires_at < now
                reason = "expired"
            except CORRUPT_RECORD_ERRORS:
                expired, reason = True, "corrupt"
            if expired:
                self._store.remove(key)
                CACHE_EVICTIONS.labels(cache=self.name, reason=reason).inc()
                removed += 1
        return removed

    def sweep(self) -> int:
        """Delete every expired entry, returning how many were removed"""
        now = self._clock()
        removed = 0
        with self._lock:
            for key in self._fallback.expired_keys(now):
                self._fallback.remove(key)
                CACHE_EVICTIONS.labels(cache=self.name, reason="expired").inc()
                removed += 1
            if self.persistent:
                try:
                    removed += self._sweep_persistent(now)
                except redis.RedisError as e:
                    logger.warning("cache_sweep_failed", cache=self.name, error=str(e))
            else:
                expired = self._store.expired_keys(now)
                for key in expired:
                    self._store.remove(key)
                CACHE_EVICTIONS.labels(cache=self.name, reason="expired").inc(len(expired))
                removed += len(expired)
        if removed:
            logger.info("cache_swept", cache=self.name, removed=removed)
        return removed

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("cache_sweep_crashed", cache=self.name)

    def start(self) -> "Cache[T]":
        """Start the periodic sweep thread"""
        if self._sweeper is not None and self._sweeper.is_alive():
            return self
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name=f"cache-sweep-{self.name}", daemon=True)
        self._sweeper.start()
        return self

    def close(self) -> None:
        """Stop the periodic sweep thread"""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.close()


# -------------------- key helpers --------------------

BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def generate_text_hash(text: str) -> str:
    """Cheap 32-bit rolling hash of text, in base 36. Not collision resistant."""
    data = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        h = (h * 31 + int.from_bytes(data[i:i + 2], "little")) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def create_quiz_key(text_hash: str, options) -> str:
    if hasattr(options, "model_dump"):
        options = options.model_dump(mode="json")
    return f"quiz_{text_hash}_{json.dumps(options, sort_keys=True, separators=(',', ':'))}"


def create_pdf_key(file_name: str, file_size: int) -> str:
    return f"pdf_{file_name}_{file_size}"


# -------------------- named caches --------------------

class CacheRegistry:
    """The per-category caches the pipeline works with"""

    def __init__(self, quiz: Cache[ModelResponse], pdf: Cache[ParsedPDF], api: Cache[Any]):
        self.quiz = quiz
        self.pdf = pdf
        self.api = api

    def all(self) -> List[Cache]:
        return [self.quiz, self.pdf, self.api]

    def start(self) -> "CacheRegistry":
        for cache in self.all():
            cache.start()
        return self

    def close(self) -> None:
        for cache in self.all():
            cache.close()

    def clear_quiz_cache(self) -> None:
        self.quiz.clear()

    def cache_size_info(self) -> str:
        quiz = self.quiz.get_stats().size
        pdf = self.pdf.get_stats().size
        api = self.api.get_stats().size
        return f"Cache: {quiz + pdf + api} entries (Quiz: {quiz}, PDF: {pdf}, API: {api})"


def build_cache_registry(settings: Optional[Settings] = None, client=None,
                         clock: Callable[[], float] = time.time) -> CacheRegistry:
    """Construct the quiz, pdf and api caches; the first two share one Redis database"""
    settings = settings or Settings()
    if settings.cache_backend == PERSISTENT and client is None:
        try:
            client = redis.from_url(settings.redis_url, decode_responses=True)
        except ValueError as e:
            logger.warning("cache_backend_unavailable", fallback=MEMORY, error=str(e))

    common = dict(
        redis_url=settings.redis_url,
        max_entries=settings.cache_max_entries,
        sweep_interval=settings.cache_sweep_interval,
        clock=clock,
    )
    quiz = Cache(
        "quiz_cache", ttl=settings.quiz_cache_ttl, backend=settings.cache_backend,
        payload_type=ModelResponse, client=client, **common
    )
    pdf = Cache(
        "pdf_cache", ttl=settings.pdf_cache_ttl, backend=settings.cache_backend,
        payload_type=ParsedPDF, client=client, **common
    )
    api = Cache("api_cache", ttl=settings.api_cache_ttl, backend=MEMORY, **common)
    return CacheRegistry(quiz=quiz, pdf=pdf, api=api)
