"""
Analysis result caching.

Finished analyses are cached per (symbol, timeframe) for a short TTL. Two
backends are provided: an in-process cache with oldest-first eviction and a
Redis cache storing orjson-encoded results with SETEX. A cache failure is
never fatal; the Redis backend logs errors and reports a miss.

Example Usage:
    ```python
    from marketlens.data.cache import InMemoryAnalysisCache

    cache = InMemoryAnalysisCache(ttl_seconds=300, max_entries=256)
    await cache.set("RELIANCE.NS", "1M", result)
    cached = await cache.get("RELIANCE.NS", "1M")
    ```
"""

from abc import ABC, abstractmethod
import asyncio
from collections import OrderedDict
from collections.abc import Callable
import time
from typing import Any

import orjson
from redis.asyncio import Redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from marketlens.analysis.models import AnalysisResult
from marketlens.utils.logger import get_logger

logger = get_logger(__name__)


def make_cache_key(symbol: str, timeframe: str) -> str:
    """Cache key for an analysis, e.g. "analysis:RELIANCE.NS:1M"."""
    return f"analysis:{symbol.upper()}:{timeframe.upper()}"


class AnalysisCache(ABC):
    """Store of recent analysis results keyed by symbol and timeframe."""

    @abstractmethod
    async def get(self, symbol: str, timeframe: str) -> AnalysisResult | None:
        """Return a fresh cached result, or None."""

    @abstractmethod
    async def set(self, symbol: str, timeframe: str, result: AnalysisResult) -> None:
        """Store a result."""

    async def close(self) -> None:
        """Release backend resources."""


class NullAnalysisCache(AnalysisCache):
    """Cache that never stores anything."""

    async def get(self, symbol: str, timeframe: str) -> AnalysisResult | None:
        return None

    async def set(self, symbol: str, timeframe: str, result: AnalysisResult) -> None:
        return None


class InMemoryAnalysisCache(AnalysisCache):
    """
    In-process TTL cache with a bounded number of entries.

    When full, the entry stored longest ago is evicted. Expired entries are
    dropped on read.

    Attributes:
        ttl_seconds: Entry lifetime
        max_entries: Capacity
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize cache.

        Args:
            ttl_seconds: Entry lifetime in seconds
            max_entries: Maximum number of entries kept
            clock: Monotonic time source in seconds
        """
        if ttl_seconds <= 0 or max_entries <= 0:
            raise ValueError("ttl_seconds and max_entries must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, AnalysisResult]] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, symbol: str, timeframe: str) -> AnalysisResult | None:
        key = make_cache_key(symbol, timeframe)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("cache_miss", key=key)
                return None

            stored_at, result = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                logger.debug("cache_expired", key=key)
                return None

            logger.debug("cache_hit", key=key)
            return result

    async def set(self, symbol: str, timeframe: str, result: AnalysisResult) -> None:
        key = make_cache_key(symbol, timeframe)
        async with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock(), result)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("cache_evicted", key=evicted)
            logger.debug("cache_set", key=key, ttl=self.ttl_seconds)


class RedisClient:
    """
    Async Redis client wrapper with connection management.

    Attributes:
        host: Redis server host
        port: Redis server port
        password: Redis authentication password (optional)
        db: Redis database number
    """

    def __init__(
        self, host: str, port: int, password: str | None = None, db: int = 0
    ) -> None:
        self.host = host
        self.port = port
        self.password = password
        self.db = db
        self._client: Redis | None = None

    async def connect(self) -> None:
        """
        Establish connection to Redis server.

        Raises:
            ConnectionError: If connection fails
        """
        try:
            self._client = Redis(
                host=self.host,
                port=self.port,
                password=self.password,
                db=self.db,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
            await self._client.ping()
            logger.info("redis_connected", host=self.host, port=self.port, db=self.db)
        except (ConnectionError, TimeoutError) as e:
            logger.error(
                "redis_connection_failed", host=self.host, port=self.port, error=str(e)
            )
            raise

    async def disconnect(self) -> None:
        """Close Redis connection gracefully."""
        if self._client:
            await self._client.aclose()
            logger.info("redis_disconnected")
            self._client = None

    async def get(self, key: str) -> bytes | None:
        """
        Get raw value by key.

        Raises:
            RedisError: If not connected or the operation fails
        """
        if not self._client:
            raise RedisError("Redis client not connected")
        return await self._client.get(key)

    async def setex(self, key: str, ttl: int, value: bytes) -> None:
        """
        Set value with a TTL in seconds.

        Raises:
            RedisError: If not connected or the operation fails
        """
        if not self._client:
            raise RedisError("Redis client not connected")
        await self._client.setex(key, ttl, value)

    async def __aenter__(self) -> "RedisClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()


class RedisAnalysisCache(AnalysisCache):
    """
    Redis-backed analysis cache.

    Results are stored as orjson-encoded `AnalysisResult.to_dict()` payloads
    with SETEX, so Redis handles expiry. Redis and decoding errors are logged
    and treated as a miss (reads) or a skipped write.
    """

    def __init__(self, client: RedisClient, ttl_seconds: int = 300) -> None:
        """
        Initialize cache.

        Args:
            client: Connected Redis client
            ttl_seconds: Entry lifetime in seconds
        """
        self.client = client
        self.ttl_seconds = ttl_seconds

    async def get(self, symbol: str, timeframe: str) -> AnalysisResult | None:
        key = make_cache_key(symbol, timeframe)
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            logger.error("redis_get_error", key=key, error=str(e))
            return None

        if raw is None:
            logger.debug("cache_miss", key=key)
            return None

        try:
            result = AnalysisResult.from_dict(orjson.loads(raw))
        except (orjson.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning("invalid_cached_analysis", key=key, error=str(e))
            return None

        logger.debug("cache_hit", key=key)
        return result

    async def set(self, symbol: str, timeframe: str, result: AnalysisResult) -> None:
        key = make_cache_key(symbol, timeframe)
        try:
            await self.client.setex(key, self.ttl_seconds, orjson.dumps(result.to_dict()))
            logger.debug("cache_set", key=key, ttl=self.ttl_seconds)
        except RedisError as e:
            logger.error("redis_set_error", key=key, error=str(e))

    async def close(self) -> None:
        await self.client.disconnect()
