"""
Analysis service.

Wires a candle provider, the analysis engine and a result cache into a
single async entry point returning a response envelope:

    {"success": true, "data": {...}, "cached": false, "timestamp": 1718000000000}
    {"success": false, "error": "No candle data available for XYZ.NS", ...}

Provider failures are reported in the envelope; the service never substitutes
a neutral analysis for missing data.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from redis.exceptions import RedisError

from marketlens.analysis.engine import MarketAnalysisEngine, create_engine_from_settings
from marketlens.analysis.models import AnalysisResult
from marketlens.config import Settings, get_settings
from marketlens.data.cache import (
    AnalysisCache,
    InMemoryAnalysisCache,
    NullAnalysisCache,
    RedisAnalysisCache,
    RedisClient,
)
from marketlens.data.provider import (
    CandleProvider,
    CandleProviderError,
    YahooChartProvider,
    normalize_symbol,
    resolve_timeframe,
)
from marketlens.utils.logger import add_context, get_logger

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


@dataclass(frozen=True)
class AnalysisResponse:
    """
    Result envelope of one analysis request.

    Attributes:
        success: Whether an analysis was produced
        data: The analysis, when successful
        cached: Whether the analysis came from the cache
        timestamp: Response time in epoch milliseconds
        error: Failure message, when unsuccessful
    """

    success: bool
    data: AnalysisResult | None = None
    cached: bool = False
    timestamp: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        payload: dict[str, Any] = {"success": self.success, "timestamp": self.timestamp}
        if self.success:
            payload["data"] = self.data.to_dict() if self.data else None
            payload["cached"] = self.cached
        else:
            payload["error"] = self.error
        return payload


class AnalysisService:
    """
    Fetch, analyse and cache.

    Example:
        ```python
        async with AnalysisService(YahooChartProvider(), MarketAnalysisEngine()) as service:
            response = await service.analyze("TCS", "1M")
            if response.success:
                print(response.data.recommendation.message)
        ```
    """

    def __init__(
        self,
        provider: CandleProvider,
        engine: MarketAnalysisEngine | None = None,
        cache: AnalysisCache | None = None,
        symbol_suffix: str = ".NS",
    ) -> None:
        """
        Initialize service.

        Args:
            provider: Candle source
            engine: Analysis engine, defaults to standard parameters
            cache: Result cache, defaults to no caching
            symbol_suffix: Exchange suffix used to build cache keys
        """
        self.provider = provider
        self.engine = engine if engine is not None else MarketAnalysisEngine()
        self.cache = cache if cache is not None else NullAnalysisCache()
        self.symbol_suffix = symbol_suffix

    async def analyze(self, symbol: str, timeframe: str = "1M") -> AnalysisResponse:
        """
        Analyse a symbol over a timeframe.

        Args:
            symbol: Instrument symbol, with or without exchange suffix
            timeframe: Timeframe code (1D, 5D, 1W, 1M, 1Y)

        Returns:
            AnalysisResponse; on failure `success` is False and `error` is set
        """
        try:
            spec = resolve_timeframe(timeframe)
            ticker = normalize_symbol(symbol, self.symbol_suffix)
        except ValueError as e:
            logger.warning(
                "invalid_analysis_request", symbol=symbol, timeframe=timeframe, error=str(e)
            )
            return AnalysisResponse(success=False, timestamp=_now_ms(), error=str(e))

        with add_context(symbol=ticker, timeframe=spec.code):
            cached = await self.cache.get(ticker, spec.code)
            if cached is not None:
                logger.info("analysis_cache_hit")
                return AnalysisResponse(
                    success=True, data=cached, cached=True, timestamp=_now_ms()
                )

            try:
                series = await self.provider.fetch(ticker, spec.code)
                result = self.engine.analyze(series)
            except (CandleProviderError, ValueError) as e:
                logger.error("analysis_failed", error=str(e), error_type=type(e).__name__)
                return AnalysisResponse(success=False, timestamp=_now_ms(), error=str(e))

            await self.cache.set(ticker, spec.code, result)
            logger.info(
                "analysis_served",
                candles=result.candle_count,
                levels=len(result.levels),
                zone=result.recommendation.zone.value,
            )
            return AnalysisResponse(success=True, data=result, cached=False, timestamp=_now_ms())

    async def close(self) -> None:
        """Close provider and cache."""
        await self.provider.close()
        await self.cache.close()

    async def __aenter__(self) -> "AnalysisService":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()


async def create_cache_from_settings(settings: Settings | None = None) -> AnalysisCache:
    """
    Create the configured analysis cache.

    A Redis backend that cannot connect is replaced by an in-memory cache.

    Returns:
        AnalysisCache instance
    """
    settings = settings or get_settings()
    cache_settings = settings.cache

    if cache_settings.backend == "none":
        return NullAnalysisCache()

    if cache_settings.backend == "redis":
        client = RedisClient(
            host=settings.redis.host,
            port=settings.redis.port,
            password=settings.redis.password.get_secret_value()
            if settings.redis.password
            else None,
            db=settings.redis.db,
        )
        try:
            await client.connect()
            return RedisAnalysisCache(client, ttl_seconds=cache_settings.ttl_seconds)
        except (RedisError, OSError) as e:
            logger.warning("redis_init_failed", error=str(e), fallback="memory")

    return InMemoryAnalysisCache(
        ttl_seconds=cache_settings.ttl_seconds, max_entries=cache_settings.max_entries
    )


async def create_service_from_settings(settings: Settings | None = None) -> AnalysisService:
    """
    Create an analysis service from application settings.

    Returns:
        Configured AnalysisService
    """
    settings = settings or get_settings()
    service = AnalysisService(
        provider=YahooChartProvider(settings.provider),
        engine=create_engine_from_settings(settings),
        cache=await create_cache_from_settings(settings),
        symbol_suffix=settings.provider.symbol_suffix,
    )
    logger.info("analysis_service_created", cache_backend=settings.cache.backend)
    return service
