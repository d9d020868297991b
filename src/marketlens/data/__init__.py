"""
Data module for marketlens.

Provides the candle series contract, candle providers and analysis result
caches.
"""

from .candles import Candle, CandleSeries, timestamp_to_datetime
from .cache import (
    AnalysisCache,
    InMemoryAnalysisCache,
    NullAnalysisCache,
    RedisAnalysisCache,
    RedisClient,
    make_cache_key,
)
from .provider import (
    CandleDataUnavailable,
    CandleProvider,
    CandleProviderError,
    TimeframeSpec,
    YahooChartProvider,
    normalize_symbol,
    parse_chart_payload,
    resolve_timeframe,
)

__all__ = [
    # Candles
    "Candle",
    "CandleSeries",
    "timestamp_to_datetime",
    # Providers
    "CandleProvider",
    "YahooChartProvider",
    "CandleProviderError",
    "CandleDataUnavailable",
    "TimeframeSpec",
    "normalize_symbol",
    "parse_chart_payload",
    "resolve_timeframe",
    # Cache
    "AnalysisCache",
    "InMemoryAnalysisCache",
    "NullAnalysisCache",
    "RedisAnalysisCache",
    "RedisClient",
    "make_cache_key",
]
