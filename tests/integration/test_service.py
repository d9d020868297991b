"""
Integration tests for the analysis service and CLI.

Wires the real engine and caches to an in-process candle provider; only the
network layer is replaced.
"""

from unittest.mock import AsyncMock, patch

import orjson
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from marketlens.config.settings import CacheSettings, Settings
from marketlens.data.cache import (
    InMemoryAnalysisCache,
    NullAnalysisCache,
    RedisAnalysisCache,
)
from marketlens.data.candles import CandleSeries
from marketlens.data.provider import (
    CandleDataUnavailable,
    CandleProvider,
    CandleProviderError,
)
from marketlens.main import async_main, build_parser, format_report, render
from marketlens.service import (
    AnalysisResponse,
    AnalysisService,
    create_cache_from_settings,
    create_service_from_settings,
)


class StaticProvider(CandleProvider):
    """Provider serving a fixed series, or raising a fixed error."""

    def __init__(self, series: CandleSeries | None = None, error: Exception | None = None):
        self.series = series
        self.error = error
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def fetch(self, symbol: str, timeframe: str) -> CandleSeries:
        self.calls.append((symbol, timeframe))
        if self.error is not None:
            raise self.error
        return CandleSeries(self.series.candles, symbol=symbol, timeframe=timeframe)

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# AnalysisService
# =============================================================================


@pytest.mark.integration
class TestAnalysisService:
    """Test fetch, analyse and cache orchestration."""

    @pytest.mark.asyncio
    async def test_analyze_and_cache(self, range_series):
        provider = StaticProvider(range_series)
        service = AnalysisService(provider, cache=InMemoryAnalysisCache())

        first = await service.analyze("test", "1m")
        second = await service.analyze("TEST.NS", "1M")

        assert first.success and not first.cached
        assert first.data.symbol == "TEST.NS"
        assert first.data.timeframe == "1M"
        assert first.data.nearest_support.price == 99.0
        assert second.success and second.cached
        assert second.data is first.data
        assert provider.calls == [("TEST.NS", "1M")]

    def test_empty_cache_is_kept(self, range_series):
        cache = InMemoryAnalysisCache()

        service = AnalysisService(StaticProvider(range_series), cache=cache)

        assert len(cache) == 0
        assert service.cache is cache

    @pytest.mark.asyncio
    async def test_memory_backend_caches_by_default(self):
        settings = Settings(cache=CacheSettings(backend="memory"))

        async with await create_service_from_settings(settings) as service:
            assert isinstance(service.cache, InMemoryAnalysisCache)

    @pytest.mark.asyncio
    async def test_without_cache_always_fetches(self, range_series):
        provider = StaticProvider(range_series)
        service = AnalysisService(provider)

        await service.analyze("TEST", "1M")
        await service.analyze("TEST", "1M")

        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_provider_error_envelope(self):
        provider = StaticProvider(error=CandleDataUnavailable("No candle data available for XYZ.NS"))
        cache = InMemoryAnalysisCache()
        service = AnalysisService(provider, cache=cache)

        response = await service.analyze("XYZ", "1M")

        assert not response.success
        assert response.data is None
        assert response.error == "No candle data available for XYZ.NS"
        assert response.timestamp > 0
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_upstream_failure_envelope(self):
        service = AnalysisService(StaticProvider(error=CandleProviderError("Chart API unavailable")))

        response = await service.analyze("TCS")

        assert response.to_dict()["error"] == "Chart API unavailable"
        assert "data" not in response.to_dict()

    @pytest.mark.asyncio
    async def test_invalid_timeframe(self, range_series):
        provider = StaticProvider(range_series)
        service = AnalysisService(provider)

        response = await service.analyze("TCS", "3Y")

        assert not response.success
        assert "Unknown timeframe" in response.error
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_empty_symbol(self, range_series):
        response = await AnalysisService(StaticProvider(range_series)).analyze("   ")

        assert not response.success

    @pytest.mark.asyncio
    async def test_close_releases_provider(self, range_series):
        provider = StaticProvider(range_series)

        async with AnalysisService(provider):
            pass

        assert provider.closed

    @pytest.mark.asyncio
    async def test_envelope_is_json_serializable(self, range_series):
        response = await AnalysisService(StaticProvider(range_series)).analyze("TEST")

        payload = orjson.loads(orjson.dumps(response.to_dict()))

        assert payload["success"] is True
        assert payload["cached"] is False
        assert payload["data"]["recommendation"]["zone"] == "hold-in-range"


# =============================================================================
# Cache Factory
# =============================================================================


@pytest.mark.integration
class TestCacheFactory:
    """Test cache backend selection."""

    @pytest.mark.asyncio
    async def test_none_backend(self):
        cache = await create_cache_from_settings(Settings(cache=CacheSettings(backend="none")))

        assert isinstance(cache, NullAnalysisCache)

    @pytest.mark.asyncio
    async def test_memory_backend(self):
        settings = Settings(cache=CacheSettings(backend="memory", ttl_seconds=60, max_entries=8))

        cache = await create_cache_from_settings(settings)

        assert isinstance(cache, InMemoryAnalysisCache)
        assert cache.ttl_seconds == 60
        assert cache.max_entries == 8

    @pytest.mark.asyncio
    async def test_redis_backend(self):
        settings = Settings(cache=CacheSettings(backend="redis"))

        with patch("marketlens.service.RedisClient.connect", new=AsyncMock()):
            cache = await create_cache_from_settings(settings)

        assert isinstance(cache, RedisAnalysisCache)
        assert cache.ttl_seconds == 300

    @pytest.mark.asyncio
    async def test_unreachable_redis_falls_back_to_memory(self):
        settings = Settings(cache=CacheSettings(backend="redis"))
        failing = AsyncMock(side_effect=RedisConnectionError("Connection refused"))

        with patch("marketlens.service.RedisClient.connect", new=failing):
            cache = await create_cache_from_settings(settings)

        assert isinstance(cache, InMemoryAnalysisCache)


# =============================================================================
# CLI
# =============================================================================


@pytest.mark.integration
class TestCli:
    """Test the command line entry point."""

    def test_parser_defaults(self):
        args = build_parser().parse_args(["RELIANCE"])

        assert args.symbol == "RELIANCE"
        assert args.timeframe == "1M"
        assert args.as_json is False

    def test_parser_upper_cases_timeframe(self):
        assert build_parser().parse_args(["TCS", "--timeframe", "1y"]).timeframe == "1Y"

    def test_parser_rejects_unknown_timeframe(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["TCS", "--timeframe", "2W"])

    def test_report(self, analysis_result):
        report = format_report(analysis_result)

        assert report.startswith("TEST.NS (1M, 20 candles)")
        assert "Current price: ₹105.00" in report
        assert "Resistance at ₹111.00" in report
        assert "HOLD: Price in" in report

    def test_render_error(self):
        response = AnalysisResponse(success=False, timestamp=1, error="boom")

        assert render(response, as_json=False) == "Error: boom"

    @pytest.mark.asyncio
    async def test_json_output(self, range_series, capsys):
        service = AnalysisService(StaticProvider(range_series))

        with patch(
            "marketlens.main.create_service_from_settings", new=AsyncMock(return_value=service)
        ):
            exit_code = await async_main(["TEST", "--json", "--log-level", "WARNING"])

        assert exit_code == 0
        payload = orjson.loads(capsys.readouterr().out)
        assert payload["success"] is True
        assert payload["data"]["symbol"] == "TEST.NS"

    @pytest.mark.asyncio
    async def test_failure_exit_code(self, capsys):
        service = AnalysisService(StaticProvider(error=CandleProviderError("Chart API unavailable")))

        with patch(
            "marketlens.main.create_service_from_settings", new=AsyncMock(return_value=service)
        ):
            exit_code = await async_main(["TEST", "--log-level", "WARNING"])

        assert exit_code == 1
        assert capsys.readouterr().out.strip() == "Error: Chart API unavailable"
