"""
Unit tests for the analysis engine.

End-to-end scenarios over synthetic candle series plus property checks on
arbitrary valid series.
"""

import orjson
import pytest
from hypothesis import given, settings, strategies as st

from marketlens.analysis.engine import MarketAnalysisEngine, create_engine_from_settings
from marketlens.analysis.levels import level_strength
from marketlens.analysis.models import (
    ADTrend,
    AnalysisResult,
    AnomalyKind,
    LevelKind,
    RecommendationZone,
    Significance,
    TrendlineKind,
    VolumeTrend,
)
from marketlens.analysis.volume import classify_ad_trend
from marketlens.config.settings import AnalysisSettings, Settings
from marketlens.data.candles import CandleSeries


@pytest.fixture
def engine() -> MarketAnalysisEngine:
    return MarketAnalysisEngine()


@pytest.mark.unit
class TestScenarios:
    """Canonical market shapes."""

    def test_empty_series_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.analyze(CandleSeries(()))

    def test_monotonic_rise(self, engine, rising_series):
        result = engine.analyze(rising_series)

        assert result.candle_count == 30
        assert result.current_price == 129.0
        assert result.as_of == rising_series[-1].timestamp
        assert result.levels == ()
        assert result.trendlines == ()
        assert result.volume.anomalies == ()
        assert result.nearest_support is None
        assert result.nearest_resistance is None
        assert result.recommendation.zone is RecommendationZone.INSUFFICIENT_DATA
        assert result.trading_range.lower == pytest.approx(129.0 * 0.95)
        assert result.trading_range.upper == pytest.approx(129.0 * 1.05)
        assert result.volume.volume_trend is VolumeTrend.STABLE
        assert result.volume.accumulation_distribution.trend is ADTrend.NEUTRAL
        assert [p.name for p in result.volume.patterns] == ["Strong Accumulation"]

    def test_flat_market(self, engine, flat_series):
        result = engine.analyze(flat_series)

        assert result.levels == ()
        assert result.trendlines == ()
        assert result.volume.anomalies == ()
        assert result.volume.accumulation_distribution.value == 0.0
        assert result.volume.accumulation_distribution.trend is ADTrend.NEUTRAL
        assert result.volume.statistics.std_dev == 0.0

    def test_volume_spike(self, engine, spike_series):
        result = engine.analyze(spike_series)

        anomalies = result.volume.anomalies
        assert len(anomalies) == 1
        assert anomalies[0].kind is AnomalyKind.SPIKE
        assert anomalies[0].significance in (Significance.MEDIUM, Significance.HIGH)
        assert "buying pressure" in anomalies[0].interpretation

    def test_trading_range(self, engine, range_series):
        result = engine.analyze(range_series)

        assert result.current_price == 105.0
        assert result.nearest_support.price == 99.0
        assert result.nearest_support.kind is LevelKind.SUPPORT
        assert result.nearest_resistance.price == 111.0
        assert result.nearest_resistance.kind is LevelKind.RESISTANCE
        assert result.recommendation.zone is RecommendationZone.HOLD_IN_RANGE
        assert result.trading_range.width == pytest.approx(12.0)
        assert result.trendlines == ()

    def test_rising_zigzag_has_support_trendline(self, engine, make_hl_series):
        zigzag = [0.0, 3.0, 6.0, 3.0]
        centres = [100 + 0.5 * i + zigzag[i % 4] for i in range(20)]
        series = make_hl_series([c + 1 for c in centres], [c - 1 for c in centres])

        result = engine.analyze(series)

        assert [t.kind for t in result.trendlines] == [TrendlineKind.SUPPORT]

    def test_short_series_adds_notes(self, engine, make_series):
        series = make_series([(100.0, 101.0, 99.0, 100.5, 1000)] * 3)

        result = engine.analyze(series)

        assert len(result.notes) == 2
        assert result.volume.patterns == ()
        assert result.volume.accumulation_distribution.interpretation == (
            "Insufficient data for A/D analysis"
        )

    def test_custom_parameters(self, range_series):
        strict = MarketAnalysisEngine(cluster_tolerance=0.001, anomaly_z_threshold=10.0)

        result = strict.analyze(range_series)

        assert len(result.levels) == 2
        assert result.volume.anomalies == ()


@pytest.mark.unit
class TestSerialization:
    """Test the display-layer representation."""

    def test_to_dict_keys(self, analysis_result):
        data = analysis_result.to_dict()

        assert data["symbol"] == "TEST.NS"
        assert data["currentPrice"] == 105.0
        assert data["levels"][0]["type"] == "resistance"
        assert data["tradingRange"]["widthPercent"] == pytest.approx(11.43)
        assert data["recommendation"]["zone"] == "hold-in-range"
        assert set(data["volume"]) >= {
            "statistics",
            "averageVolume",
            "currentVolume",
            "volumeTrend",
            "anomalies",
            "patterns",
            "accumulationDistribution",
            "recommendation",
        }

    def test_restored_result_matches(self, analysis_result):
        payload = orjson.loads(orjson.dumps(analysis_result.to_dict()))

        restored = AnalysisResult.from_dict(payload)

        assert restored.to_dict() == analysis_result.to_dict()


@pytest.mark.unit
class TestEngineFactory:
    """Test engine creation from settings."""

    def test_create_engine_from_settings(self):
        settings = Settings(analysis=AnalysisSettings(pivot_window=3, max_anomalies=5))

        engine = create_engine_from_settings(settings)

        assert engine.pivot_window == 3
        assert engine.max_anomalies == 5
        assert engine.cluster_tolerance == pytest.approx(0.015)


candle_tuples = st.tuples(
    st.floats(min_value=1, max_value=1000),
    st.floats(min_value=0, max_value=50),
    st.floats(min_value=0, max_value=1),
    st.floats(min_value=0, max_value=1),
    st.integers(min_value=0, max_value=10_000_000),
)


@pytest.mark.unit
class TestProperties:
    """Invariants that hold for any valid series."""

    @given(st.lists(candle_tuples, min_size=1, max_size=40))
    @settings(max_examples=60, deadline=None)
    def test_result_invariants(self, make_series, candles):
        rows = [
            (low + of * rng, low + rng, low, low + cf * rng, volume)
            for low, rng, of, cf, volume in candles
        ]
        series = make_series(rows)

        result = MarketAnalysisEngine().analyze(series)

        for lvl in result.levels:
            assert lvl.touches >= 2
            assert lvl.strength is level_strength(lvl.touches)
            assert lvl.confidence == min(95, 50 + 10 * lvl.touches)
        prices = [lvl.price for lvl in result.levels]
        assert prices == sorted(prices, reverse=True)

        for line in result.trendlines:
            assert line.goodness_of_fit > 0.7
            if line.kind is TrendlineKind.SUPPORT:
                assert line.slope > 0
            else:
                assert line.slope < 0

        ad_score = result.volume.accumulation_distribution
        assert -10.0 <= ad_score.value <= 10.0
        assert ad_score.trend is classify_ad_trend(ad_score.value)
        assert len(result.volume.anomalies) <= 10
        assert all(abs(a.z_score) >= 1.5 for a in result.volume.anomalies)

        if result.nearest_support is not None:
            assert result.nearest_support.price < result.current_price
        if result.nearest_resistance is not None:
            assert result.nearest_resistance.price > result.current_price
