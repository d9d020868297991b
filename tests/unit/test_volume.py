"""
Unit tests for volume analysis.

Covers volume statistics, anomaly detection, OBV, volume patterns, the
accumulation/distribution score and the recent volume trend.
"""

import math

import pytest
from hypothesis import given, settings, strategies as st

from marketlens.analysis.models import (
    ADTrend,
    AnomalyKind,
    Significance,
    Strength,
    VolumeTrend,
)
from marketlens.analysis.volume import (
    VolumeAnalyzer,
    anomaly_significance,
    calculate_volume_statistics,
    classify_ad_trend,
    on_balance_volume,
)
from marketlens.data.candles import CandleSeries

QUIET = (100.0, 101.0, 99.0, 100.0)


def quiet_rows(volumes):
    return [(*QUIET, v) for v in volumes]


# =============================================================================
# Statistics
# =============================================================================


@pytest.mark.unit
class TestVolumeStatistics:
    """Test mean, population std dev and median of volume."""

    def test_even_count(self, make_series):
        stats = calculate_volume_statistics(make_series(quiet_rows([100, 200, 300, 400])))

        assert stats.mean == pytest.approx(250.0)
        assert stats.std_dev == pytest.approx(math.sqrt(12500))
        assert stats.median == pytest.approx(250.0)

    def test_odd_count_median(self, make_series):
        stats = calculate_volume_statistics(make_series(quiet_rows([1, 3, 2])))

        assert stats.median == 2.0

    def test_empty_series(self):
        stats = calculate_volume_statistics(CandleSeries(()))

        assert (stats.mean, stats.std_dev, stats.median) == (0.0, 0.0, 0.0)


# =============================================================================
# Anomalies
# =============================================================================


@pytest.mark.unit
class TestAnomalies:
    """Test z-score volume anomaly detection."""

    @pytest.mark.parametrize(
        "z_score,expected",
        [
            (1.49999, None),
            (-1.49999, None),
            (1.5, Significance.LOW),
            (-1.5, Significance.LOW),
            (2.0, Significance.LOW),
            (2.01, Significance.MEDIUM),
            (3.0, Significance.MEDIUM),
            (3.01, Significance.HIGH),
            (-4.0, Significance.HIGH),
        ],
    )
    def test_significance_thresholds(self, z_score, expected):
        assert anomaly_significance(z_score) is expected

    def test_constant_volume_has_no_anomalies(self, flat_series):
        assert VolumeAnalyzer(flat_series).detect_anomalies() == []

    def test_single_spike(self, spike_series):
        anomalies = VolumeAnalyzer(spike_series).detect_anomalies()

        assert len(anomalies) == 1
        spike = anomalies[0]
        assert spike.kind is AnomalyKind.SPIKE
        assert spike.significance in (Significance.MEDIUM, Significance.HIGH)
        assert spike.volume == 3000
        assert spike.date == spike_series[-1].date
        assert spike.sameday_price_change_percent == pytest.approx(5.0)
        assert spike.percent_deviation_from_mean == pytest.approx(1900 / 1100 * 100)
        assert "buying pressure" in spike.interpretation
        assert spike.interpretation.startswith("HIGH: Volume spike (+173%)")

    def test_volume_drop(self, make_series):
        series = make_series(quiet_rows([1000] * 19 + [0]))

        anomalies = VolumeAnalyzer(series).detect_anomalies()

        assert len(anomalies) == 1
        drop = anomalies[0]
        assert drop.kind is AnomalyKind.DROP
        assert drop.z_score < 0
        assert drop.interpretation == (
            "Volume drop (-100%) - Reduced interest or consolidation phase"
        )

    def test_spike_on_falling_price(self, make_series):
        rows = quiet_rows([1000] * 19) + [(100.0, 100.5, 96.0, 96.5, 3000)]

        spike = VolumeAnalyzer(make_series(rows)).detect_anomalies()[0]

        assert "price down 3.5%" in spike.interpretation
        assert spike.interpretation.endswith("Possible distribution/selling")

    def test_only_most_recent_anomalies_kept(self, make_series):
        series = make_series(quiet_rows([0, 2000] * 15))

        anomalies = VolumeAnalyzer(series, z_threshold=1.0, max_anomalies=10).detect_anomalies()

        assert len(anomalies) == 10
        assert anomalies[-1].date == series[-1].date
        assert [a.date for a in anomalies] == sorted(a.date for a in anomalies)


# =============================================================================
# Patterns
# =============================================================================


@pytest.mark.unit
class TestOnBalanceVolume:
    """Test OBV accumulation."""

    def test_obv(self, make_series):
        rows = [
            (10.0, 10.5, 9.5, 10.0, 100),
            (10.0, 11.5, 9.5, 11.0, 200),
            (11.0, 11.5, 10.5, 11.0, 300),
            (11.0, 11.5, 9.5, 10.0, 400),
        ]

        obv = on_balance_volume(make_series(rows))

        assert obv.tolist() == [0.0, 200.0, 200.0, -200.0]


@pytest.mark.unit
class TestVolumePatterns:
    """Test climax, OBV and volume-shift pattern recognition."""

    def test_requires_five_candles(self, make_series):
        series = make_series(quiet_rows([1000, 1000, 1000, 9000]))

        assert VolumeAnalyzer(series).detect_patterns() == []

    def test_strong_accumulation(self, make_close_series):
        series = make_close_series([100.0 + i for i in range(10)])

        patterns = VolumeAnalyzer(series).detect_patterns()

        assert [p.name for p in patterns] == ["Strong Accumulation"]
        assert patterns[0].bullish is True
        assert patterns[0].confidence == 80

    def test_strong_distribution(self, make_close_series):
        series = make_close_series([110.0 - i for i in range(10)])

        patterns = VolumeAnalyzer(series).detect_patterns()

        assert [p.name for p in patterns] == ["Strong Distribution"]
        assert patterns[0].bullish is False

    def test_bullish_divergence(self, make_close_series):
        closes = [100, 101, 99, 100, 98, 99, 97, 98, 96, 97]
        volumes = [3000, 3000, 1000, 3000, 1000, 3000, 1000, 3000, 1000, 3000]

        patterns = VolumeAnalyzer(make_close_series(closes, volumes)).detect_patterns()

        assert [p.name for p in patterns] == ["Bullish Divergence"]
        assert patterns[0].confidence == 70
        assert patterns[0].significance is Significance.MEDIUM

    def test_volume_contraction(self, make_series):
        series = make_series(quiet_rows([2000] * 5 + [1000] * 5))

        patterns = VolumeAnalyzer(series).detect_patterns()

        assert [p.name for p in patterns] == ["Volume Contraction"]
        assert patterns[0].bullish is None

    def test_volume_expansion(self, make_series):
        series = make_series(quiet_rows([1000] * 5 + [2000] * 5))

        patterns = VolumeAnalyzer(series).detect_patterns()

        assert [p.name for p in patterns] == ["Volume Expansion"]
        assert patterns[0].bullish is False

    def test_selling_climax(self, make_series):
        rows = quiet_rows([1000] * 9) + [(100.0, 100.5, 96.5, 97.0, 5000)]

        patterns = VolumeAnalyzer(make_series(rows)).detect_patterns()

        assert [p.name for p in patterns] == [
            "Climax Volume",
            "Strong Distribution",
            "Volume Expansion",
        ]
        climax = patterns[0]
        assert climax.bullish is True
        assert climax.confidence == 85
        assert "selling climax" in climax.description

    def test_buying_climax_is_bearish(self, spike_series):
        patterns = VolumeAnalyzer(spike_series).detect_patterns()

        climax = next(p for p in patterns if p.name == "Climax Volume")
        assert climax.bullish is False
        assert "buying climax" in climax.description


# =============================================================================
# Accumulation / Distribution
# =============================================================================


@pytest.mark.unit
class TestAccumulationDistribution:
    """Test the accumulation/distribution score."""

    def test_insufficient_data(self, make_series):
        score = VolumeAnalyzer(make_series(quiet_rows([1000] * 4))).calculate_accumulation_distribution()

        assert score.value == 0.0
        assert score.trend is ADTrend.NEUTRAL
        assert score.strength is Strength.WEAK
        assert score.interpretation == "Insufficient data for A/D analysis"

    def test_flat_market_is_neutral(self, flat_series):
        score = VolumeAnalyzer(flat_series).calculate_accumulation_distribution()

        assert score.value == 0.0
        assert score.trend is ADTrend.NEUTRAL
        assert score.interpretation.startswith("NEUTRAL")

    def test_closes_at_highs_accumulate(self, make_series):
        series = make_series([(99.0, 101.0, 98.9, 101.0, 1000)] * 12)

        score = VolumeAnalyzer(series).calculate_accumulation_distribution()

        assert score.value == pytest.approx(10.0)
        assert score.trend is ADTrend.ACCUMULATION
        assert score.strength is Strength.STRONG
        assert score.strong_signals == 0
        assert score.interpretation.startswith("STRONG ACCUMULATION")

    def test_closes_at_lows_distribute(self, make_series):
        rows = [(100.0, 100.2, 98.0, 98.0, 1000)] * 3 + [(100.0, 100.2, 98.0, 98.0, 4000)]

        score = VolumeAnalyzer(make_series(rows * 2)).calculate_accumulation_distribution()

        assert score.value < -2
        assert score.trend is ADTrend.DISTRIBUTION
        assert score.strong_signals == 2
        assert "DISTRIBUTION" in score.interpretation

    @pytest.mark.parametrize(
        "value,expected",
        [(2.5, ADTrend.ACCUMULATION), (2.0, ADTrend.NEUTRAL), (-2.0, ADTrend.NEUTRAL), (-2.01, ADTrend.DISTRIBUTION)],
    )
    def test_trend_thresholds(self, value, expected):
        assert classify_ad_trend(value) is expected

    @given(
        st.lists(
            st.tuples(
                st.floats(min_value=1, max_value=1000),
                st.floats(min_value=0, max_value=50),
                st.floats(min_value=0, max_value=1),
                st.floats(min_value=0, max_value=1),
                st.integers(min_value=0, max_value=10_000_000),
            ),
            min_size=0,
            max_size=30,
        )
    )
    @settings(max_examples=75, deadline=None)
    def test_score_bounded(self, make_series, candles):
        rows = [
            (low + of * rng, low + rng, low, low + cf * rng, volume)
            for low, rng, of, cf, volume in candles
        ]

        score = VolumeAnalyzer(make_series(rows)).calculate_accumulation_distribution()

        assert -10.0 <= score.value <= 10.0
        assert score.trend is classify_ad_trend(score.value)


# =============================================================================
# Volume Trend
# =============================================================================


@pytest.mark.unit
class TestVolumeTrend:
    """Test the recent volume trend classifier."""

    @pytest.mark.parametrize(
        "volumes,expected",
        [
            ([1000] * 15 + [3000] * 5, VolumeTrend.INCREASING),
            ([1000] * 15 + [100] * 5, VolumeTrend.DECREASING),
            ([1000] * 20, VolumeTrend.STABLE),
        ],
    )
    def test_classification(self, make_series, volumes, expected):
        assert VolumeAnalyzer(make_series(quiet_rows(volumes))).classify_volume_trend() is expected

    def test_empty_series_is_stable(self):
        assert VolumeAnalyzer(CandleSeries(())).classify_volume_trend() is VolumeTrend.STABLE
