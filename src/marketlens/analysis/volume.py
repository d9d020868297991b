"""Volume Analysis Module.

Volume statistics, anomaly detection, multi-candle volume patterns and the
accumulation/distribution score for a candle series. Calculations use
numpy/pandas over the series' read-only column views; the series itself is
never modified.

Outputs:
    - Volume statistics (mean, population std dev, median)
    - Volume anomalies (|z-score| >= 1.5)
    - Volume patterns (climax, OBV agreement/divergence, contraction/expansion)
    - Accumulation/Distribution score in [-10, 10]
    - Recent volume trend (increasing / decreasing / stable)
"""

from typing import NamedTuple

import numpy as np
import pandas as pd
from scipy import stats

from marketlens.analysis.models import (
    AccumulationDistributionScore,
    ADTrend,
    AnomalyKind,
    Significance,
    Strength,
    VolumeAnalysis,
    VolumeAnomaly,
    VolumePattern,
    VolumeStatistics,
    VolumeTrend,
)
from marketlens.analysis.recommendation import recommend_from_volume
from marketlens.config.constants import (
    AD_HIGH_CLOSE,
    AD_LOW_CLOSE,
    AD_MIN_CANDLES,
    AD_MODERATE_SIGNALS,
    AD_SCORE_LIMIT,
    AD_STRONG_SCORE,
    AD_STRONG_SIGNALS,
    AD_STRONG_VOLUME_MULTIPLIER,
    AD_TREND_THRESHOLD,
    AD_WINDOW,
    ANOMALY_HIGH_Z,
    ANOMALY_MEDIUM_Z,
    ANOMALY_PRICE_MOVE_PCT,
    ANOMALY_Z_THRESHOLD,
    CLIMAX_CONFIDENCE,
    CLIMAX_PRICE_MOVE_PCT,
    CLIMAX_VOLUME_MULTIPLIER,
    MAX_REPORTED_ANOMALIES,
    MIN_PATTERN_CANDLES,
    OBV_DIVERGENCE_CONFIDENCE,
    OBV_TREND_CONFIDENCE,
    PATTERN_LONG_WINDOW,
    VOLUME_CONTRACTION_CONFIDENCE,
    VOLUME_EXPANSION_CONFIDENCE,
    VOLUME_SHIFT_PCT,
    VOLUME_TREND_DECREASING_RATIO,
    VOLUME_TREND_INCREASING_RATIO,
    VOLUME_TREND_WINDOW,
)
from marketlens.data.candles import CandleSeries


class OBVTrend(NamedTuple):
    """Slope signs of On-Balance Volume and close price over a window."""

    rising: bool
    falling: bool
    price_rising: bool
    price_falling: bool


def calculate_volume_statistics(series: CandleSeries) -> VolumeStatistics:
    """Mean, population standard deviation and median of volume.

    An empty series yields all zeros.
    """
    if not series:
        return VolumeStatistics(mean=0.0, std_dev=0.0, median=0.0)

    volumes = series.volumes
    return VolumeStatistics(
        mean=float(np.mean(volumes)),
        std_dev=float(np.std(volumes)),
        median=float(np.median(volumes)),
    )


def anomaly_significance(
    z_score: float, threshold: float = ANOMALY_Z_THRESHOLD
) -> Significance | None:
    """Significance of a volume z-score, or None when it is not anomalous.

    The threshold is inclusive: |z| == threshold is an anomaly.
    """
    magnitude = abs(z_score)
    if magnitude < threshold:
        return None
    if magnitude > ANOMALY_HIGH_Z:
        return Significance.HIGH
    if magnitude > ANOMALY_MEDIUM_Z:
        return Significance.MEDIUM
    return Significance.LOW


def interpret_anomaly(
    kind: AnomalyKind,
    significance: Significance,
    price_change_pct: float,
    volume_change_pct: float,
) -> str:
    """Describe what a volume anomaly implies given the same-day price move."""
    volume_pct = round(volume_change_pct)
    if kind is AnomalyKind.SPIKE:
        prefix = f"{significance.value.upper()}: Volume spike (+{volume_pct}%)"
        if price_change_pct > ANOMALY_PRICE_MOVE_PCT:
            return f"{prefix} with price up {price_change_pct:.1f}% - Strong buying pressure"
        if price_change_pct < -ANOMALY_PRICE_MOVE_PCT:
            return (
                f"{prefix} with price down {abs(price_change_pct):.1f}% "
                "- Possible distribution/selling"
            )
        return f"{prefix} with minimal price change - Potential accumulation"

    if abs(price_change_pct) > ANOMALY_PRICE_MOVE_PCT:
        direction = "price up" if price_change_pct > 0 else "price down"
        return f"Volume drop ({volume_pct}%) with {direction} - Low conviction move"
    return f"Volume drop ({volume_pct}%) - Reduced interest or consolidation phase"


def on_balance_volume(series: CandleSeries) -> pd.Series:
    """On-Balance Volume starting at 0 for the first candle.

    Volume is added on a higher close than the previous candle, subtracted on
    a lower close and ignored on an unchanged close.
    """
    close = pd.Series(series.closes)
    volume = pd.Series(series.volumes)
    return (np.sign(close.diff()) * volume).fillna(0).cumsum()


class VolumeAnalyzer:
    """Volume analysis of a single candle series.

    Statistics are computed once over the whole series and shared by the
    anomaly detector, the climax rule and the volume trend classifier.
    """

    def __init__(
        self,
        series: CandleSeries,
        z_threshold: float = ANOMALY_Z_THRESHOLD,
        max_anomalies: int = MAX_REPORTED_ANOMALIES,
    ):
        """Initialize analyzer.

        Args:
            series: Candle series to analyse
            z_threshold: Minimum |z-score| (inclusive) for an anomaly
            max_anomalies: Number of most recent anomalies to report
        """
        self.series = series
        self.z_threshold = z_threshold
        self.max_anomalies = max_anomalies
        self.statistics = calculate_volume_statistics(series)

    # ==================== Anomalies ====================

    def detect_anomalies(self) -> list[VolumeAnomaly]:
        """Flag candles whose volume z-score reaches the threshold.

        Returns:
            The most recent `max_anomalies` anomalies in chronological order.
            Empty when volume has zero standard deviation.
        """
        volume_stats = self.statistics
        if volume_stats.std_dev == 0:
            return []

        z_scores = stats.zscore(self.series.volumes)
        anomalies: list[VolumeAnomaly] = []

        for candle, z_score in zip(self.series, z_scores):
            significance = anomaly_significance(float(z_score), self.z_threshold)
            if significance is None:
                continue

            kind = AnomalyKind.SPIKE if z_score > 0 else AnomalyKind.DROP
            deviation_pct = (
                (candle.volume - volume_stats.mean) / volume_stats.mean * 100
                if volume_stats.mean
                else 0.0
            )
            price_change_pct = candle.change_percent

            anomalies.append(
                VolumeAnomaly(
                    date=candle.date,
                    volume=candle.volume,
                    percent_deviation_from_mean=float(deviation_pct),
                    z_score=float(z_score),
                    kind=kind,
                    significance=significance,
                    sameday_price_change_percent=price_change_pct,
                    interpretation=interpret_anomaly(
                        kind, significance, price_change_pct, deviation_pct
                    ),
                )
            )

        return anomalies[-self.max_anomalies:]

    # ==================== Patterns ====================

    def calculate_obv_trend(self, window: int = PATTERN_LONG_WINDOW) -> OBVTrend:
        """Slope signs of OBV and close over the most recent `window` candles."""
        recent = self.series.last(window)
        if len(recent) < 2:
            return OBVTrend(rising=False, falling=False, price_rising=False, price_falling=False)

        obv = on_balance_volume(recent)
        count = len(recent)
        obv_slope = (obv.iloc[-1] - obv.iloc[0]) / count
        price_slope = (recent.closes[-1] - recent.closes[0]) / count

        return OBVTrend(
            rising=bool(obv_slope > 0),
            falling=bool(obv_slope < 0),
            price_rising=bool(price_slope > 0),
            price_falling=bool(price_slope < 0),
        )

    def _climax_pattern(self) -> VolumePattern | None:
        last = self.series[-1]
        mean = self.statistics.mean
        if not last.volume > mean * CLIMAX_VOLUME_MULTIPLIER:
            return None

        up_move = last.change_percent > CLIMAX_PRICE_MOVE_PCT
        reading = (
            "Possible buying climax - watch for reversal"
            if up_move
            else "Possible selling climax - watch for bounce"
        )
        return VolumePattern(
            name="Climax Volume",
            confidence=CLIMAX_CONFIDENCE,
            # climaxes tend to precede a reversal of the day's move
            bullish=not up_move,
            significance=Significance.HIGH,
            description=(
                f"Extreme volume detected ({round(last.volume / mean * 100)}% of avg). {reading}"
            ),
        )

    def _obv_pattern(self) -> VolumePattern | None:
        trend = self.calculate_obv_trend()

        if trend.rising and trend.price_rising:
            return VolumePattern(
                name="Strong Accumulation",
                confidence=OBV_TREND_CONFIDENCE,
                bullish=True,
                significance=Significance.HIGH,
                description=(
                    "Volume and price both trending up - healthy uptrend with institutional buying"
                ),
            )
        if trend.falling and trend.price_falling:
            return VolumePattern(
                name="Strong Distribution",
                confidence=OBV_TREND_CONFIDENCE,
                bullish=False,
                significance=Significance.HIGH,
                description=(
                    "Volume and price both trending down - bearish pressure with "
                    "institutional selling"
                ),
            )
        if trend.rising and trend.price_falling:
            return VolumePattern(
                name="Bullish Divergence",
                confidence=OBV_DIVERGENCE_CONFIDENCE,
                bullish=True,
                significance=Significance.MEDIUM,
                description=(
                    "Volume rising while price falling - possible accumulation before reversal up"
                ),
            )
        if trend.falling and trend.price_rising:
            return VolumePattern(
                name="Bearish Divergence",
                confidence=OBV_DIVERGENCE_CONFIDENCE,
                bullish=False,
                significance=Significance.MEDIUM,
                description=(
                    "Volume falling while price rising - weak uptrend, possible reversal down"
                ),
            )
        return None

    def _volume_shift_pattern(self) -> VolumePattern | None:
        recent = self.series.last(PATTERN_LONG_WINDOW)
        volumes = recent.volumes
        half = len(volumes) // 2
        first_avg = float(np.mean(volumes[:half]))
        second_avg = float(np.mean(volumes[half:]))
        if first_avg == 0:
            return None

        change_pct = (second_avg - first_avg) / first_avg * 100

        if change_pct > VOLUME_SHIFT_PCT:
            return VolumePattern(
                name="Volume Expansion",
                confidence=VOLUME_EXPANSION_CONFIDENCE,
                bullish=bool(recent.closes[-1] > recent.closes[0]),
                significance=Significance.MEDIUM,
                description="Increasing volume - growing interest, trend strengthening",
            )
        if change_pct < -VOLUME_SHIFT_PCT:
            return VolumePattern(
                name="Volume Contraction",
                confidence=VOLUME_CONTRACTION_CONFIDENCE,
                bullish=None,
                significance=Significance.MEDIUM,
                description="Decreasing volume - consolidation phase, potential breakout coming",
            )
        return None

    def detect_patterns(self) -> list[VolumePattern]:
        """Detect climax, OBV and volume-shift patterns.

        Returns:
            Patterns in rule order; empty for fewer than 5 candles
        """
        if len(self.series) < MIN_PATTERN_CANDLES:
            return []

        candidates = (self._climax_pattern(), self._obv_pattern(), self._volume_shift_pattern())
        return [pattern for pattern in candidates if pattern is not None]

    # ==================== Accumulation / Distribution ====================

    def calculate_accumulation_distribution(self) -> AccumulationDistributionScore:
        """Score where recent candles close within their range, weighted by volume.

        Closing in the top 30% of the range on an up candle adds to the score,
        closing in the bottom 30% on a down candle subtracts from it.

        Returns:
            AccumulationDistributionScore clamped to [-10, 10]
        """
        if len(self.series) < AD_MIN_CANDLES:
            return AccumulationDistributionScore(
                value=0.0,
                trend=ADTrend.NEUTRAL,
                strength=Strength.WEAK,
                strong_signals=0,
                interpretation="Insufficient data for A/D analysis",
            )

        window = self.series.last(AD_WINDOW)
        mean_volume = float(np.mean(window.volumes))

        score = 0.0
        strong_signals = 0
        for candle in window:
            price_range = candle.high - candle.low
            close_location = (candle.close - candle.low) / price_range if price_range > 0 else 0.5
            price_change = candle.close - candle.open
            multiplier = candle.volume / mean_volume if mean_volume > 0 else 0.0

            if close_location > AD_HIGH_CLOSE and price_change > 0:
                score += close_location * multiplier
            elif close_location < AD_LOW_CLOSE and price_change < 0:
                score -= (1 - close_location) * multiplier
            else:
                continue

            if multiplier > AD_STRONG_VOLUME_MULTIPLIER:
                strong_signals += 1

        value = float(np.clip(score, -AD_SCORE_LIMIT, AD_SCORE_LIMIT))
        trend = classify_ad_trend(value)

        if abs(value) > AD_STRONG_SCORE or strong_signals >= AD_STRONG_SIGNALS:
            strength = Strength.STRONG
        elif abs(value) > AD_TREND_THRESHOLD or strong_signals >= AD_MODERATE_SIGNALS:
            strength = Strength.MODERATE
        else:
            strength = Strength.WEAK

        if trend is ADTrend.ACCUMULATION:
            interpretation = (
                f"{strength.value.upper()} ACCUMULATION: Institutional buying detected - "
                f"{strong_signals} strong volume signals. Bullish outlook."
            )
        elif trend is ADTrend.DISTRIBUTION:
            interpretation = (
                f"{strength.value.upper()} DISTRIBUTION: Institutional selling detected - "
                f"{strong_signals} strong volume signals. Bearish outlook."
            )
        else:
            interpretation = (
                "NEUTRAL: Balanced buying and selling pressure. No clear institutional "
                f"activity ({strong_signals} strong volume signals)."
            )

        return AccumulationDistributionScore(
            value=value,
            trend=trend,
            strength=strength,
            strong_signals=strong_signals,
            interpretation=interpretation,
        )

    # ==================== Volume Trend ====================

    def classify_volume_trend(self) -> VolumeTrend:
        """Compare the last five candles' mean volume with the series mean."""
        mean = self.statistics.mean
        if not self.series or mean == 0:
            return VolumeTrend.STABLE

        recent_avg = float(np.mean(self.series.last(VOLUME_TREND_WINDOW).volumes))
        if recent_avg > mean * VOLUME_TREND_INCREASING_RATIO:
            return VolumeTrend.INCREASING
        if recent_avg < mean * VOLUME_TREND_DECREASING_RATIO:
            return VolumeTrend.DECREASING
        return VolumeTrend.STABLE

    # ==================== Composite ====================

    def analyze(self) -> VolumeAnalysis:
        """Run every volume calculation and the composite recommendation."""
        anomalies = self.detect_anomalies()
        patterns = self.detect_patterns()
        ad_score = self.calculate_accumulation_distribution()
        volume_trend = self.classify_volume_trend()

        return VolumeAnalysis(
            statistics=self.statistics,
            current_volume=self.series[-1].volume if self.series else 0,
            volume_trend=volume_trend,
            anomalies=tuple(anomalies),
            patterns=tuple(patterns),
            accumulation_distribution=ad_score,
            recommendation=recommend_from_volume(ad_score, patterns, volume_trend, anomalies),
        )


def classify_ad_trend(value: float) -> ADTrend:
    """Accumulation above +2, distribution below -2, neutral otherwise."""
    if value > AD_TREND_THRESHOLD:
        return ADTrend.ACCUMULATION
    if value < -AD_TREND_THRESHOLD:
        return ADTrend.DISTRIBUTION
    return ADTrend.NEUTRAL
