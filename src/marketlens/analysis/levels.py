"""
Support/Resistance Detection Module.

Finds local pivots in a candle series, clusters nearby pivot prices into
horizontal levels and fits least-squares trendlines through the pivot lows
(support) and pivot highs (resistance).

Example Usage:
    ```python
    from marketlens.analysis.levels import LevelAnalyzer

    analyzer = LevelAnalyzer(series)
    pivots = analyzer.find_pivots()
    levels = analyzer.cluster_levels(pivots)
    trendlines = analyzer.fit_trendlines(pivots)
    ```
"""

from collections.abc import Sequence
from typing import NamedTuple

import numpy as np

from marketlens.analysis.models import (
    Level,
    LevelKind,
    Pivot,
    PivotKind,
    Strength,
    Trendline,
    TrendlineKind,
    TrendlinePoint,
)
from marketlens.config.constants import (
    LEVEL_BASE_CONFIDENCE,
    LEVEL_CLUSTER_TOLERANCE,
    LEVEL_CONFIDENCE_PER_TOUCH,
    LEVEL_MAX_CONFIDENCE,
    MIN_LEVEL_TOUCHES,
    MIN_TRENDLINE_CANDLES,
    MIN_TRENDLINE_POINTS,
    MODERATE_LEVEL_TOUCHES,
    PIVOT_WINDOW,
    STRONG_LEVEL_TOUCHES,
    TRENDLINE_DISPLAY_POINTS,
    TRENDLINE_MIN_R_SQUARED,
    TRENDLINE_MODERATE_R_SQUARED,
    TRENDLINE_STRONG_R_SQUARED,
)
from marketlens.data.candles import CandleSeries, timestamp_to_datetime


class LineFit(NamedTuple):
    """Ordinary least-squares fit of price against candle index."""

    slope: float
    intercept: float
    r_squared: float


def fit_line(x: Sequence[float], y: Sequence[float]) -> LineFit:
    """
    Fit y = slope * x + intercept by least squares.

    R squared is 1 - SSres/SStot, and 0 when every y is identical.

    Args:
        x: Candle indices (at least two distinct values)
        y: Prices

    Returns:
        LineFit(slope, intercept, r_squared)
    """
    x_arr = np.asarray(x, dtype=np.float64)
    y_arr = np.asarray(y, dtype=np.float64)
    slope, intercept = np.polyfit(x_arr, y_arr, 1)

    residuals = y_arr - (slope * x_arr + intercept)
    ss_res = float(np.sum(residuals**2))
    ss_tot = float(np.sum((y_arr - y_arr.mean()) ** 2))
    r_squared = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0

    return LineFit(slope=float(slope), intercept=float(intercept), r_squared=r_squared)


def level_strength(touches: int) -> Strength:
    """Strong from four touches, moderate at three, weak otherwise."""
    if touches >= STRONG_LEVEL_TOUCHES:
        return Strength.STRONG
    if touches >= MODERATE_LEVEL_TOUCHES:
        return Strength.MODERATE
    return Strength.WEAK


def trendline_strength(r_squared: float) -> Strength:
    """Strong above R² 0.9, moderate above 0.8, weak otherwise."""
    if r_squared > TRENDLINE_STRONG_R_SQUARED:
        return Strength.STRONG
    if r_squared > TRENDLINE_MODERATE_R_SQUARED:
        return Strength.MODERATE
    return Strength.WEAK


class _PivotCluster:
    """Pivots grouped around a running-mean centroid."""

    def __init__(self, first: Pivot):
        self.members = [first]
        self._total = first.price

    @property
    def centroid(self) -> float:
        return self._total / len(self.members)

    def accepts(self, price: float, tolerance: float) -> bool:
        centroid = self.centroid
        return abs(price - centroid) / min(price, centroid) <= tolerance

    def add(self, pivot: Pivot) -> None:
        self.members.append(pivot)
        self._total += pivot.price


class LevelAnalyzer:
    """
    Pivot, level and trendline detection for one candle series.

    Attributes:
        series: Candle series being analysed
        window: Pivot neighbourhood radius (candles on each side)
        tolerance: Relative distance within which pivots share a level
    """

    def __init__(
        self,
        series: CandleSeries,
        window: int = PIVOT_WINDOW,
        tolerance: float = LEVEL_CLUSTER_TOLERANCE,
    ):
        if window < 1:
            raise ValueError(f"Pivot window must be at least 1, got {window}")
        self.series = series
        self.window = window
        self.tolerance = tolerance

    # ==================== Pivots ====================

    def find_pivots(self) -> list[Pivot]:
        """
        Find local highs and lows.

        A candle is a HIGH pivot when its high is strictly greater than the
        highs of the `window` candles on each side, and a LOW pivot when its
        low is strictly less than their lows. Equal neighbours never pivot.

        Returns:
            Pivots ordered by index, HIGH before LOW for the same candle
        """
        n = len(self.series)
        w = self.window
        if n < 2 * w + 1:
            return []

        highs = self.series.highs
        lows = self.series.lows
        centre = np.arange(w, n - w)

        is_high = np.ones(len(centre), dtype=bool)
        is_low = np.ones(len(centre), dtype=bool)
        for offset in range(1, w + 1):
            is_high &= highs[centre] > highs[centre - offset]
            is_high &= highs[centre] > highs[centre + offset]
            is_low &= lows[centre] < lows[centre - offset]
            is_low &= lows[centre] < lows[centre + offset]

        pivots: list[Pivot] = []
        for pos, index in enumerate(centre):
            i = int(index)
            candle = self.series[i]
            if is_high[pos]:
                pivots.append(
                    Pivot(price=candle.high, timestamp=candle.timestamp, index=i, kind=PivotKind.HIGH)
                )
            if is_low[pos]:
                pivots.append(
                    Pivot(price=candle.low, timestamp=candle.timestamp, index=i, kind=PivotKind.LOW)
                )

        return pivots

    # ==================== Levels ====================

    def cluster_levels(self, pivots: Sequence[Pivot]) -> list[Level]:
        """
        Cluster pivot prices into horizontal levels.

        Each pivot joins the first cluster whose centroid is within the
        tolerance, otherwise it starts a new cluster. Clusters need at least
        two pivots; a cluster with at least as many lows as highs is support.

        Args:
            pivots: Pivots in index order

        Returns:
            Levels sorted by price, highest first
        """
        clusters: list[_PivotCluster] = []
        for pivot in pivots:
            for cluster in clusters:
                if cluster.accepts(pivot.price, self.tolerance):
                    cluster.add(pivot)
                    break
            else:
                clusters.append(_PivotCluster(pivot))

        levels = [
            self._build_level(cluster)
            for cluster in clusters
            if len(cluster.members) >= MIN_LEVEL_TOUCHES
        ]
        levels.sort(key=lambda level: level.price, reverse=True)
        return levels

    def _build_level(self, cluster: _PivotCluster) -> Level:
        members = cluster.members
        lows = sum(1 for p in members if p.kind is PivotKind.LOW)
        kind = LevelKind.SUPPORT if lows >= len(members) - lows else LevelKind.RESISTANCE

        touches = len(members)
        strength = level_strength(touches)
        price = round(cluster.centroid, 2)
        timestamps = [p.timestamp for p in members]

        return Level(
            price=price,
            kind=kind,
            touches=touches,
            strength=strength,
            first_touch=timestamp_to_datetime(min(timestamps)).date(),
            last_touch=timestamp_to_datetime(max(timestamps)).date(),
            confidence=min(
                LEVEL_MAX_CONFIDENCE, LEVEL_BASE_CONFIDENCE + LEVEL_CONFIDENCE_PER_TOUCH * touches
            ),
            description=(
                f"{kind.value.capitalize()} at ₹{price:.2f} tested {touches} times "
                f"({strength.value} level)"
            ),
        )

    # ==================== Trendlines ====================

    def fit_trendlines(self, pivots: Sequence[Pivot]) -> list[Trendline]:
        """
        Fit an ascending support line through pivot lows and a descending
        resistance line through pivot highs.

        A line is kept only when R² exceeds 0.7 and its slope has the right
        sign. All pivots of a kind are fitted; the last three are attached
        for display. Series shorter than 10 candles get no trendlines.

        Returns:
            Zero, one or two trendlines (support first)
        """
        if len(self.series) < MIN_TRENDLINE_CANDLES:
            return []

        trendlines = []

        support = self._fit(pivots, PivotKind.LOW, TrendlineKind.SUPPORT)
        if support is not None:
            trendlines.append(support)

        resistance = self._fit(pivots, PivotKind.HIGH, TrendlineKind.RESISTANCE)
        if resistance is not None:
            trendlines.append(resistance)

        return trendlines

    def _fit(
        self, pivots: Sequence[Pivot], pivot_kind: PivotKind, kind: TrendlineKind
    ) -> Trendline | None:
        points = [p for p in pivots if p.kind is pivot_kind]
        if len(points) < MIN_TRENDLINE_POINTS:
            return None

        fit = fit_line([p.index for p in points], [p.price for p in points])
        if fit.r_squared <= TRENDLINE_MIN_R_SQUARED:
            return None

        if kind is TrendlineKind.SUPPORT:
            if fit.slope <= 0:
                return None
            description = "Ascending support trendline - bullish trend intact"
        else:
            if fit.slope >= 0:
                return None
            description = "Descending resistance trendline - bearish pressure"

        display = tuple(
            TrendlinePoint(
                index=p.index, price=p.price, date=timestamp_to_datetime(p.timestamp).date()
            )
            for p in points[-TRENDLINE_DISPLAY_POINTS:]
        )

        return Trendline(
            kind=kind,
            points=display,
            slope=fit.slope,
            intercept=fit.intercept,
            goodness_of_fit=fit.r_squared,
            strength=trendline_strength(fit.r_squared),
            description=description,
        )
