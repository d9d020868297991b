"""
Analysis thresholds for marketlens.

Every numeric cut-off used by the analysis engine lives here so the volume,
level and recommendation modules agree on a single definition. All constants
are Final; tunables that operators may override are mirrored in
AnalysisSettings.
"""

from typing import Final


# =============================================================================
# Pivots and Levels
# =============================================================================

PIVOT_WINDOW: Final[int] = 2
"""
Number of candles on each side a pivot must strictly exceed.
A pivot therefore needs a neighbourhood of 2 * PIVOT_WINDOW + 1 candles.
"""

LEVEL_CLUSTER_TOLERANCE: Final[float] = 0.015
"""
Relative distance (1.5%) within which a pivot joins an existing price cluster.
"""

MIN_LEVEL_TOUCHES: Final[int] = 2
"""
Clusters with fewer member pivots than this are not reported as levels.
"""

STRONG_LEVEL_TOUCHES: Final[int] = 4
MODERATE_LEVEL_TOUCHES: Final[int] = 3

LEVEL_BASE_CONFIDENCE: Final[int] = 50
LEVEL_CONFIDENCE_PER_TOUCH: Final[int] = 10
LEVEL_MAX_CONFIDENCE: Final[int] = 95


# =============================================================================
# Trendlines
# =============================================================================

MIN_TRENDLINE_POINTS: Final[int] = 2

MIN_TRENDLINE_CANDLES: Final[int] = 10
"""
Shortest series for which trendlines are fitted.
"""

TRENDLINE_MIN_R_SQUARED: Final[float] = 0.7
"""
Goodness of fit a pivot regression must strictly exceed to be reported.
"""

TRENDLINE_STRONG_R_SQUARED: Final[float] = 0.9
TRENDLINE_MODERATE_R_SQUARED: Final[float] = 0.8

TRENDLINE_DISPLAY_POINTS: Final[int] = 3
"""
Most recent pivots attached to a trendline for charting.
"""


# =============================================================================
# Volume Anomalies
# =============================================================================

ANOMALY_Z_THRESHOLD: Final[float] = 1.5
"""
Minimum absolute z-score (inclusive) for a candle's volume to be anomalous.
"""

ANOMALY_HIGH_Z: Final[float] = 3.0
ANOMALY_MEDIUM_Z: Final[float] = 2.0

ANOMALY_PRICE_MOVE_PCT: Final[float] = 2.0
"""
Same-day price change separating conviction moves from indecision.
"""

MAX_REPORTED_ANOMALIES: Final[int] = 10


# =============================================================================
# Volume Patterns
# =============================================================================

MIN_PATTERN_CANDLES: Final[int] = 5
PATTERN_SHORT_WINDOW: Final[int] = 5
PATTERN_LONG_WINDOW: Final[int] = 10

CLIMAX_VOLUME_MULTIPLIER: Final[float] = 2.5
CLIMAX_PRICE_MOVE_PCT: Final[float] = 1.0
CLIMAX_CONFIDENCE: Final[int] = 85

OBV_TREND_CONFIDENCE: Final[int] = 80
OBV_DIVERGENCE_CONFIDENCE: Final[int] = 70

VOLUME_SHIFT_PCT: Final[float] = 20.0
"""
Half-over-half change in mean volume that marks expansion or contraction.
"""

VOLUME_EXPANSION_CONFIDENCE: Final[int] = 70
VOLUME_CONTRACTION_CONFIDENCE: Final[int] = 65


# =============================================================================
# Volume Trend
# =============================================================================

VOLUME_TREND_WINDOW: Final[int] = 5
VOLUME_TREND_INCREASING_RATIO: Final[float] = 1.2
VOLUME_TREND_DECREASING_RATIO: Final[float] = 0.8


# =============================================================================
# Accumulation / Distribution
# =============================================================================

AD_MIN_CANDLES: Final[int] = 5
AD_WINDOW: Final[int] = 10
AD_SCORE_LIMIT: Final[float] = 10.0
AD_TREND_THRESHOLD: Final[float] = 2.0
AD_STRONG_SCORE: Final[float] = 5.0
AD_HIGH_CLOSE: Final[float] = 0.7
AD_LOW_CLOSE: Final[float] = 0.3
AD_STRONG_VOLUME_MULTIPLIER: Final[float] = 1.5
AD_STRONG_SIGNALS: Final[int] = 3
AD_MODERATE_SIGNALS: Final[int] = 2


# =============================================================================
# Recommendations
# =============================================================================

NEAR_LEVEL_PCT: Final[float] = 1.0
"""
Distance to a level (percent of price) inside which a buy/sell zone is called.
"""

MID_RANGE_PCT: Final[float] = 2.0

DEFAULT_RANGE_BELOW: Final[float] = 0.95
DEFAULT_RANGE_ABOVE: Final[float] = 1.05

AD_RECOMMENDATION_WEIGHT: Final[float] = 2.0
PATTERN_CONFIDENCE_DIVISOR: Final[float] = 20.0

STRONG_BUY_SCORE: Final[float] = 4.0
BUY_SCORE: Final[float] = 2.0
SELL_SCORE: Final[float] = -2.0
STRONG_SELL_SCORE: Final[float] = -4.0


# =============================================================================
# Timeframes
# =============================================================================

TIMEFRAMES: Final[dict[str, tuple[str, str, int]]] = {
    "1D": ("5d", "1d", 5),
    "5D": ("1mo", "1d", 20),
    "1W": ("3mo", "1d", 60),
    "1M": ("6mo", "1d", 120),
    "1Y": ("1y", "1d", 250),
}
"""
Dashboard timeframe code -> (provider range, candle interval, candles kept).
"""

DEFAULT_TIMEFRAME: Final[str] = "1M"
