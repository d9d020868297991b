"""
Recommendation synthesis.

Turns the detected levels and volume signals into:
    - nearest support/resistance relative to the current price
    - the trading range between them
    - a zone classification (buy zone, sell zone, hold)
    - a five-tier composite volume recommendation
"""

from collections.abc import Sequence

from marketlens.analysis.models import (
    AccumulationDistributionScore,
    Action,
    Level,
    LevelRecommendation,
    RecommendationTier,
    RecommendationZone,
    Significance,
    TradingRange,
    VolumeAnomaly,
    VolumePattern,
    VolumeRecommendation,
    VolumeTrend,
)
from marketlens.config.constants import (
    AD_RECOMMENDATION_WEIGHT,
    BUY_SCORE,
    DEFAULT_RANGE_ABOVE,
    DEFAULT_RANGE_BELOW,
    MID_RANGE_PCT,
    NEAR_LEVEL_PCT,
    PATTERN_CONFIDENCE_DIVISOR,
    SELL_SCORE,
    STRONG_BUY_SCORE,
    STRONG_SELL_SCORE,
)

_TREND_SCORE = {
    VolumeTrend.INCREASING: 1.0,
    VolumeTrend.DECREASING: -1.0,
    VolumeTrend.STABLE: 0.0,
}


def find_nearest_levels(
    levels: Sequence[Level], current_price: float
) -> tuple[Level | None, Level | None]:
    """
    Find the levels bracketing the current price.

    Args:
        levels: Detected levels (any order)
        current_price: Latest close

    Returns:
        (nearest_support, nearest_resistance): the highest level strictly below
        and the lowest level strictly above the price. A level exactly at the
        price is neither.
    """
    below = [level for level in levels if level.price < current_price]
    above = [level for level in levels if level.price > current_price]

    support = max(below, key=lambda level: level.price, default=None)
    resistance = min(above, key=lambda level: level.price, default=None)
    return support, resistance


def calculate_trading_range(
    current_price: float, support: Level | None, resistance: Level | None
) -> TradingRange:
    """Band between the nearest levels, defaulting to 5% either side of price."""
    lower = support.price if support else current_price * DEFAULT_RANGE_BELOW
    upper = resistance.price if resistance else current_price * DEFAULT_RANGE_ABOVE
    width = upper - lower
    return TradingRange(
        lower=lower,
        upper=upper,
        width=width,
        width_percent=width / current_price * 100,
    )


def recommend_from_levels(
    current_price: float, support: Level | None, resistance: Level | None
) -> LevelRecommendation:
    """
    Classify the current price against the nearest levels.

    The first matching rule wins: no levels at all, within 1% of support,
    within 1% of resistance, more than 2% from both, otherwise plain hold.

    Args:
        current_price: Latest close
        support: Nearest support below the price, if any
        resistance: Nearest resistance above the price, if any

    Returns:
        LevelRecommendation with zone, action and message
    """
    if support is None and resistance is None:
        return LevelRecommendation(
            zone=RecommendationZone.INSUFFICIENT_DATA,
            action=Action.HOLD,
            message="HOLD: Insufficient support/resistance data. Wait for clearer levels.",
        )

    dist_to_support = (
        (current_price - support.price) / current_price * 100 if support else None
    )
    dist_to_resistance = (
        (resistance.price - current_price) / current_price * 100 if resistance else None
    )

    if support is not None and dist_to_support < NEAR_LEVEL_PCT:
        return LevelRecommendation(
            zone=RecommendationZone.BUY_ZONE,
            action=Action.BUY,
            message=(
                f"BUY ZONE: Price near {support.strength.value} support at "
                f"₹{support.price:.2f} ({dist_to_support:.1f}% away). Good risk/reward."
            ),
        )

    if resistance is not None and dist_to_resistance < NEAR_LEVEL_PCT:
        return LevelRecommendation(
            zone=RecommendationZone.SELL_ZONE,
            action=Action.SELL,
            message=(
                f"SELL ZONE: Price near {resistance.strength.value} resistance at "
                f"₹{resistance.price:.2f} ({dist_to_resistance:.1f}% away). "
                "Consider booking profits."
            ),
        )

    if (
        support is not None
        and resistance is not None
        and dist_to_support > MID_RANGE_PCT
        and dist_to_resistance > MID_RANGE_PCT
    ):
        if dist_to_support < dist_to_resistance:
            message = (
                "HOLD: Price in lower range, closer to support at "
                f"₹{support.price:.2f}. Watch for bounce or breakdown."
            )
        else:
            message = (
                "HOLD: Price in upper range, closer to resistance at "
                f"₹{resistance.price:.2f}. Wait for dip to support at ₹{support.price:.2f}."
            )
        return LevelRecommendation(
            zone=RecommendationZone.HOLD_IN_RANGE, action=Action.HOLD, message=message
        )

    named = []
    if support is not None:
        named.append(f"Support: ₹{support.price:.2f}")
    if resistance is not None:
        named.append(f"Resistance: ₹{resistance.price:.2f}")
    return LevelRecommendation(
        zone=RecommendationZone.HOLD,
        action=Action.HOLD,
        message=f"HOLD: Monitor key levels - {', '.join(named)}",
    )


def score_volume_signals(
    ad_score: AccumulationDistributionScore,
    patterns: Sequence[VolumePattern],
    volume_trend: VolumeTrend,
) -> float:
    """
    Composite volume score.

    score = 2 * A/D + (bullish confidence - bearish confidence) / 20 + trend,
    where trend is +1 for increasing volume, -1 for decreasing and 0 otherwise.
    Patterns with no direction count on neither side.
    """
    bullish = sum(p.confidence for p in patterns if p.bullish is True)
    bearish = sum(p.confidence for p in patterns if p.bullish is False)

    return (
        ad_score.value * AD_RECOMMENDATION_WEIGHT
        + (bullish - bearish) / PATTERN_CONFIDENCE_DIVISOR
        + _TREND_SCORE[volume_trend]
    )


def tier_for_score(score: float) -> RecommendationTier:
    """Bucket a composite score into five tiers."""
    if score > STRONG_BUY_SCORE:
        return RecommendationTier.STRONG_BUY
    if score > BUY_SCORE:
        return RecommendationTier.BUY
    if score > SELL_SCORE:
        return RecommendationTier.HOLD
    if score > STRONG_SELL_SCORE:
        return RecommendationTier.SELL
    return RecommendationTier.STRONG_SELL


def recommend_from_volume(
    ad_score: AccumulationDistributionScore,
    patterns: Sequence[VolumePattern],
    volume_trend: VolumeTrend,
    anomalies: Sequence[VolumeAnomaly],
) -> VolumeRecommendation:
    """Build the composite volume recommendation."""
    score = score_volume_signals(ad_score, patterns, volume_trend)
    tier = tier_for_score(score)
    trend = volume_trend.value

    if tier is RecommendationTier.STRONG_BUY:
        message = (
            f"STRONG BUY: Strong accumulation pattern detected with {trend} volume. "
            "High probability of upward move."
        )
    elif tier is RecommendationTier.BUY:
        message = "BUY: Positive volume indicators suggest accumulation. Consider entry positions."
    elif tier is RecommendationTier.HOLD:
        message = (
            f"HOLD: Mixed volume signals. {trend.capitalize()} volume trend with "
            "neutral A/D. Wait for clarity."
        )
    elif tier is RecommendationTier.SELL:
        message = (
            "SELL: Negative volume indicators suggest distribution. Consider reducing exposure."
        )
    else:
        high_anomalies = sum(1 for a in anomalies if a.significance is Significance.HIGH)
        message = (
            f"STRONG SELL: Strong distribution pattern detected. {high_anomalies} "
            "high-impact anomalies. High risk."
        )

    return VolumeRecommendation(score=score, tier=tier, message=message)
