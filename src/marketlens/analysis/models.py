"""
Result types produced by the analysis engine.

Every entity is a frozen dataclass so a finished AnalysisResult can be shared
between concurrent callers and cached without defensive copies. `to_dict()`
yields JSON-ready primitives for the display layer; `from_dict()` restores
cached results.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


# =============================================================================
# Enumerations
# =============================================================================


class PivotKind(str, Enum):
    """Local extremum type."""

    HIGH = "high"
    LOW = "low"


class LevelKind(str, Enum):
    """Horizontal level type."""

    SUPPORT = "support"
    RESISTANCE = "resistance"


class Strength(str, Enum):
    """Qualitative strength shared by levels, trendlines and A/D scores."""

    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


class TrendlineKind(str, Enum):
    """Sloped boundary type."""

    SUPPORT = "support-trendline"
    RESISTANCE = "resistance-trendline"


class AnomalyKind(str, Enum):
    """Direction of a volume anomaly."""

    SPIKE = "spike"
    DROP = "drop"


class Significance(str, Enum):
    """Significance of an anomaly or pattern."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ADTrend(str, Enum):
    """Accumulation/distribution classification."""

    ACCUMULATION = "accumulation"
    DISTRIBUTION = "distribution"
    NEUTRAL = "neutral"


class VolumeTrend(str, Enum):
    """Recent volume relative to the series average."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class RecommendationZone(str, Enum):
    """Where the current price sits relative to the nearest levels."""

    INSUFFICIENT_DATA = "insufficient-data"
    BUY_ZONE = "buy-zone"
    SELL_ZONE = "sell-zone"
    HOLD_IN_RANGE = "hold-in-range"
    HOLD = "hold"


class Action(str, Enum):
    """Suggested action."""

    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class RecommendationTier(str, Enum):
    """Five-tier bucket of the composite volume score."""

    STRONG_BUY = "strong-buy"
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    STRONG_SELL = "strong-sell"


# =============================================================================
# Levels and Trendlines
# =============================================================================


@dataclass(frozen=True)
class Pivot:
    """
    Local high or low of the candle series.

    Attributes:
        price: Candle high (HIGH pivot) or low (LOW pivot)
        timestamp: Candle timestamp
        index: Position of the candle in the series
        kind: HIGH or LOW
    """

    price: float
    timestamp: int
    index: int
    kind: PivotKind


@dataclass(frozen=True)
class Level:
    """
    Horizontal support or resistance level built from clustered pivots.

    Attributes:
        price: Cluster centroid
        kind: SUPPORT or RESISTANCE
        touches: Number of pivots in the cluster (>= 2)
        strength: Derived from touches
        first_touch: Date of the earliest member pivot
        last_touch: Date of the latest member pivot
        confidence: min(95, 50 + 10 * touches)
        description: Human-readable summary
    """

    price: float
    kind: LevelKind
    touches: int
    strength: Strength
    first_touch: date
    last_touch: date
    confidence: int
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "type": self.kind.value,
            "touches": self.touches,
            "strength": self.strength.value,
            "firstTouch": self.first_touch.isoformat(),
            "lastTouch": self.last_touch.isoformat(),
            "confidence": self.confidence,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Level":
        return cls(
            price=float(data["price"]),
            kind=LevelKind(data["type"]),
            touches=int(data["touches"]),
            strength=Strength(data["strength"]),
            first_touch=date.fromisoformat(data["firstTouch"]),
            last_touch=date.fromisoformat(data["lastTouch"]),
            confidence=int(data["confidence"]),
            description=data["description"],
        )


@dataclass(frozen=True)
class TrendlinePoint:
    """Pivot attached to a trendline for display."""

    index: int
    price: float
    date: date

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.index, "y": self.price, "date": self.date.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrendlinePoint":
        return cls(index=int(data["x"]), price=float(data["y"]), date=date.fromisoformat(data["date"]))


@dataclass(frozen=True)
class Trendline:
    """
    Least-squares line through a pivot subsequence.

    Attributes:
        kind: SUPPORT (rising lows) or RESISTANCE (falling highs)
        points: Up to three most recent contributing pivots
        slope: Price change per candle
        intercept: Fitted price at index 0
        goodness_of_fit: Coefficient of determination (R squared)
        strength: Derived from goodness_of_fit
        description: Human-readable summary
    """

    kind: TrendlineKind
    points: tuple[TrendlinePoint, ...]
    slope: float
    intercept: float
    goodness_of_fit: float
    strength: Strength
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "points": [p.to_dict() for p in self.points],
            "slope": self.slope,
            "intercept": self.intercept,
            "rSquared": self.goodness_of_fit,
            "strength": self.strength.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trendline":
        return cls(
            kind=TrendlineKind(data["type"]),
            points=tuple(TrendlinePoint.from_dict(p) for p in data["points"]),
            slope=float(data["slope"]),
            intercept=float(data["intercept"]),
            goodness_of_fit=float(data["rSquared"]),
            strength=Strength(data["strength"]),
            description=data["description"],
        )


@dataclass(frozen=True)
class TradingRange:
    """Band between the nearest support and resistance (or +/-5% defaults)."""

    lower: float
    upper: float
    width: float
    width_percent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "lower": round(self.lower, 2),
            "upper": round(self.upper, 2),
            "width": round(self.width, 2),
            "widthPercent": round(self.width_percent, 2),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TradingRange":
        return cls(
            lower=float(data["lower"]),
            upper=float(data["upper"]),
            width=float(data["width"]),
            width_percent=float(data["widthPercent"]),
        )


# =============================================================================
# Volume
# =============================================================================


@dataclass(frozen=True)
class VolumeStatistics:
    """Mean, population standard deviation and median of volume."""

    mean: float
    std_dev: float
    median: float

    def to_dict(self) -> dict[str, Any]:
        return {"mean": self.mean, "stdDev": self.std_dev, "median": self.median}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VolumeStatistics":
        return cls(mean=float(data["mean"]), std_dev=float(data["stdDev"]), median=float(data["median"]))


@dataclass(frozen=True)
class VolumeAnomaly:
    """
    Candle whose volume deviates at least 1.5 standard deviations from the mean.

    Attributes:
        date: Candle date
        volume: Candle volume
        percent_deviation_from_mean: (volume - mean) / mean * 100
        z_score: (volume - mean) / std_dev
        kind: SPIKE (above mean) or DROP (below)
        significance: HIGH above 3 sigma, MEDIUM above 2, else LOW
        sameday_price_change_percent: (close - open) / open * 100
        interpretation: Human-readable reading of volume and price together
    """

    date: date
    volume: int
    percent_deviation_from_mean: float
    z_score: float
    kind: AnomalyKind
    significance: Significance
    sameday_price_change_percent: float
    interpretation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "volume": self.volume,
            "percentageChange": round(self.percent_deviation_from_mean),
            "zScore": round(self.z_score, 2),
            "type": self.kind.value,
            "significance": self.significance.value,
            "priceChange": round(self.sameday_price_change_percent, 2),
            "interpretation": self.interpretation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VolumeAnomaly":
        return cls(
            date=date.fromisoformat(data["date"]),
            volume=int(data["volume"]),
            percent_deviation_from_mean=float(data["percentageChange"]),
            z_score=float(data["zScore"]),
            kind=AnomalyKind(data["type"]),
            significance=Significance(data["significance"]),
            sameday_price_change_percent=float(data["priceChange"]),
            interpretation=data["interpretation"],
        )


@dataclass(frozen=True)
class VolumePattern:
    """
    Named multi-candle volume pattern.

    Attributes:
        name: Pattern name (e.g. "Climax Volume")
        confidence: 0-100
        bullish: Direction implied by the pattern, None when unclear
        significance: LOW, MEDIUM or HIGH
        description: Human-readable summary
    """

    name: str
    confidence: int
    bullish: bool | None
    significance: Significance
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.name,
            "confidence": self.confidence,
            "bullish": self.bullish,
            "significance": self.significance.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VolumePattern":
        return cls(
            name=data["pattern"],
            confidence=int(data["confidence"]),
            bullish=data["bullish"],
            significance=Significance(data["significance"]),
            description=data["description"],
        )


@dataclass(frozen=True)
class AccumulationDistributionScore:
    """
    Volume-weighted close-location score of the recent window.

    Attributes:
        value: Score clamped to [-10, 10]
        trend: ACCUMULATION above 2, DISTRIBUTION below -2, else NEUTRAL
        strength: From |value| and the number of strong-volume signals
        strong_signals: Contributing candles with volume above 1.5x the window mean
        interpretation: Human-readable summary
    """

    value: float
    trend: ADTrend
    strength: Strength
    strong_signals: int
    interpretation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": round(self.value, 2),
            "trend": self.trend.value,
            "strength": self.strength.value,
            "strongSignals": self.strong_signals,
            "interpretation": self.interpretation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccumulationDistributionScore":
        return cls(
            value=float(data["score"]),
            trend=ADTrend(data["trend"]),
            strength=Strength(data["strength"]),
            strong_signals=int(data["strongSignals"]),
            interpretation=data["interpretation"],
        )


# =============================================================================
# Recommendations
# =============================================================================


@dataclass(frozen=True)
class LevelRecommendation:
    """Zone classification derived from the nearest support and resistance."""

    zone: RecommendationZone
    action: Action
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"zone": self.zone.value, "action": self.action.value, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LevelRecommendation":
        return cls(
            zone=RecommendationZone(data["zone"]),
            action=Action(data["action"]),
            message=data["message"],
        )


@dataclass(frozen=True)
class VolumeRecommendation:
    """Composite volume score and its five-tier bucket."""

    score: float
    tier: RecommendationTier
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"score": round(self.score, 2), "tier": self.tier.value, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VolumeRecommendation":
        return cls(
            score=float(data["score"]),
            tier=RecommendationTier(data["tier"]),
            message=data["message"],
        )


@dataclass(frozen=True)
class VolumeAnalysis:
    """All volume-derived outputs of one analysis."""

    statistics: VolumeStatistics
    current_volume: int
    volume_trend: VolumeTrend
    anomalies: tuple[VolumeAnomaly, ...]
    patterns: tuple[VolumePattern, ...]
    accumulation_distribution: AccumulationDistributionScore
    recommendation: VolumeRecommendation

    def to_dict(self) -> dict[str, Any]:
        return {
            "statistics": self.statistics.to_dict(),
            "averageVolume": round(self.statistics.mean),
            "currentVolume": self.current_volume,
            "volumeTrend": self.volume_trend.value,
            "anomalies": [a.to_dict() for a in self.anomalies],
            "patterns": [p.to_dict() for p in self.patterns],
            "accumulationDistribution": self.accumulation_distribution.to_dict(),
            "recommendation": self.recommendation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VolumeAnalysis":
        return cls(
            statistics=VolumeStatistics.from_dict(data["statistics"]),
            current_volume=int(data["currentVolume"]),
            volume_trend=VolumeTrend(data["volumeTrend"]),
            anomalies=tuple(VolumeAnomaly.from_dict(a) for a in data["anomalies"]),
            patterns=tuple(VolumePattern.from_dict(p) for p in data["patterns"]),
            accumulation_distribution=AccumulationDistributionScore.from_dict(
                data["accumulationDistribution"]
            ),
            recommendation=VolumeRecommendation.from_dict(data["recommendation"]),
        )


@dataclass(frozen=True)
class AnalysisResult:
    """
    Complete technical analysis of one candle series.

    Attributes:
        symbol: Instrument symbol
        timeframe: Timeframe code
        candle_count: Number of candles analysed
        as_of: Timestamp of the last candle
        current_price: Close of the last candle
        levels: Support/resistance levels, highest price first
        trendlines: Qualifying support/resistance trendlines
        nearest_support: Highest level strictly below current price
        nearest_resistance: Lowest level strictly above current price
        trading_range: Band between nearest levels
        recommendation: Level zone classification
        volume: Volume statistics, anomalies, patterns and A/D score
    """

    symbol: str
    timeframe: str
    candle_count: int
    as_of: int
    current_price: float
    levels: tuple[Level, ...]
    trendlines: tuple[Trendline, ...]
    nearest_support: Level | None
    nearest_resistance: Level | None
    trading_range: TradingRange
    recommendation: LevelRecommendation
    volume: VolumeAnalysis
    notes: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the display-layer representation."""
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "candleCount": self.candle_count,
            "asOf": self.as_of,
            "currentPrice": round(self.current_price, 2),
            "levels": [level.to_dict() for level in self.levels],
            "trendlines": [t.to_dict() for t in self.trendlines],
            "nearestSupport": self.nearest_support.to_dict() if self.nearest_support else None,
            "nearestResistance": (
                self.nearest_resistance.to_dict() if self.nearest_resistance else None
            ),
            "tradingRange": self.trading_range.to_dict(),
            "recommendation": self.recommendation.to_dict(),
            "volume": self.volume.to_dict(),
            "notes": list(self.notes),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisResult":
        """Rebuild a result from `to_dict()` output (e.g. a cache entry)."""
        support = data.get("nearestSupport")
        resistance = data.get("nearestResistance")
        return cls(
            symbol=data["symbol"],
            timeframe=data["timeframe"],
            candle_count=int(data["candleCount"]),
            as_of=int(data["asOf"]),
            current_price=float(data["currentPrice"]),
            levels=tuple(Level.from_dict(level) for level in data["levels"]),
            trendlines=tuple(Trendline.from_dict(t) for t in data["trendlines"]),
            nearest_support=Level.from_dict(support) if support else None,
            nearest_resistance=Level.from_dict(resistance) if resistance else None,
            trading_range=TradingRange.from_dict(data["tradingRange"]),
            recommendation=LevelRecommendation.from_dict(data["recommendation"]),
            volume=VolumeAnalysis.from_dict(data["volume"]),
            notes=tuple(data.get("notes", ())),
        )
