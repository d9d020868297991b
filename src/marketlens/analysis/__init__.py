"""
Analysis module for marketlens.

Provides support/resistance detection, trendline fitting, volume analysis and
recommendation synthesis over candle series.
"""

from .engine import MarketAnalysisEngine, create_engine_from_settings
from .levels import LevelAnalyzer, LineFit, fit_line
from .models import (
    AccumulationDistributionScore,
    Action,
    ADTrend,
    AnalysisResult,
    AnomalyKind,
    Level,
    LevelKind,
    LevelRecommendation,
    Pivot,
    PivotKind,
    RecommendationTier,
    RecommendationZone,
    Significance,
    Strength,
    TradingRange,
    Trendline,
    TrendlineKind,
    TrendlinePoint,
    VolumeAnalysis,
    VolumeAnomaly,
    VolumePattern,
    VolumeRecommendation,
    VolumeStatistics,
    VolumeTrend,
)
from .recommendation import (
    calculate_trading_range,
    find_nearest_levels,
    recommend_from_levels,
    recommend_from_volume,
)
from .volume import VolumeAnalyzer, anomaly_significance, calculate_volume_statistics

__all__ = [
    # Engine
    "MarketAnalysisEngine",
    "create_engine_from_settings",
    # Levels
    "LevelAnalyzer",
    "LineFit",
    "fit_line",
    # Volume
    "VolumeAnalyzer",
    "anomaly_significance",
    "calculate_volume_statistics",
    # Recommendations
    "calculate_trading_range",
    "find_nearest_levels",
    "recommend_from_levels",
    "recommend_from_volume",
    # Models
    "AnalysisResult",
    "Pivot",
    "PivotKind",
    "Level",
    "LevelKind",
    "Trendline",
    "TrendlineKind",
    "TrendlinePoint",
    "TradingRange",
    "Strength",
    "VolumeAnalysis",
    "VolumeAnomaly",
    "VolumePattern",
    "VolumeStatistics",
    "VolumeTrend",
    "AnomalyKind",
    "Significance",
    "AccumulationDistributionScore",
    "ADTrend",
    "LevelRecommendation",
    "RecommendationZone",
    "Action",
    "VolumeRecommendation",
    "RecommendationTier",
]
