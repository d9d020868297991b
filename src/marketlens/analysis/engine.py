"""
Market analysis engine.

Runs level detection, trendline fitting, volume analysis and recommendation
synthesis over one candle series and assembles an AnalysisResult. The engine
holds only its configuration, so a single instance can serve concurrent
requests.
"""

from marketlens.analysis.levels import LevelAnalyzer
from marketlens.analysis.models import AnalysisResult
from marketlens.analysis.recommendation import (
    calculate_trading_range,
    find_nearest_levels,
    recommend_from_levels,
)
from marketlens.analysis.volume import VolumeAnalyzer
from marketlens.config import Settings, get_settings
from marketlens.config.constants import (
    ANOMALY_Z_THRESHOLD,
    LEVEL_CLUSTER_TOLERANCE,
    MAX_REPORTED_ANOMALIES,
    MIN_PATTERN_CANDLES,
    PIVOT_WINDOW,
)
from marketlens.data.candles import CandleSeries
from marketlens.utils.logger import get_logger

logger = get_logger(__name__)


class MarketAnalysisEngine:
    """
    Technical analysis of a candle series.

    Example:
        ```python
        engine = MarketAnalysisEngine()
        result = engine.analyze(series)
        print(result.recommendation.message)
        ```
    """

    def __init__(
        self,
        pivot_window: int = PIVOT_WINDOW,
        cluster_tolerance: float = LEVEL_CLUSTER_TOLERANCE,
        anomaly_z_threshold: float = ANOMALY_Z_THRESHOLD,
        max_anomalies: int = MAX_REPORTED_ANOMALIES,
    ):
        """
        Initialize engine.

        Args:
            pivot_window: Candles on each side a pivot must dominate
            cluster_tolerance: Relative distance for pivots to share a level
            anomaly_z_threshold: Minimum |z-score| for a volume anomaly
            max_anomalies: Number of most recent anomalies to report
        """
        self.pivot_window = pivot_window
        self.cluster_tolerance = cluster_tolerance
        self.anomaly_z_threshold = anomaly_z_threshold
        self.max_anomalies = max_anomalies

    def analyze(self, series: CandleSeries) -> AnalysisResult:
        """
        Analyze a candle series.

        Args:
            series: Non-empty candle series

        Returns:
            AnalysisResult for the last candle of the series

        Raises:
            ValueError: If the series is empty
        """
        if not series:
            raise ValueError("Cannot analyze an empty candle series")

        current_price = series.current_price

        level_analyzer = LevelAnalyzer(
            series, window=self.pivot_window, tolerance=self.cluster_tolerance
        )
        pivots = level_analyzer.find_pivots()
        levels = level_analyzer.cluster_levels(pivots)
        trendlines = level_analyzer.fit_trendlines(pivots)

        support, resistance = find_nearest_levels(levels, current_price)

        volume = VolumeAnalyzer(
            series, z_threshold=self.anomaly_z_threshold, max_anomalies=self.max_anomalies
        ).analyze()

        notes = []
        if len(series) < 2 * self.pivot_window + 1:
            notes.append(
                f"Only {len(series)} candles: at least {2 * self.pivot_window + 1} "
                "are needed to detect pivots"
            )
        if len(series) < MIN_PATTERN_CANDLES:
            notes.append(
                f"Only {len(series)} candles: volume patterns and A/D need "
                f"at least {MIN_PATTERN_CANDLES}"
            )

        result = AnalysisResult(
            symbol=series.symbol,
            timeframe=series.timeframe,
            candle_count=len(series),
            as_of=series[-1].timestamp,
            current_price=current_price,
            levels=tuple(levels),
            trendlines=tuple(trendlines),
            nearest_support=support,
            nearest_resistance=resistance,
            trading_range=calculate_trading_range(current_price, support, resistance),
            recommendation=recommend_from_levels(current_price, support, resistance),
            volume=volume,
            notes=tuple(notes),
        )

        logger.debug(
            "analysis_completed",
            symbol=series.symbol,
            timeframe=series.timeframe,
            candles=len(series),
            pivots=len(pivots),
            levels=len(levels),
            trendlines=len(trendlines),
            anomalies=len(volume.anomalies),
            zone=result.recommendation.zone.value,
            volume_tier=volume.recommendation.tier.value,
        )
        return result


def create_engine_from_settings(settings: Settings | None = None) -> MarketAnalysisEngine:
    """
    Create an analysis engine from application settings.

    Args:
        settings: Settings to use, defaults to the cached application settings

    Returns:
        Configured MarketAnalysisEngine
    """
    analysis = (settings or get_settings()).analysis
    return MarketAnalysisEngine(
        pivot_window=analysis.pivot_window,
        cluster_tolerance=analysis.cluster_tolerance,
        anomaly_z_threshold=analysis.anomaly_z_threshold,
        max_anomalies=analysis.max_anomalies,
    )
