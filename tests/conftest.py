"""
Shared pytest fixtures for the marketlens test suite.

This module provides fixtures for:
- Candle series builders (OHLCV rows, high/low-only, close-only)
- Canonical scenarios (monotonic rise, flat market, volume spike, range)
- A finished AnalysisResult for cache and service tests
"""

from collections.abc import Sequence

import pytest

from marketlens.analysis.engine import MarketAnalysisEngine
from marketlens.analysis.models import AnalysisResult
from marketlens.data.candles import CandleSeries

# 2024-01-01T00:00:00Z in epoch milliseconds
START_MS = 1_704_067_200_000
DAY_MS = 86_400_000


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow-running tests")


# ============================================================================
# Series Builders
# ============================================================================


def build_series(
    rows: Sequence[Sequence[float]], symbol: str = "TEST.NS", timeframe: str = "1M"
) -> CandleSeries:
    """Build a daily series from (open, high, low, close, volume) rows."""
    return CandleSeries.from_rows(
        [[START_MS + i * DAY_MS, *row] for i, row in enumerate(rows)],
        symbol=symbol,
        timeframe=timeframe,
    )


def build_hl_series(
    highs: Sequence[float], lows: Sequence[float], volume: int = 1000
) -> CandleSeries:
    """Build a series from highs and lows; open and close sit at the midpoint."""
    rows = []
    for high, low in zip(highs, lows):
        mid = (high + low) / 2
        rows.append((mid, high, low, mid, volume))
    return build_series(rows)


def build_close_series(
    closes: Sequence[float], volumes: Sequence[int] | int = 1000
) -> CandleSeries:
    """Build a series of small up candles ending at each close."""
    if isinstance(volumes, int):
        volumes = [volumes] * len(closes)
    rows = [(c - 0.5, c + 0.5, c - 1, c, v) for c, v in zip(closes, volumes)]
    return build_series(rows)


@pytest.fixture(scope="session")
def make_series():
    """Factory for series from (open, high, low, close, volume) rows."""
    return build_series


@pytest.fixture(scope="session")
def make_hl_series():
    """Factory for series from highs and lows."""
    return build_hl_series


@pytest.fixture(scope="session")
def make_close_series():
    """Factory for series from closes (and optional volumes)."""
    return build_close_series


# ============================================================================
# Scenario Fixtures
# ============================================================================


@pytest.fixture
def rising_series() -> CandleSeries:
    """30 monotonically rising candles with constant volume."""
    return build_close_series([100.0 + i for i in range(30)], volumes=1000)


@pytest.fixture
def flat_series() -> CandleSeries:
    """20 identical candles."""
    return build_series([(100.0, 101.0, 99.0, 100.0, 1000)] * 20)


@pytest.fixture
def spike_series() -> CandleSeries:
    """19 quiet candles followed by a high-volume +5% candle."""
    rows = [(100.0, 101.0, 99.0, 100.0, 1000)] * 19
    rows.append((100.0, 105.5, 99.5, 105.0, 3000))
    return build_series(rows)


@pytest.fixture
def range_series() -> CandleSeries:
    """Oscillation between 100 and 110 producing a support at 99 and a resistance at 111."""
    centres = [100.0, 105.0, 110.0, 105.0] * 5
    return build_hl_series([c + 1 for c in centres], [c - 1 for c in centres])


@pytest.fixture
def analysis_result(range_series) -> AnalysisResult:
    """A finished analysis of the range series."""
    return MarketAnalysisEngine().analyze(range_series)
