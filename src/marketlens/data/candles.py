"""
Candle series data contract.

A CandleSeries is the only input of the analysis engine: an immutable,
chronologically ordered run of OHLCV candles for one symbol and timeframe.
Invariants are checked once at construction so the analysis code can rely on
them without re-validating.

Example Usage:
    ```python
    from marketlens.data.candles import Candle, CandleSeries

    series = CandleSeries.from_rows(
        [[1704067200000, 100.0, 102.0, 99.5, 101.2, 120000], ...],
        symbol="RELIANCE.NS",
        timeframe="1M",
    )
    closes = series.closes          # read-only numpy array
    frame = series.to_frame()       # pandas DataFrame indexed by timestamp
    ```
"""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, date, datetime
from functools import cached_property
import math

import numpy as np
import pandas as pd

# Epoch values at or above this are milliseconds (10^11 s is the year 5138)
_MILLISECOND_CUTOFF = 10**11


def timestamp_to_datetime(timestamp: int) -> datetime:
    """Convert an epoch timestamp in seconds or milliseconds to a UTC datetime."""
    if timestamp >= _MILLISECOND_CUTOFF:
        return datetime.fromtimestamp(timestamp / 1000, tz=UTC)
    return datetime.fromtimestamp(timestamp, tz=UTC)


@dataclass(frozen=True)
class Candle:
    """
    One OHLCV sample.

    Attributes:
        timestamp: Epoch time in seconds or milliseconds
        open: Opening price
        high: Highest price in period
        low: Lowest price in period
        close: Closing price
        volume: Traded quantity
    """

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: int

    def __post_init__(self) -> None:
        """Validate price/volume invariants."""
        prices = (self.open, self.high, self.low, self.close)
        if not all(math.isfinite(p) and p > 0 for p in prices):
            raise ValueError(f"Candle prices must be positive and finite: {prices}")
        if self.volume < 0:
            raise ValueError(f"Candle volume must be non-negative, got {self.volume}")
        if self.low > self.high:
            raise ValueError(f"Candle low {self.low} is above high {self.high}")
        if not (self.low <= self.open <= self.high and self.low <= self.close <= self.high):
            raise ValueError(
                f"Candle open/close outside range [{self.low}, {self.high}] "
                f"at timestamp {self.timestamp}"
            )

    @classmethod
    def from_row(cls, row: Sequence) -> "Candle":
        """
        Create a Candle from an array row.

        Args:
            row: [timestamp, open, high, low, close, volume]

        Returns:
            Candle instance
        """
        return cls(
            timestamp=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=int(row[5]),
        )

    @property
    def as_datetime(self) -> datetime:
        """UTC datetime of the candle."""
        return timestamp_to_datetime(self.timestamp)

    @property
    def date(self) -> date:
        """UTC calendar date of the candle."""
        return self.as_datetime.date()

    @property
    def change_percent(self) -> float:
        """Same-day price change from open to close, in percent."""
        return (self.close - self.open) / self.open * 100

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return asdict(self)


@dataclass(frozen=True, init=False)
class CandleSeries:
    """
    Immutable, strictly time-ordered sequence of candles.

    Attributes:
        candles: Candles in increasing timestamp order
        symbol: Instrument symbol the candles belong to
        timeframe: Timeframe code the candles were requested for
    """

    candles: tuple[Candle, ...]
    symbol: str = ""
    timeframe: str = ""

    def __init__(self, candles: Iterable[Candle], symbol: str = "", timeframe: str = "") -> None:
        object.__setattr__(self, "candles", tuple(candles))
        object.__setattr__(self, "symbol", symbol)
        object.__setattr__(self, "timeframe", timeframe)
        self._validate_order()

    def _validate_order(self) -> None:
        for previous, current in zip(self.candles, self.candles[1:]):
            if current.timestamp <= previous.timestamp:
                raise ValueError(
                    "Candle timestamps must be strictly increasing: "
                    f"{previous.timestamp} followed by {current.timestamp}"
                )

    # ==================== Constructors ====================

    @classmethod
    def from_rows(
        cls, rows: Iterable[Sequence], symbol: str = "", timeframe: str = ""
    ) -> "CandleSeries":
        """
        Build a series from [timestamp, open, high, low, close, volume] rows.

        Raises:
            ValueError: If any row violates the candle invariants or the
                timestamps are not strictly increasing
        """
        return cls((Candle.from_row(row) for row in rows), symbol=symbol, timeframe=timeframe)

    @classmethod
    def from_frame(
        cls, frame: pd.DataFrame, symbol: str = "", timeframe: str = ""
    ) -> "CandleSeries":
        """
        Build a series from a DataFrame with open/high/low/close/volume columns.

        The timestamp is taken from a "timestamp" column when present, otherwise
        from the index. Datetime values are converted to epoch milliseconds.
        """
        required_cols = {"open", "high", "low", "close", "volume"}
        if not required_cols.issubset(frame.columns):
            raise ValueError(f"Data must contain columns: {required_cols}")

        stamps = frame["timestamp"] if "timestamp" in frame.columns else frame.index.to_series()
        if pd.api.types.is_datetime64_any_dtype(stamps):
            stamps = pd.to_datetime(stamps, utc=True)
            stamps = (stamps - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(milliseconds=1)

        rows = zip(
            stamps.to_numpy(),
            frame["open"].to_numpy(),
            frame["high"].to_numpy(),
            frame["low"].to_numpy(),
            frame["close"].to_numpy(),
            frame["volume"].to_numpy(),
        )
        return cls.from_rows(rows, symbol=symbol, timeframe=timeframe)

    # ==================== Sequence protocol ====================

    def __len__(self) -> int:
        return len(self.candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self.candles)

    def __getitem__(self, index: int) -> Candle:
        return self.candles[index]

    def __bool__(self) -> bool:
        return bool(self.candles)

    def last(self, count: int) -> "CandleSeries":
        """Return a series of the most recent `count` candles."""
        if count <= 0:
            return CandleSeries((), symbol=self.symbol, timeframe=self.timeframe)
        return CandleSeries(self.candles[-count:], symbol=self.symbol, timeframe=self.timeframe)

    # ==================== Column views ====================

    def _column(self, name: str, dtype: type) -> np.ndarray:
        values = np.array([getattr(c, name) for c in self.candles], dtype=dtype)
        values.flags.writeable = False
        return values

    @cached_property
    def opens(self) -> np.ndarray:
        return self._column("open", np.float64)

    @cached_property
    def highs(self) -> np.ndarray:
        return self._column("high", np.float64)

    @cached_property
    def lows(self) -> np.ndarray:
        return self._column("low", np.float64)

    @cached_property
    def closes(self) -> np.ndarray:
        return self._column("close", np.float64)

    @cached_property
    def volumes(self) -> np.ndarray:
        return self._column("volume", np.float64)

    def to_frame(self) -> pd.DataFrame:
        """Convert to a DataFrame indexed by UTC timestamp."""
        frame = pd.DataFrame(
            [c.to_dict() for c in self.candles],
            columns=["timestamp", "open", "high", "low", "close", "volume"],
        )
        frame["timestamp"] = [c.as_datetime for c in self.candles]
        return frame.set_index("timestamp")

    @property
    def current_price(self) -> float:
        """Close of the most recent candle."""
        if not self.candles:
            raise ValueError("Empty candle series has no current price")
        return self.candles[-1].close


__all__ = ["Candle", "CandleSeries", "timestamp_to_datetime"]
