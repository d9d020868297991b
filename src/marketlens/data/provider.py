"""
Candle providers.

A provider turns a (symbol, timeframe) request into a CandleSeries. The
Yahoo Finance chart provider queries the v8 chart endpoint on the primary
host and retries once on the backup host. There is no synthetic fallback:
when neither host yields usable candles the provider raises.

Example Usage:
    ```python
    from marketlens.data.provider import YahooChartProvider

    async with YahooChartProvider() as provider:
        series = await provider.fetch("RELIANCE", "1M")
        print(len(series), series.current_price)
    ```
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import math
from typing import Any

import httpx

from marketlens.config.constants import DEFAULT_TIMEFRAME, TIMEFRAMES
from marketlens.config.settings import ProviderSettings
from marketlens.data.candles import Candle, CandleSeries
from marketlens.utils.logger import get_logger

logger = get_logger(__name__)


class CandleProviderError(Exception):
    """Upstream candle source failed or returned a malformed payload."""


class CandleDataUnavailable(CandleProviderError):
    """Upstream answered but no usable candles were found."""


@dataclass(frozen=True)
class TimeframeSpec:
    """
    Provider request parameters for a timeframe code.

    Attributes:
        code: Timeframe code (e.g. "1M")
        range: Provider history range (e.g. "6mo")
        interval: Candle interval (e.g. "1d")
        candles: Number of most recent candles kept
    """

    code: str
    range: str
    interval: str
    candles: int


def resolve_timeframe(code: str | None = None) -> TimeframeSpec:
    """
    Look up the request parameters for a timeframe code.

    Args:
        code: One of 1D, 5D, 1W, 1M, 1Y (case-insensitive); None means 1M

    Returns:
        TimeframeSpec for the code

    Raises:
        ValueError: If the code is unknown
    """
    key = (code or DEFAULT_TIMEFRAME).upper()
    if key not in TIMEFRAMES:
        raise ValueError(
            f"Unknown timeframe {code!r}, expected one of {', '.join(TIMEFRAMES)}"
        )
    history_range, interval, candles = TIMEFRAMES[key]
    return TimeframeSpec(code=key, range=history_range, interval=interval, candles=candles)


def normalize_symbol(symbol: str, suffix: str = ".NS") -> str:
    """Upper-case a symbol and append the exchange suffix unless it has one."""
    cleaned = symbol.strip().upper()
    if not cleaned:
        raise ValueError("Symbol must not be empty")
    if "." in cleaned or cleaned.startswith("^") or not suffix:
        return cleaned
    return f"{cleaned}{suffix}"


class CandleProvider(ABC):
    """Source of candle series."""

    @abstractmethod
    async def fetch(self, symbol: str, timeframe: str) -> CandleSeries:
        """
        Fetch candles for a symbol and timeframe.

        Raises:
            CandleProviderError: If the upstream source fails
            CandleDataUnavailable: If no usable candles are returned
        """

    async def close(self) -> None:
        """Release provider resources."""


class YahooChartProvider(CandleProvider):
    """
    Yahoo Finance v8 chart API provider.

    Attributes:
        base_url: Primary API host
        backup_url: Host tried once when the primary fails
        timeout: HTTP request timeout in seconds
        symbol_suffix: Exchange suffix appended to bare symbols
    """

    CHART_PATH = "/v8/finance/chart/{symbol}"

    def __init__(
        self,
        settings: ProviderSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize provider.

        Args:
            settings: Provider settings, defaults to environment configuration
            client: Pre-configured HTTP client (owned by the caller)
        """
        settings = settings or ProviderSettings()
        self.base_url = settings.base_url.rstrip("/")
        self.backup_url = settings.backup_url.rstrip("/")
        self.timeout = settings.timeout_seconds
        self.symbol_suffix = settings.symbol_suffix
        self.user_agent = settings.user_agent
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "YahooChartProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    async def fetch(self, symbol: str, timeframe: str = DEFAULT_TIMEFRAME) -> CandleSeries:
        """
        Fetch daily candles for a symbol.

        Args:
            symbol: Instrument symbol, with or without exchange suffix
            timeframe: Timeframe code selecting history range and candle count

        Returns:
            CandleSeries with at most the timeframe's candle count

        Raises:
            ValueError: If the symbol or timeframe is invalid
            CandleProviderError: If both hosts fail
            CandleDataUnavailable: If the response holds no usable candles
        """
        spec = resolve_timeframe(timeframe)
        ticker = normalize_symbol(symbol, self.symbol_suffix)

        last_error: Exception | None = None
        for host in (self.base_url, self.backup_url):
            try:
                payload = await self._request(host, ticker, spec)
            except httpx.HTTPError as e:
                logger.warning(
                    "chart_request_failed", host=host, symbol=ticker, error=str(e)
                )
                last_error = e
                continue

            candles = parse_chart_payload(payload)
            if not candles:
                raise CandleDataUnavailable(f"No candle data available for {ticker}")

            try:
                series = CandleSeries(
                    candles[-spec.candles:], symbol=ticker, timeframe=spec.code
                )
            except ValueError as e:
                raise CandleProviderError(f"Unordered candle data for {ticker}: {e}") from e

            logger.info(
                "candles_fetched",
                symbol=ticker,
                timeframe=spec.code,
                host=host,
                count=len(series),
            )
            return series

        raise CandleProviderError(
            f"Chart API unavailable for {ticker}: {last_error}"
        ) from last_error

    async def _request(self, host: str, ticker: str, spec: TimeframeSpec) -> dict[str, Any]:
        client = await self._get_client()
        url = host + self.CHART_PATH.format(symbol=ticker)

        logger.debug("fetching_chart", url=url, range=spec.range, interval=spec.interval)

        response = await client.get(url, params={"interval": spec.interval, "range": spec.range})
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise CandleProviderError(f"Chart API returned invalid JSON for {ticker}") from e


def _finite(value: Any) -> bool:
    return isinstance(value, int | float) and math.isfinite(value)


def parse_chart_payload(payload: dict[str, Any]) -> list[Candle]:
    """
    Extract candles from a chart API response.

    Points with a missing or non-finite open, high, low or close are skipped.
    Prices are rounded to 2 decimals, volume is floored (missing volume is 0)
    and timestamps are converted to epoch milliseconds.

    Args:
        payload: Decoded chart API JSON

    Returns:
        Candles in response order

    Raises:
        CandleProviderError: If the payload does not have the chart shape
    """
    try:
        chart = payload["chart"]
        if chart.get("error"):
            raise CandleProviderError(f"Chart API error: {chart['error']}")
        results = chart.get("result") or []
        if not results:
            return []
        result = results[0]
        timestamps = result.get("timestamp") or []
        quote = result["indicators"]["quote"][0]
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise CandleProviderError(f"Malformed chart payload: {e}") from e

    opens = quote.get("open") or []
    highs = quote.get("high") or []
    lows = quote.get("low") or []
    closes = quote.get("close") or []
    volumes = quote.get("volume") or []

    candles = []
    for i, ts in enumerate(timestamps):
        ohlc = [
            series[i] if i < len(series) else None for series in (opens, highs, lows, closes)
        ]
        if not all(_finite(v) for v in ohlc):
            continue

        raw_volume = volumes[i] if i < len(volumes) else None
        volume = math.floor(raw_volume) if _finite(raw_volume) and raw_volume > 0 else 0
        open_, high, low, close = (round(v, 2) for v in ohlc)

        try:
            candles.append(
                Candle(
                    timestamp=int(ts) * 1000,
                    open=open_,
                    high=high,
                    low=low,
                    close=close,
                    volume=volume,
                )
            )
        except ValueError as e:
            logger.warning("invalid_candle_skipped", timestamp=ts, error=str(e))

    return candles
