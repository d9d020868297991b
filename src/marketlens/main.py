"""
marketlens command line entry point.

Fetches daily candles for a symbol, runs the analysis and prints either a
text report or the JSON response envelope.
"""

import argparse
import asyncio
import sys
from typing import NoReturn

import orjson

from marketlens import __version__
from marketlens.analysis.models import AnalysisResult
from marketlens.config import get_settings
from marketlens.config.constants import DEFAULT_TIMEFRAME, TIMEFRAMES
from marketlens.service import AnalysisResponse, create_service_from_settings
from marketlens.utils import LogConfig, get_logger, setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="marketlens",
        description="Support/resistance and volume analysis for NSE symbols",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  marketlens RELIANCE
  marketlens TCS --timeframe 1Y
  marketlens INFY.NS --json
        """,
    )
    parser.add_argument("symbol", help="Instrument symbol (.NS is appended when missing)")
    parser.add_argument(
        "--timeframe",
        default=DEFAULT_TIMEFRAME,
        type=str.upper,
        choices=list(TIMEFRAMES),
        help=f"History window (default: {DEFAULT_TIMEFRAME})",
    )
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the JSON response envelope instead of a report",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: from LOG_LEVEL or INFO)",
    )
    return parser


def format_report(result: AnalysisResult) -> str:
    """Render an analysis as a plain-text report."""
    lines = [
        f"{result.symbol} ({result.timeframe}, {result.candle_count} candles)",
        f"Current price: ₹{result.current_price:.2f}",
        "",
        "Levels:",
    ]
    if result.levels:
        lines.extend(f"  {level.description}" for level in result.levels)
    else:
        lines.append("  none detected")

    if result.trendlines:
        lines.append("Trendlines:")
        lines.extend(
            f"  {t.description} (R²={t.goodness_of_fit:.2f}, {t.strength.value})"
            for t in result.trendlines
        )

    trading_range = result.trading_range
    lines += [
        f"Trading range: ₹{trading_range.lower:.2f} - ₹{trading_range.upper:.2f} "
        f"({trading_range.width_percent:.2f}%)",
        f"Levels: {result.recommendation.message}",
        "",
    ]

    volume = result.volume
    lines += [
        f"Volume: current {volume.current_volume:,}, average {volume.statistics.mean:,.0f} "
        f"({volume.volume_trend.value})",
        f"A/D: {volume.accumulation_distribution.interpretation}",
    ]
    if volume.patterns:
        lines.append("Patterns:")
        lines.extend(f"  {p.name}: {p.description}" for p in volume.patterns)
    if volume.anomalies:
        lines.append("Anomalies:")
        lines.extend(f"  {a.date.isoformat()} {a.interpretation}" for a in volume.anomalies)
    lines.append(f"Volume: {volume.recommendation.message}")

    if result.notes:
        lines.append("")
        lines.extend(f"Note: {note}" for note in result.notes)

    return "\n".join(lines)


def render(response: AnalysisResponse, as_json: bool) -> str:
    """Render a response envelope for stdout."""
    if as_json:
        return orjson.dumps(response.to_dict(), option=orjson.OPT_INDENT_2).decode("utf-8")
    if not response.success:
        return f"Error: {response.error}"
    return format_report(response.data)


async def async_main(argv: list[str] | None = None) -> int:
    """
    Async main function.

    Returns:
        Exit code (0 for success, 1 when the analysis failed)
    """
    args = build_parser().parse_args(argv)
    settings = get_settings()

    setup_logging(
        LogConfig(
            level=args.log_level or settings.logging.level,
            format=settings.logging.format,
            file_path=settings.logging.file_path,
            app_version=__version__,
        )
    )
    logger = get_logger(__name__)
    logger.debug("marketlens_starting", symbol=args.symbol, timeframe=args.timeframe)

    service = await create_service_from_settings(settings)
    async with service:
        response = await service.analyze(args.symbol, args.timeframe)

    print(render(response, args.as_json))
    return 0 if response.success else 1


def main() -> NoReturn:
    """
    Main entry point.

    This function is called when running marketlens via the CLI.
    """
    exit_code = asyncio.run(async_main())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
