"""
Structured logging for marketlens.

Console and file output through structlog, with JSON or pretty rendering and
contextual fields (symbol, timeframe) that follow an analysis through the
provider, cache and engine layers.

Example Usage:
    ```python
    from marketlens.utils.logger import LogConfig, add_context, get_logger, setup_logging

    setup_logging(LogConfig(level="DEBUG", format="pretty"))
    logger = get_logger(__name__)

    logger.info("candles_fetched", symbol="RELIANCE.NS", count=120)

    with add_context(symbol="TCS.NS", timeframe="1M"):
        logger.info("analysis_started")
        logger.info("levels_found", count=4)
    ```
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import logging
from pathlib import Path
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor

_SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "apikey",
        "password",
        "passwd",
        "token",
        "access_token",
        "secret",
        "redis_password",
    }
)


@dataclass
class LogConfig:
    """Configuration for the logging system.

    Attributes:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "json" for machine-readable output, "pretty" for terminals
        file_path: Optional log file; file output is always JSON
        include_timestamp: Whether to add an ISO timestamp
        include_caller_info: Whether to add file/line/function of the call site
        console_output: Whether to write to stderr
        max_string_length: Strings longer than this are truncated
        environment: Environment name (dev, staging, prod)
        app_version: Application version string
    """

    level: str = "INFO"
    format: Literal["json", "pretty"] = "pretty"
    file_path: str | None = None
    include_timestamp: bool = True
    include_caller_info: bool = False
    console_output: bool = True
    max_string_length: int = 1000
    environment: str = "dev"
    app_version: str = "0.1.0"


def add_app_info(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp every event with the application name, environment and version."""
    event_dict["app"] = "marketlens"
    event_dict["environment"] = getattr(add_app_info, "environment", "unknown")
    event_dict["version"] = getattr(add_app_info, "version", "unknown")
    return event_dict


def filter_sensitive(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credentials (Redis passwords, API tokens) anywhere in the event.

    Args:
        logger: The logger instance
        method_name: The logging method name
        event_dict: The event dictionary

    Returns:
        Event dictionary with sensitive values masked
    """

    def mask(value: Any) -> Any:
        if isinstance(value, str) and len(value) > 4:
            return f"{value[:2]}***{value[-2:]}"
        return "***"

    def walk(data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: mask(value) if str(key).lower() in _SENSITIVE_KEYS else walk(value)
                for key, value in data.items()
            }
        if isinstance(data, (list, tuple)):
            return type(data)(walk(item) for item in data)
        return data

    return walk(event_dict)  # type: ignore[return-value]


def truncate_strings(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Cut long string values (e.g. raw provider payloads) down to max_length."""
    max_length = getattr(truncate_strings, "max_length", 1000)

    def truncate(value: Any) -> Any:
        if isinstance(value, str) and len(value) > max_length:
            return f"{value[:max_length]}... [truncated]"
        if isinstance(value, dict):
            return {k: truncate(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(truncate(item) for item in value)
        return value

    return {key: truncate(value) for key, value in event_dict.items()}


def _base_processors(config: LogConfig) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        add_app_info,
        filter_sensitive,
        truncate_strings,
    ]
    if config.include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    if config.include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )
    processors.append(structlog.processors.StackInfoRenderer())
    processors.append(structlog.processors.format_exc_info)
    return processors


def setup_logging(config: LogConfig) -> None:
    """Configure structlog and the standard library root logger.

    Events go through the shared processor chain once and are rendered per
    handler: console output uses the configured format, file output is
    always one JSON object per line.

    Args:
        config: LogConfig instance with logging configuration

    Example:
        ```python
        setup_logging(LogConfig(level="INFO", format="json", file_path="logs/marketlens.log"))
        ```
    """
    add_app_info.environment = config.environment
    add_app_info.version = config.app_version
    truncate_strings.max_length = config.max_string_length

    shared_processors = _base_processors(config)

    if config.format == "json":
        console_renderer: Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handlers: list[logging.Handler] = []

    # stdout is reserved for command output
    if config.console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=console_renderer, foreign_pre_chain=shared_processors
            )
        )
        handlers.append(console_handler)

    if config.file_path:
        file_path = Path(config.file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=shared_processors,
            )
        )
        handlers.append(file_handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        handlers=handlers, level=getattr(logging, config.level.upper()), force=True
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance for the given name.

    Args:
        name: Logger name, typically __name__ of the calling module

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)


@contextmanager
def add_context(**kwargs: Any) -> Iterator[None]:
    """Add fields to every log entry emitted inside the block.

    Fields live in context variables, so each asyncio task sees only the
    fields bound in its own context.

    Example:
        ```python
        with add_context(symbol="INFY.NS", timeframe="1Y"):
            logger.info("analysis_started")  # carries symbol and timeframe
        logger.info("idle")  # does not
        ```
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


def set_log_level(level: str) -> None:
    """Change the root logging level at runtime."""
    logging.getLogger().setLevel(getattr(logging, level.upper()))


def clear_context() -> None:
    """Drop all context fields bound in the current context."""
    structlog.contextvars.clear_contextvars()
