"""Logging configuration and build output formatting."""
import datetime
import json
import logging
import sys
from typing import Any, List, Optional, TextIO

import structlog
from structlog.types import EventDict, Processor

IGNORED_LOGGERS = [
    "mcp.server.session",
    "mcp.server.stdio",
    "aiohttp",
    "asyncio"
]

STATUS_PREFIX = "-----> "
INFO_PREFIX = "       "
WARNING_PREFIX = " !     "

_output_stream: Optional[TextIO] = None


def add_timestamp(_, __, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to the event dict."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.datetime.now(datetime.timezone.utc).isoformat()
    return event_dict


def flatten_event(_, __, event_dict: EventDict) -> EventDict:
    """Lift dict events (``logger.info({"event": ...})``) into the event dict."""
    event = event_dict.get("event")
    if isinstance(event, dict):
        event_dict.pop("event")
        event_dict.update(event)
        event_dict.setdefault("event", "")
    return event_dict


class CompactJSONRenderer:
    """Single-line JSON renderer with minimal output."""
    def __call__(self, _: Any, __: str, event_dict: EventDict) -> str:
        items = {
            "ts": event_dict.pop("timestamp", None),
            "lvl": event_dict.pop("level", "???"),
            "msg": event_dict.pop("event", ""),
        }
        if other := dict(event_dict):
            items["data"] = other
        return json.dumps(items, separators=(",", ":"), default=str)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured logging for the application.

    Diagnostics always go to stderr so stdout stays reserved for build output:
    compact JSON when stderr is a terminal, console rendering otherwise.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO)
    )
    for name in IGNORED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    tty_processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        flatten_event,
        structlog.stdlib.add_log_level,
        add_timestamp,
        CompactJSONRenderer()
    ]

    plain_processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        flatten_event,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=False)
    ]

    structlog.configure(
        processors=tty_processors if sys.stderr.isatty() else plain_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def set_output_stream(stream: Optional[TextIO]) -> None:
    """Send build output somewhere other than stdout (None restores stdout)."""
    global _output_stream
    _output_stream = stream


def _write(text: str) -> None:
    stream = _output_stream or sys.stdout
    stream.write(text)
    stream.flush()


def status(message: str) -> None:
    """Print a top-level build step line."""
    _write(f"{STATUS_PREFIX}{message}\n")


def info(message: str) -> None:
    """Print an indented detail line."""
    _write("".join(f"{INFO_PREFIX}{line}\n" for line in message.splitlines() or [""]))


def warning(message: str) -> None:
    """Print an advisory warning."""
    _write(f"{WARNING_PREFIX}{message}\n")
