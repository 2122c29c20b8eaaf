"""Logging configuration using structlog."""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from structlog.typing import EventDict, WrappedLogger

import structlog

from rawkit.config.settings import get_settings


class SafeStreamHandler(logging.StreamHandler):
    """A StreamHandler that handles encoding errors gracefully.

    Source paths may contain characters the console encoding cannot
    represent (e.g. CP1252 on Windows); those are replaced instead of
    raising from inside a worker.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a record, handling encoding errors gracefully."""
        try:
            msg = self.format(record)
            stream = self.stream
            try:
                stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                safe_msg = msg.encode(stream.encoding or "utf-8", errors="replace").decode(
                    stream.encoding or "utf-8", errors="replace"
                )
                stream.write(safe_msg + self.terminator)
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


# Noisy third-party loggers to suppress below WARNING
_NOISY_LOGGERS = [
    "PIL",
    "asyncio",
]

# Keys that are handled specially by ConsoleRenderer (not user context)
_INTERNAL_KEYS = {"event", "level", "timestamp", "_record", "_from_structlog"}

_MAX_VALUE_LENGTH = 500


def _filter_event_dict(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Truncate long strings and replace binary payloads (encoded images) with their size."""
    for key, value in list(event_dict.items()):
        if isinstance(value, str) and len(value) > _MAX_VALUE_LENGTH:
            event_dict[key] = value[:_MAX_VALUE_LENGTH] + f"... [{len(value)} chars total]"
        elif isinstance(value, (bytes, bytearray, memoryview)):
            event_dict[key] = f"[BINARY DATA: {len(value)} bytes]"
    return event_dict


def _add_separator(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Add a visual separator between event message and context variables."""
    has_context = any(k not in _INTERNAL_KEYS for k in event_dict)

    if has_context and "event" in event_dict:
        event_dict["event"] = f"{event_dict['event']} |"

    return event_dict


def setup_logging(
    level: str | None = None,
    log_file: str | Path | None = None,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog for the application.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); defaults
               to the ``log_level`` setting
        log_file: Optional file path; logs go to both the stream and the file,
                  rotated at midnight with 7 days of retention.
        json_format: If True, render JSON lines instead of console output
        stream: Output stream for the console handler (defaults to stderr)
    """
    if level is None:
        level = get_settings().log_level
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _filter_event_dict,
    ]

    def _formatter(colors: bool) -> structlog.stdlib.ProcessorFormatter:
        if json_format:
            renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
            pre_chain = shared_processors
        else:
            renderer = structlog.dev.ConsoleRenderer(
                colors=colors,
                exception_formatter=structlog.dev.plain_traceback,
                pad_event_to=0,
                pad_level=False,
            )
            pre_chain = [*shared_processors, _add_separator]
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )

    console_handler = SafeStreamHandler(stream or sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(_formatter(colors=stream is None))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = TimedRotatingFileHandler(
            log_path,
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(_formatter(colors=False))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            *shared_processors,
            *([] if json_format else [_add_separator]),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,  # Allow reconfiguration
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name

    Returns:
        A structlog bound logger
    """
    return structlog.get_logger(name)
