"""
HANDHELD Observability

Structured logging for the console pipeline. Every component logs through a
``HandheldLogger`` bound to a ``Layer``; records are rendered as one JSON
object per line (or plain text) by handlers installed on the ``handheld``
parent logger.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                    Application Code                      │
    │  logger.debug("msg", operation="step", pointer=3)       │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │            HandheldLogger (handheld.<layer>.<name>)      │
    │  layer, operation, error_code, duration, context        │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │                    "handheld" handlers                   │
    │         StructuredHandler (json) │ TextHandler (text)    │
    └─────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import traceback
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, Optional, TextIO, TypeVar

ROOT_LOGGER_NAME = "handheld"


class LogLevel(Enum):
    """Log severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging(self) -> int:
        return getattr(logging, self.value.upper())


class LogFormat(Enum):
    """Rendering of log records."""
    JSON = "json"
    TEXT = "text"


class Layer(Enum):
    """Console layers for categorization."""
    PARSER = "parser"
    VM = "vm"
    REPAIR = "repair"
    CONFIG = "config"
    CLI = "cli"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    layer: str = ""
    operation: str = ""
    duration_ms: Optional[float] = None
    error_code: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "LogEvent":
        event = cls(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname.lower(),
            logger=record.name,
            message=record.getMessage(),
            layer=getattr(record, "layer", ""),
            operation=getattr(record, "operation", ""),
            duration_ms=getattr(record, "duration_ms", None),
            error_code=getattr(record, "error_code", ""),
            context=getattr(record, "context", {}),
        )
        if record.exc_info:
            event.exception = "".join(traceback.format_exception(*record.exc_info))
        return event

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class _StreamHandler(logging.Handler):
    """Handler writing to a fixed stream, or to the current sys.stderr."""

    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__()
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stderr

    def render(self, event: LogEvent) -> str:
        raise NotImplementedError

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.stream.write(self.render(LogEvent.from_record(record)) + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


class StructuredHandler(_StreamHandler):
    """Logging handler that outputs structured JSON."""

    def render(self, event: LogEvent) -> str:
        return event.to_json()


class TextHandler(_StreamHandler):
    """Logging handler that outputs one human readable line per record."""

    def render(self, event: LogEvent) -> str:
        head = f"{event.timestamp} {event.level.upper():8} {event.logger}: {event.message}"
        extras = []
        if event.operation:
            extras.append(f"operation={event.operation}")
        if event.error_code:
            extras.append(f"error_code={event.error_code}")
        if event.duration_ms is not None:
            extras.append(f"duration_ms={event.duration_ms:.2f}")
        extras.extend(f"{k}={v}" for k, v in event.context.items())
        line = f"{head} [{' '.join(extras)}]" if extras else head
        if event.exception:
            line += "\n" + event.exception.rstrip()
        return line


def configure_logging(
    level: LogLevel = LogLevel.WARNING,
    fmt: LogFormat = LogFormat.JSON,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """Install a single handler on the ``handheld`` logger, replacing any previous one."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if isinstance(handler, _StreamHandler):
            root.removeHandler(handler)

    handler: _StreamHandler = StructuredHandler(stream) if fmt is LogFormat.JSON else TextHandler(stream)
    root.addHandler(handler)
    root.setLevel(level.to_logging())
    root.propagate = False
    return handler


def _ensure_configured() -> None:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not any(isinstance(h, _StreamHandler) for h in root.handlers):
        configure_logging()


class HandheldLogger:
    """
    Structured logger for console components.

    Includes layer information in all log events; extra keyword arguments
    become the event's ``context``.
    """

    def __init__(self, name: str, layer: Layer):
        self.name = name
        self.layer = layer
        self._logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{layer.value}.{name}")
        _ensure_configured()

    def is_enabled_for(self, level: LogLevel) -> bool:
        return self._logger.isEnabledFor(level.to_logging())

    def _log(
        self,
        level: int,
        message: str,
        operation: str = "",
        error_code: str = "",
        duration_ms: Optional[float] = None,
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        """Internal log method."""
        if not self._logger.isEnabledFor(level):
            return
        extra = {
            "layer": self.layer.value,
            "operation": operation,
            "error_code": error_code,
            "duration_ms": duration_ms,
            "context": {k: v for k, v in context.items() if v is not None},
        }
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)

    def error(
        self,
        message: str,
        error_code: str = "",
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        self._log(logging.ERROR, message, error_code=error_code, exc_info=exc_info, **context)

    def operation(
        self,
        name: str,
        duration_ms: float,
        success: bool = True,
        **context: Any,
    ) -> None:
        """Log an operation completion."""
        level = logging.INFO if success else logging.WARNING
        status = "completed" if success else "failed"
        self._log(
            level,
            f"Operation {name} {status}",
            operation=name,
            duration_ms=duration_ms,
            **context,
        )


def get_logger(name: str, layer: Layer) -> HandheldLogger:
    """Get a logger for a console component."""
    return HandheldLogger(name, layer)


T = TypeVar("T")


def timed_operation(
    logger: HandheldLogger,
    operation_name: str,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for timing and logging operations."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.monotonic()
            success = True
            try:
                return func(*args, **kwargs)
            except Exception:
                success = False
                raise
            finally:
                duration_ms = (time.monotonic() - start) * 1000
                logger.operation(operation_name, duration_ms, success)
        return wrapper
    return decorator
