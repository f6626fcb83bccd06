"""
stackeval Structured Logger
============================

Provides :class:`EvalLogger`, a logging facade that emits human-friendly
Rich console output on stderr and, optionally, plain-text or JSON-lines
records to a rotating log file.

Annotated dumps are written to stdout; everything logged here goes to
stderr so the two never interleave in a pipe to ``less -R``.

Every record carries two context fields, ``component`` (the dotted name
the logger was created for) and ``operation`` (set for the duration of a
:meth:`EvalLogger.operation` block).  Keyword arguments other than the
standard logging ones are collected into ``eval_extra`` and appear under
``"extra"`` in JSON output.

References:
    - Python logging HOWTO. https://docs.python.org/3/howto/logging.html
    - Rich library. https://github.com/Textualize/rich
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

_LOG_THEME = Theme(
    {
        "log.level.debug": "dim cyan",
        "log.level.info": "bold bright_blue",
        "log.level.warning": "bold yellow",
        "log.level.error": "bold red",
    }
)

_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(operation)s | %(message)s"
_STANDARD_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel"})


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

class _JSONFormatter(logging.Formatter):
    """One JSON object per line.

    ``{"timestamp", "level", "logger", "message", "component",
    "operation", "extra", "exc_info"}``; unset context fields are omitted.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (field, value)
            for field, value in (
                ("component", getattr(record, "component", None)),
                ("operation", getattr(record, "operation", None)),
                ("extra", getattr(record, "eval_extra", None)),
            )
            if value is not None
        )
        if record.exc_info and record.exc_info[1] is not None:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class _ContextFilter(logging.Filter):
    """Stamps the owning logger's component and operation on each record."""

    def __init__(self, owner: EvalLogger) -> None:
        super().__init__()
        self._owner = owner

    def filter(self, record: logging.LogRecord) -> bool:
        record.component = self._owner.component
        record.operation = self._owner.current_operation
        return True


def _console_handler(level: int) -> RichHandler:
    return RichHandler(
        level=level,
        console=Console(theme=_LOG_THEME, stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )


def _file_handler(
    path: Path, level: int, json_logs: bool, max_bytes: int, backup_count: int,
) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
    )
    handler.setLevel(level)
    if json_logs:
        handler.setFormatter(_JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, "%Y-%m-%dT%H:%M:%S%z"))
    return handler


# ---------------------------------------------------------------------------
# EvalLogger
# ---------------------------------------------------------------------------

class EvalLogger:
    """Context-aware logger bound to one stackeval component.

    Usage::

        log = EvalLogger("decoder", log_file="stackeval.log", json_logs=True)
        log.info("Decoding %s", path)
        with log.operation("verify"):
            log.warning("Line %d did not round-trip", line_number, line=line_number)

    Args:
        component:       Name appended to ``stackeval.`` for the stdlib logger.
        log_level:       Minimum severity name.
        log_file:        Rotating log file; ``None`` disables file logging.
        json_logs:       Write JSON lines instead of plain text to the file.
        max_bytes:       Rotation size of the log file.
        backup_count:    Rotated files kept.
        console_output:  Attach the Rich stderr handler.
    """

    def __init__(
        self,
        component: str,
        *,
        log_level: str = "INFO",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
        console_output: bool = True,
    ) -> None:
        level = _level(log_level)
        self._bind(logging.getLogger(f"stackeval.{component}"), component, level)
        self._logger.propagate = False

        # Re-instantiation replaces, never stacks, handlers
        self._logger.handlers.clear()
        if console_output:
            self._logger.addHandler(_console_handler(level))
        if log_file is not None:
            self._logger.addHandler(
                _file_handler(Path(log_file), level, json_logs, max_bytes, backup_count)
            )

    def _bind(self, logger: logging.Logger, component: str, level: int) -> None:
        self._component = component
        self._operation: Optional[str] = None
        self._logger = logger
        self._logger.setLevel(level)
        for old in [f for f in logger.filters if isinstance(f, _ContextFilter)]:
            logger.removeFilter(old)
        logger.addFilter(_ContextFilter(self))

    @classmethod
    def from_config(cls, component: str, settings: Any, *, verbose: bool = False) -> EvalLogger:
        """Build a logger from a :class:`~shared.config.GlobalConfig`."""
        return cls(
            component,
            log_level="DEBUG" if verbose else settings.log_level,
            log_file=settings.log_file,
            json_logs=settings.log_json,
        )

    def child(self, component: str) -> EvalLogger:
        """Logger for a sub-component; its records reach this logger's handlers."""
        sub = EvalLogger.__new__(EvalLogger)
        sub._bind(
            self._logger.getChild(component),
            f"{self._component}.{component}",
            self._logger.level,
        )
        sub._logger.propagate = True
        return sub

    @property
    def component(self) -> str:
        return self._component

    @property
    def current_operation(self) -> Optional[str]:
        return self._operation

    @property
    def underlying(self) -> logging.Logger:
        """The stdlib :class:`logging.Logger` behind this facade."""
        return self._logger

    # ------------------------------------------------------------------ #
    #  Context blocks
    # ------------------------------------------------------------------ #

    @contextmanager
    def operation(self, name: str) -> Iterator[EvalLogger]:
        """Set the ``operation`` field on records logged inside the block."""
        previous, self._operation = self._operation, name
        try:
            yield self
        finally:
            self._operation = previous

    @contextmanager
    def timed(self, label: str) -> Iterator[None]:
        """Log start and elapsed time of the block at DEBUG."""
        start = time.perf_counter()
        self.debug("Started: %s", label)
        try:
            yield
        finally:
            self.debug("Completed: %s (%.3f sec)", label, time.perf_counter() - start)

    # ------------------------------------------------------------------ #
    #  Log methods
    # ------------------------------------------------------------------ #

    def _log(self, level: int, msg: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        passthrough = {k: kwargs.pop(k) for k in list(kwargs) if k in _STANDARD_KWARGS}
        extra = {"eval_extra": kwargs} if kwargs else None
        self._logger.log(level, msg, *args, extra=extra, **passthrough)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, args, kwargs)
