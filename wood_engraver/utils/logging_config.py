"""Logging setup for the ``wood-engrave`` and ``wood-engrave-import`` commands.

Library modules only create module loggers (``logging.getLogger(__name__)``);
the entry points call :func:`setup_logging` once with the ``logging`` section
of ``machine.yaml``.

Records carry context fields pushed with :func:`push_context` (the command,
the job name, ...).  Two layouts are available:

    human: 2026-03-02T13:45:12.345Z | INFO     | app=engrave job=sign | Extracted 1840 points
    json:  {"t": "2026-03-02T13:45:12.345Z", "lvl": "INFO", "name": "...", "app": "engrave", "msg": "..."}

Console output is always human-readable (coloured on a TTY); the optional
log file uses JSON when ``json=True``.  Calling :func:`setup_logging` again
replaces the handlers it installed earlier.
"""

import contextvars
import json as _json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "wood_engraver_log_context", default={}
)
_installed: List[logging.Handler] = []

_LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


def _timestamp(record: logging.LogRecord) -> str:
    ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


class HumanFormatter(logging.Formatter):
    """``time | LEVEL | key=value ... | message`` lines."""

    def __init__(self, color: bool = False) -> None:
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8s}"
        if self.color:
            level = f"{_LEVEL_COLORS.get(record.levelname, '')}{level}{_RESET}"

        parts = [_timestamp(record), level]
        fields = _context.get()
        if fields:
            parts.append(" ".join(f"{k}={v}" for k, v in fields.items()))
        parts.append(record.getMessage())

        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per record, context fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "t": _timestamp(record),
            "lvl": record.levelname,
            "name": record.name,
        }
        payload.update(_context.get())
        payload["msg"] = record.getMessage()
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return _json.dumps(payload, default=str)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    quiet_libs: Optional[Iterable[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> List[logging.Handler]:
    """Configure the root logger for a command-line run.

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL".
    log_file : str, optional
        Also log to this file (parent directories are created).
    json : bool
        Write the log file as JSON lines.
    quiet_libs : iterable of str, optional
        Third-party loggers raised to WARNING (e.g. ``["PIL"]``).
    context : dict, optional
        Fields attached to every record from now on.

    Returns
    -------
    list[logging.Handler]
        Handlers added to the root logger.

    Raises
    ------
    ValueError
        If *log_level* is not a logging level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level!r}")

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()
    root.setLevel(level)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(HumanFormatter(color=sys.stderr.isatty()))
    _installed.append(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JsonFormatter() if json else HumanFormatter())
        _installed.append(file_handler)

    for handler in _installed:
        root.addHandler(handler)

    for name in quiet_libs or ():
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.captureWarnings(True)

    if context:
        push_context(**context)
    return list(_installed)


def push_context(**fields: Any) -> None:
    """Attach *fields* to all subsequent records.

    Examples
    --------
    >>> push_context(app="engrave", job="sign")
    >>> logger.info("Started")  # -> "... | app=engrave job=sign | Started"
    """
    _context.set({**_context.get(), **fields})


def clear_context() -> None:
    """Drop every context field."""
    _context.set({})


def install_excepthook() -> None:
    """Log uncaught exceptions (Ctrl+C excluded) at CRITICAL before exit."""

    def _hook(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger("wood_engraver").critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback),
        )

    sys.excepthook = _hook
