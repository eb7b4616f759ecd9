"""
Core logging functionality for adapterd.

Each log type is written to its own file under ``config.LOG_DIR`` through a
single package root logger; modules obtain child loggers via :func:`get_logger`.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional
from . import config

# Re-export log type constants for external modules
LOG__GENERAL = config.LOG__GENERAL
LOG__DEBUG = config.LOG__DEBUG
LOG__DISPATCH = config.LOG__DISPATCH
LOG__HCI = config.LOG__HCI

_LOG_PATHS: Dict[str, Path] = {
    LOG__GENERAL: config.LOG_DIR / "general.log",
    LOG__DEBUG: config.LOG_DIR / "debug.log",
    LOG__DISPATCH: config.LOG_DIR / "dispatch.log",
    LOG__HCI: config.LOG_DIR / "hci.log",
}

# Raw message only
_formatter = logging.Formatter("%(message)s")

# Create and configure handlers
_handlers: Dict[str, logging.Handler] = {}
for log_type, path in _LOG_PATHS.items():
    handler = logging.FileHandler(path, mode="a", encoding="utf-8", delay=True)
    handler.setFormatter(_formatter)
    _handlers[log_type] = handler

# Root logger for adapterd; records from get_logger() children land in the
# general file, typed events are routed by _emit()
_logger = logging.getLogger("adapterd")
_logger.setLevel(logging.INFO)
_logger.addHandler(_handlers[LOG__GENERAL])

# Clean up temporary variables
del log_type, path, handler

_QUIET_TYPES = (LOG__DEBUG, LOG__DISPATCH, LOG__HCI)


def _emit(line: str, log_type: str) -> None:
    """Internal helper to emit log records without altering the message."""
    record = logging.LogRecord(
        name=f"adapterd.{log_type.lower()}",
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg=line.rstrip("\n"),
        args=(),
        exc_info=None,
    )
    _handlers.get(log_type, _handlers[LOG__GENERAL]).handle(record)


def logging__debug_log(msg: str) -> None:
    """Write to debug log."""
    _emit(msg, LOG__DEBUG)


def logging__general_log(msg: str) -> None:
    """Write to general log."""
    _emit(msg, LOG__GENERAL)


def logging__dispatch_log(msg: str) -> None:
    """Write to dispatch (request trace) log."""
    _emit(msg, LOG__DISPATCH)


def logging__hci_log(msg: str) -> None:
    """Write to HCI command log."""
    _emit(msg, LOG__HCI)


_log_func_map = {
    LOG__GENERAL: logging__general_log,
    LOG__DEBUG: logging__debug_log,
    LOG__DISPATCH: logging__dispatch_log,
    LOG__HCI: logging__hci_log,
}


def logging__log_event(log_type: str, string_to_log: str) -> None:
    """Log an event to the specified log type."""
    _log_func_map.get(log_type, logging__general_log)(string_to_log)


def print_and_log(output_string: str, log_type: str = LOG__GENERAL) -> None:
    """Print to stdout and log to the specified log type."""
    if log_type not in _QUIET_TYPES:
        print(output_string)
    logging__log_event(log_type, output_string)


def enable_debug() -> None:
    """Raise verbosity to DEBUG and mirror records on stderr."""
    _logger.setLevel(logging.DEBUG)
    if not any(getattr(h, "_adapterd_stderr", False) for h in _logger.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        stream._adapterd_stderr = True  # type: ignore[attr-defined]
        _logger.addHandler(stream)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger with the specified name.

    Module names under ``adapterd.`` are attached below the package root so
    they share its handlers.
    """
    if name:
        if name == "adapterd" or name.startswith("adapterd."):
            return logging.getLogger(name)
        return _logger.getChild(name)
    return _logger
