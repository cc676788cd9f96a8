"""Unified logging configuration for the CLI and library modules.

Provides consistent logging for one post-processing run:
    - Console (stderr) and optional append-mode file handler
    - JSON output mode for ingestion
    - Contextual fields (file, slot) shared by every record
    - Warning capture (Python warnings → logging)
    - Uncaught exception logging
    - OFF level to silence the tool entirely

Public API:
    setup_logging(log_level="WARN", log_file=None, context={"file": "part.gcode"})
    get_logger(name)
    push_context(slot="simage")
    pop_context(keys=["slot"])
    install_excepthook()

Format examples:
    Human: 2025-10-28T13:45:12.345Z | WARNING  | file=part.gcode | Message
    JSON: {"t":"2025-10-28T13:45:12.345+00:00","lvl":"WARNING","file":"part.gcode","msg":"..."}

Level names follow the slicer-facing CLI: OFF, ERROR, WARN, INFO, DEBUG
(the stdlib names WARNING and CRITICAL are accepted too).

Context uses contextvars.
Idempotent: repeated setup_logging() calls don't duplicate handlers.
"""

import contextvars
import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


# Context variable for contextual fields
_context_var = contextvars.ContextVar('logging_context', default={})

# Handlers installed by setup_logging (removed again on reconfiguration)
_installed_handlers: List[logging.Handler] = []

# Above CRITICAL: nothing gets through
OFF = logging.CRITICAL + 10

LEVELS = {
    'OFF': OFF,
    'CRITICAL': logging.CRITICAL,
    'ERROR': logging.ERROR,
    'WARN': logging.WARNING,
    'WARNING': logging.WARNING,
    'INFO': logging.INFO,
    'DEBUG': logging.DEBUG,
}


def parse_level(level: str) -> int:
    """Translate a level name into a stdlib logging level.

    Parameters
    ----------
    level : str
        Case-insensitive level name (see LEVELS)

    Returns
    -------
    int
        Numeric logging level

    Raises
    ------
    ValueError
        If the name is unknown
    """
    try:
        return LEVELS[level.upper()]
    except KeyError:
        raise ValueError(
            f"Unknown log level: {level}. Use one of {', '.join(LEVELS)}"
        ) from None


class ContextFormatter(logging.Formatter):
    """Custom formatter that includes contextual fields.

    Supports:
        - Human-readable format with colors (optional)
        - JSON format for machine ingestion
        - Contextual fields from push_context()
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

        # ANSI color codes
        self.colors = {
            'DEBUG': '\033[36m',    # Cyan
            'INFO': '\033[32m',     # Green
            'WARNING': '\033[33m',  # Yellow
            'ERROR': '\033[31m',    # Red
            'CRITICAL': '\033[35m', # Magenta
            'RESET': '\033[0m'
        }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record; timestamps are always UTC."""
        context = _context_var.get({})
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if self.fmt_mode == "json":
            return self._format_json(record, ts, context)
        return self._format_human(record, ts, context)

    def _format_json(
        self,
        record: logging.LogRecord,
        ts: datetime,
        context: dict
    ) -> str:
        """Format as JSON line."""
        log_dict = {
            't': ts.isoformat(),
            'lvl': record.levelname,
            'name': record.name,
            'pid': os.getpid(),
            'msg': record.getMessage()
        }

        log_dict.update(context)

        if record.exc_info:
            log_dict['exc'] = self.formatException(record.exc_info)

        return json.dumps(log_dict, default=str)

    def _format_human(
        self,
        record: logging.LogRecord,
        ts: datetime,
        context: dict
    ) -> str:
        """Format as human-readable line."""
        ts_str = ts.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'

        level = record.levelname
        if self.use_color:
            level = f"{self.colors.get(level, '')}{level:8s}{self.colors['RESET']}"
        else:
            level = f"{level:8s}"

        context_str = ' '.join(f"{k}={v}" for k, v in context.items())

        parts = [ts_str, '|', level, '|']
        if context_str:
            parts.extend([context_str, '|'])
        parts.append(record.getMessage())

        line = ' '.join(parts)

        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)

        return line


def setup_logging(
    log_level: str = "WARN",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Configure root logger (idempotent).

    Parameters
    ----------
    log_level : str
        Logging level: "OFF", "ERROR", "WARN", "INFO", "DEBUG"
    log_file : str, optional
        Log file path, opened once in append mode; None for no file logging
    json : bool
        Use JSON format for both handlers, default False
    color : bool
        Use ANSI colors in console output, default True
    to_stderr : bool
        Log to stderr (console), default True
    capture_warnings : bool
        Capture Python warnings to logging, default True
    quiet_libs : list[str], optional
        Library names to set to WARNING level (e.g., ["PIL"])
    context : dict, optional
        Initial contextual fields (e.g., {"file": "part.gcode"})

    Returns
    -------
    dict
        Configuration info: {"handlers": [...], "level": int}

    Raises
    ------
    ValueError
        If log_level is unknown
    OSError
        If the log file cannot be opened

    Notes
    -----
    Idempotent: repeated calls replace the handlers installed previously
    (handlers installed by others, e.g. pytest's caplog, are left alone).
    """
    level = parse_level(log_level)

    root = logging.getLogger()
    for handler in _installed_handlers:
        root.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    root.setLevel(level)
    fmt_mode = "json" if json else "human"

    if to_stderr:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ContextFormatter(fmt_mode, color))
        root.addHandler(console_handler)
        _installed_handlers.append(console_handler)

    if log_file:
        file_handler = _create_file_handler(log_file, fmt_mode)
        root.addHandler(file_handler)
        _installed_handlers.append(file_handler)

    if context:
        push_context(**context)

    if quiet_libs:
        for lib in quiet_libs:
            logging.getLogger(lib).setLevel(logging.WARNING)

    if capture_warnings:
        route_warnings()

    return {
        'handlers': list(_installed_handlers),
        'level': level,
    }


def _create_file_handler(log_file: str, fmt_mode: str) -> logging.Handler:
    """Create append-mode file handler (kept open for the whole run)."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    handler.setFormatter(ContextFormatter(fmt_mode, use_color=False))
    return handler


def get_logger(name: str) -> logging.Logger:
    """Get logger by name.

    Parameters
    ----------
    name : str
        Logger name (typically __name__)

    Returns
    -------
    logging.Logger
        Logger instance
    """
    return logging.getLogger(name)


def push_context(**kwargs) -> None:
    """Add contextual fields to all subsequent log records.

    Parameters
    ----------
    **kwargs
        Key-value pairs to add (e.g., file="part.gcode", slot="simage")

    Examples
    --------
    >>> push_context(file="part.gcode")
    >>> logger.warning("No thumbnail")  # → "... | file=part.gcode | No thumbnail"
    """
    current = _context_var.get({})
    updated = {**current, **kwargs}
    _context_var.set(updated)


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove contextual fields.

    Parameters
    ----------
    keys : list[str], optional
        Keys to remove; if None, clears all context
    """
    if keys is None:
        _context_var.set({})
    else:
        current = dict(_context_var.get({}))
        for key in keys:
            current.pop(key, None)
        _context_var.set(current)


def install_excepthook() -> None:
    """Install handler to log uncaught exceptions.

    Notes
    -----
    Logs exception with traceback before the interpreter exits.
    Ctrl+C is passed straight to the default hook.
    """
    def log_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger = logging.getLogger(__name__)
        logger.critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = log_exception


def route_warnings() -> None:
    """Route Python warnings (e.g. Pillow decompression warnings) to logging."""
    logging.captureWarnings(True)
    warnings_logger = logging.getLogger('py.warnings')
    warnings_logger.setLevel(logging.WARNING)
