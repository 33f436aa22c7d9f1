"""Console and file logging for imaplearn runs."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import ConfigError, LoggingConfig

LOG_DIR_NAME = "logs"
MAIN_LOG_NAME = "imaplearn.log"
DEBUG_LOG_NAME = "debug.log"
FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
MAX_LOG_BYTES = 5_000_000
LOG_BACKUPS = 5
WIRE_LOGGER = "imapclient"

_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConsoleFormatter(logging.Formatter):
    """Prefix each console line with a one-character level marker."""

    MARKERS = {
        logging.DEBUG: "#",
        logging.INFO: "I",
        logging.WARNING: "!",
        logging.ERROR: "X",
        logging.CRITICAL: "X",
    }
    COLOURS = {
        logging.DEBUG: 36,
        logging.INFO: 32,
        logging.WARNING: 33,
        logging.ERROR: 31,
        logging.CRITICAL: 35,
    }

    def __init__(self, colour: bool) -> None:
        super().__init__("%(message)s")
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        marker = self.MARKERS.get(record.levelno, "?")
        if self.colour:
            marker = f"\x1b[{self.COLOURS.get(record.levelno, 37)}m{marker}\x1b[0m"
        return f"{marker} {super().format(record)}"


def configure_logging(
    logging_config: LoggingConfig,
    root_dir: Path,
    *,
    verbose: bool = False,
    debug: bool = False,
) -> Path:
    """Route records to the console and to ``<root_dir>/logs``.

    The console shows INFO and above unless ``verbose`` is set, in which case
    every search query, result count, selection and store is shown as well.
    The ``imapclient`` wire log stays at WARNING unless ``debug`` is set.
    Returns the log directory.
    """

    file_level = parse_level(logging_config.level)
    console_level = logging.DEBUG if verbose or debug else max(file_level, logging.INFO)

    log_dir = root_dir.expanduser() / LOG_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = [
        _file_handler(log_dir / MAIN_LOG_NAME, file_level),
        _console_handler(console_level),
    ]
    if logging_config.debug_file:
        handlers.append(_file_handler(log_dir / DEBUG_LOG_NAME, logging.DEBUG))

    logging.basicConfig(
        level=min(handler.level for handler in handlers),
        handlers=handlers,
        force=True,
    )
    logging.getLogger(WIRE_LOGGER).setLevel(logging.DEBUG if debug else logging.WARNING)
    return log_dir


def parse_level(name: str) -> int:
    """Return the numeric level for a configured level name."""

    normalized = name.strip().upper()
    if normalized == "WARN":
        normalized = "WARNING"
    if normalized not in _LEVEL_NAMES:
        raise ConfigError(f"Unknown log level: {name}")
    return logging.getLevelName(normalized)


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def _console_handler(level: int) -> logging.Handler:
    stream = sys.stderr
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(ConsoleFormatter(colour=stream.isatty()))
    return handler


__all__ = ["ConsoleFormatter", "configure_logging", "parse_level"]
