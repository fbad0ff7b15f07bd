"""
Logging configuration with singleton pattern.

Provides a centralized logger accessible via class methods.
All standard logging.Logger methods are accessible directly.

Build output is long, so every record is tagged with the phase that was
running when it was emitted ("[Building packages] ..."). The phase runner
sets the tag with Logger.tagged().

When log_color is True and stdout is a TTY, the severity (levelname) is colored
in the terminal only. The log file is never colored.

Example usage:
    from utils.Logger import Logger

    Logger.initialize(log_level="INFO")

    with Logger.tagged("Synchronizing client"):
        Logger.info("repo sync")
    Logger.warning("Image is not modified for test")
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

DEFAULT_LOG_FILE = "sync_build_test.log"
DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(phase)s%(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOGGER_NAME = "SyncBuildTest"

# ANSI codes: only the severity field is wrapped; reset after it
_RESET = "\033[0m"
_LEVEL_COLORS: Dict[int, str] = {
    logging.DEBUG: "\033[90m",           # gray
    logging.INFO: "\033[37m",            # white
    logging.WARNING: "\033[38;5;208m",   # orange (256-color)
    logging.ERROR: "\033[31m",           # red
    logging.CRITICAL: "\033[95m",        # bright purple
}
# Logger.exception() records: ERROR with a traceback
_CRASH_COLOR = "\033[95m"


class _ColoredLevelFormatter(logging.Formatter):
    """Adds record.colored_levelname for use in the stream format."""

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.ERROR and record.exc_info:
            color = _CRASH_COLOR
        else:
            color = _LEVEL_COLORS.get(record.levelno)
        record.colored_levelname = f"{color}{record.levelname}{_RESET}" if color else record.levelname
        return super().format(record)


class _PhaseFilter(logging.Filter):
    """Add the current phase to the log record (record.extra wins)."""

    def filter(self, record: logging.LogRecord) -> bool:
        phase = getattr(record, "phase", None)
        if phase is None:
            phase = Logger._current_phase
        record.phase = f"[{phase}] " if phase else ""
        return True


def _stream_handler(level: int, log_format: str, log_color: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if log_color and sys.stdout.isatty():
        colored_format = log_format.replace("%(levelname)s", "%(colored_levelname)s")
        handler.setFormatter(_ColoredLevelFormatter(colored_format, datefmt=DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(log_format, datefmt=DATE_FORMAT))
    return handler


def _file_handler(level: int, log_format: str, log_file: Union[str, Path]) -> logging.Handler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format, datefmt=DATE_FORMAT))
    return handler


class LoggerMeta(type):
    """Metaclass to delegate all method calls to the underlying logger."""

    def __getattr__(cls, name: str):
        """Delegate attribute access to the underlying logger."""
        if not cls._initialized:
            raise RuntimeError("Logger has not been initialized. Call Logger.initialize() first.")
        return getattr(cls._logger, name)


class Logger(metaclass=LoggerMeta):
    """Logger class providing direct access to all logging.Logger methods."""

    _logger: Optional[logging.Logger] = None
    _initialized: bool = False
    _current_phase: Optional[str] = None

    @classmethod
    @contextmanager
    def tagged(cls, phase: str) -> Iterator[None]:
        """Tag log lines with phase for the duration of the block, then restore the previous tag."""
        previous = cls._current_phase
        cls._current_phase = phase
        try:
            yield
        finally:
            cls._current_phase = previous

    @classmethod
    def initialize(
        cls,
        log_level: str = "INFO",
        log_format: Optional[str] = None,
        log_file: Optional[Union[str, Path, bool]] = None,
        log_color: bool = False,
    ) -> None:
        """
        Initialize the logger with specified settings.

        Logs to stdout and appends to a file (default: sync_build_test.log in cwd).

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_format: Custom log format string. If None, uses DEFAULT_FORMAT,
                which includes %(phase)s.
            log_file: Path for log file. If None, uses sync_build_test.log in current
                working directory. Pass False to disable file logging.
            log_color: If True and stdout is a TTY, color the levelname in stream output.
        """
        if cls._initialized:
            return

        log_format = log_format or DEFAULT_FORMAT
        level = getattr(logging, log_level.upper(), logging.INFO)

        cls._logger = logging.getLogger(LOGGER_NAME)
        cls._logger.handlers.clear()
        cls._logger.filters.clear()
        cls._logger.setLevel(level)
        cls._logger.propagate = False
        cls._logger.addFilter(_PhaseFilter())

        cls._logger.addHandler(_stream_handler(level, log_format, log_color))
        if log_file is not False:
            if log_file is None or log_file is True:
                log_file = Path.cwd() / DEFAULT_LOG_FILE
            cls._logger.addHandler(_file_handler(level, log_format, log_file))

        cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Close handlers and forget state so initialize() can run again."""
        if cls._logger is not None:
            for handler in cls._logger.handlers:
                handler.close()
            cls._logger.handlers.clear()
        cls._logger = None
        cls._initialized = False
        cls._current_phase = None
