"""
Logging system for the Gemini search MCP server.

This module provides a centralized logging configuration that:
- Outputs to a rotating log file and to stderr (stdout carries JSON-RPC)
- Formats logs with timestamp, level, module name, and message
- Provides RollingConsoleHandler for the CLI's fixed-line display
"""

import logging
import shutil
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

ROOT_LOGGER_NAME = "gemini_search"
LOG_FILE_NAME = "gemini_search.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5
ROLLING_CONSOLE_LINES = 4


def _writable_dir(path: Path) -> bool:
    """Create path if needed and check that files can be written to it."""
    try:
        path.mkdir(parents=True, exist_ok=True)
        marker = path / ".test_write"
        marker.touch()
        marker.unlink()
        return True
    except OSError:
        return False


def _default_log_file() -> Optional[str]:
    """
    Pick a log file location.

    Tries <project root>/logs first, then ~/.gemini_search_mcp/logs.
    Returns None if neither is writable (stderr logging only).
    """
    candidates = [
        Path(__file__).parent.parent.absolute() / "logs",
        Path.home() / ".gemini_search_mcp" / "logs",
    ]
    for log_dir in candidates:
        if _writable_dir(log_dir):
            return str(log_dir / LOG_FILE_NAME)
    return None


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    log_file: Optional[str] = None,
    log_level: int = logging.INFO,
    use_rolling_console: bool = False,
    force_reconfigure: bool = False,
) -> logging.Logger:
    """
    Setup and configure logger with file and console handlers.

    The file handler rotates at 10MB and keeps 5 backups.

    Args:
        name: Logger name (default: "gemini_search")
        log_file: Path to log file (default: "logs/gemini_search.log")
        log_level: Logging level (default: INFO)
        use_rolling_console: Use RollingConsoleHandler for stderr (default: False)
        force_reconfigure: Force reconfiguration even if handlers exist (default: False)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if logger.handlers and not force_reconfigure:
        return logger

    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    logger.setLevel(log_level)

    if log_file is None:
        log_file = _default_log_file()

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            logger.addHandler(file_handler)
        except OSError:
            # stderr only
            pass

    console_handler: logging.Handler
    if use_rolling_console:
        console_handler = RollingConsoleHandler(
            max_lines=ROLLING_CONSOLE_LINES,
            min_level=log_level,
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    logger.addHandler(console_handler)

    logger.propagate = False

    return logger


class RollingConsoleHandler(logging.Handler):
    """
    Console handler that keeps a fixed-size rolling window of log lines.

    Uses ANSI escape sequences to redraw the same lines in place, so
    progress logs do not scroll the CLI output away.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    GRAY = "\033[90m"

    def __init__(self, max_lines: int = ROLLING_CONSOLE_LINES, min_level: int = logging.DEBUG) -> None:
        super().__init__()
        self.max_lines = max_lines
        self.min_level = min_level
        self.log_buffer: List[str] = []
        self.initialized = False
        self.terminal_width = shutil.get_terminal_size(fallback=(80, 24)).columns

    def _format_log_line(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        module = record.filename.replace(".py", "")
        line = (
            f"{color}[{record.levelname:^8}]{self.RESET} "
            f"{self.GRAY}{module}{self.RESET} {record.getMessage()}"
        )
        max_length = self.terminal_width - 2
        if len(line) > max_length:
            line = line[: max_length - 3] + "..."
        return line

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.levelno < self.min_level:
                return

            self.log_buffer.append(self._format_log_line(record))
            if len(self.log_buffer) > self.max_lines:
                self.log_buffer.pop(0)

            self._update_display()
        except Exception:
            self.handleError(record)

    def _update_display(self) -> None:
        if not self.initialized:
            sys.stderr.write("\n" * self.max_lines)
            self.initialized = True

        # Move cursor up to the start of the log area
        sys.stderr.write(f"\033[{self.max_lines}A")
        for i in range(self.max_lines):
            sys.stderr.write("\r\033[K")
            if i < len(self.log_buffer):
                sys.stderr.write(self.log_buffer[i])
            if i < self.max_lines - 1:
                sys.stderr.write("\n")
        sys.stderr.write("\n")
        sys.stderr.flush()

    def close(self) -> None:
        if self.initialized:
            sys.stderr.write("\n")
            sys.stderr.flush()
        super().close()


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get or create a logger instance.

    Child loggers (e.g. "gemini_search.cli") propagate to their top-level
    parent, which is configured with defaults if nobody set it up yet.

    Args:
        name: Logger name (default: "gemini_search")

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if "." in name:
        parent_name = name.split(".")[0]
        if not logging.getLogger(parent_name).handlers:
            setup_logger(name=parent_name)
        logger.propagate = True
        return logger

    if not logger.handlers:
        setup_logger(name=name)

    return logger
