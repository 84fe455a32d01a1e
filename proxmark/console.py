"""Terminal colours and logging setup."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path


VERBOSE = 15
SUCCESS = 25

logging.addLevelName(VERBOSE, "VERBOSE")
logging.addLevelName(SUCCESS, "SUCCESS")

LOGGER_NAME = "proxmark"


class Colors:
    """ANSI escape sequences, blanked when colour is disabled."""

    RED = "\033[0;31m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"
    BLUE = "\033[0;34m"
    CYAN = "\033[0;36m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    NC = "\033[0m"

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        if not enabled:
            for name in ("RED", "GREEN", "YELLOW", "BLUE", "CYAN", "BOLD", "DIM", "NC"):
                setattr(self, name, "")

    def wrap(self, text: str, *codes: str) -> str:
        if not self.enabled or not codes:
            return text
        return "".join(codes) + text + self.NC


def color_supported(stream=None) -> bool:
    """Colour only on a TTY and when NO_COLOR is unset."""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class ConsoleFormatter(logging.Formatter):
    """Prefix messages with a coloured level tag."""

    def __init__(self, colors: Colors):
        super().__init__("%(message)s")
        self.colors = colors
        self._prefixes = {
            logging.DEBUG: (colors.DIM, "[debug]"),
            VERBOSE: (colors.DIM, "[verbose]"),
            logging.INFO: (colors.BLUE, "[proxmark]"),
            SUCCESS: (colors.GREEN, "[✓]"),
            logging.WARNING: (colors.YELLOW, "[!]"),
            logging.ERROR: (colors.RED, "[ERROR]"),
            logging.CRITICAL: (colors.RED, "[ERROR]"),
        }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color, tag = self._prefixes.get(record.levelno, ("", f"[{record.levelname.lower()}]"))
        return f"{color}{tag}{self.colors.NC} {message}"


class ProxmarkLogger(logging.Logger):
    def verbose(self, msg, *args, **kwargs) -> None:
        if self.isEnabledFor(VERBOSE):
            self._log(VERBOSE, msg, args, **kwargs)

    def success(self, msg, *args, **kwargs) -> None:
        if self.isEnabledFor(SUCCESS):
            self._log(SUCCESS, msg, args, **kwargs)


logging.setLoggerClass(ProxmarkLogger)


def get_logger(name: str) -> ProxmarkLogger:
    """Module logger under the ``proxmark`` hierarchy."""
    return logging.getLogger(name)  # type: ignore[return-value]


def console_level(*, quiet: bool, json_only: bool, verbose: bool, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    if quiet or json_only:
        return logging.WARNING
    if verbose:
        return VERBOSE
    return logging.INFO


def configure_logging(level: int, colors: Colors, stream=None) -> logging.Logger:
    """Install a single stderr handler on the ``proxmark`` logger."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(ConsoleFormatter(colors))
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(min(level, VERBOSE))
    logger.propagate = False
    return logger


def attach_log_file(path: Path) -> logging.Handler:
    """Mirror verbose and higher records to a plaintext log file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8", delay=True)
    handler.setLevel(VERBOSE)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(message)s", "%Y-%m-%dT%H:%M:%S"))
    logging.getLogger(LOGGER_NAME).addHandler(handler)
    return handler
