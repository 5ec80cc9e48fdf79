"""
Logging for TokenAuction.

Everything logs under the ``tokenauction`` namespace with one child logger
per subsystem (chain, engine, token, storage, cli). Console output is
colored; an optional plain-text file mirrors it.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog

ROOT_LOGGER = "tokenauction"
LOG_FILE_NAME = "tokenauction.log"

LINE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def _console_handler(level: int) -> logging.Handler:
    # stderr keeps command output on stdout clean
    handler = colorlog.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
            datefmt=DATE_FORMAT,
            log_colors=LEVEL_COLORS,
        )
    )
    return handler


def _file_handler(log_dir: Path, level: int) -> logging.Handler:
    log_dir.mkdir(exist_ok=True, parents=True)
    handler = logging.FileHandler(log_dir / LOG_FILE_NAME)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LINE_FORMAT, datefmt=DATE_FORMAT))
    return handler


class AuctionLogger:
    """Owns the handlers of the ``tokenauction`` logger tree"""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
    ):
        """
        Configure handlers, or re-level them if already configured.

        Modules create their loggers at import time, which installs the
        default console handler. A later explicit call (e.g. from the CLI
        with --debug) changes the level and can add the file handler.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_dir: Directory for the log file. If None, uses ./logs
            log_to_file: Whether to also write to ``<log_dir>/tokenauction.log``
        """
        root_logger = logging.getLogger(ROOT_LOGGER)
        root_logger.setLevel(level)

        if not cls._initialized:
            root_logger.handlers.clear()
            root_logger.addHandler(_console_handler(level))
            cls._initialized = True
        else:
            for handler in root_logger.handlers:
                handler.setLevel(level)

        if log_to_file and cls._log_dir is None:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            root_logger.addHandler(_file_handler(cls._log_dir, level))

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a subsystem logger, e.g. ``get_logger("engine")`` for
        ``tokenauction.engine``.
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def get_logger(name: str) -> logging.Logger:
    return AuctionLogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
):
    """Setup logging configuration"""
    AuctionLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)
