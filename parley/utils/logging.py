"""Logging setup for Parley.

Everything in the package logs through ``logging.getLogger(__name__)``, so
all records end up under the ``parley`` logger configured here.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "parley"

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: Union[int, str], verbose: bool = False) -> int:
    """Turn a level name or number into a logging level.

    Unknown names fall back to INFO; ``verbose`` always wins with DEBUG.
    """
    if verbose:
        return logging.DEBUG
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _console_handler(level: int, verbose: bool) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        level=level,
        show_path=verbose,
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        markup=False,
        log_time_format="[%X]",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    # The file keeps the full debug trail regardless of console level
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    verbose: bool = False,
) -> logging.Logger:
    """Configure the ``parley`` logger.

    Console output goes through a Rich handler on stderr so that it never
    mixes with transcript output on stdout.

    Args:
        level: Console level, as a number or a level name
        log_file: Optional file that receives every record at DEBUG
        verbose: Force DEBUG and show source paths and locals in tracebacks

    Returns:
        The configured ``parley`` logger
    """
    console_level = resolve_level(level, verbose)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.addHandler(_console_handler(console_level, verbose))

    if log_file:
        logger.addHandler(_file_handler(log_file))
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(console_level)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return ``parley`` or one of its children (``parley.<name>``)."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


class LogCapture(logging.Handler):
    """Collect records emitted under a logger while the block runs.

    Example:
        >>> with LogCapture("parley.orchestrator") as capture:
        ...     run_turn()
        >>> capture.has_message("Round limit")
    """

    def __init__(self, logger_name: str = ROOT_LOGGER, level: int = logging.DEBUG):
        super().__init__(level)
        self.logger_name = logger_name
        self.records: list[logging.LogRecord] = []
        self._saved_level = logging.NOTSET

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def __enter__(self) -> "LogCapture":
        logger = logging.getLogger(self.logger_name)
        self._saved_level = logger.level
        logger.setLevel(self.level)
        logger.addHandler(self)
        return self

    def __exit__(self, *exc_info) -> None:
        logger = logging.getLogger(self.logger_name)
        logger.removeHandler(self)
        logger.setLevel(self._saved_level)

    @property
    def messages(self) -> list[str]:
        return [record.getMessage() for record in self.records]

    def has_message(self, substring: str) -> bool:
        """Whether any captured message contains ``substring``."""
        return any(substring in message for message in self.messages)

    def at_level(self, level: int) -> list[str]:
        """Messages captured at exactly ``level``."""
        return [r.getMessage() for r in self.records if r.levelno == level]
