"""Shared helpers for Parley."""

from .logging import LogCapture, get_logger, resolve_level, setup_logging

__all__ = [
    "LogCapture",
    "get_logger",
    "resolve_level",
    "setup_logging",
]
