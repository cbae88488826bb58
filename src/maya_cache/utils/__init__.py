"""Utility modules for maya cache."""

from .logging import configure_logging

__all__ = [
    "configure_logging",
]
