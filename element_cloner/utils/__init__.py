"""
Utility modules for the element cloner.

Contains logging, URL handling, geometry helpers, and constants.
"""

from .log import setup_logger, get_logger
from .paths import ensure_absolute, extract_css_url, ensure_dir, write_export
from .geometry import Rect, union
from .constants import (
    DEFAULT_USER_AGENT,
    DEFAULT_TIMEOUT,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_CONCURRENCY,
    SCROLL_STEP,
    SETTLE_INTERVAL,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "ensure_absolute",
    "extract_css_url",
    "ensure_dir",
    "write_export",
    "Rect",
    "union",
    "DEFAULT_USER_AGENT",
    "DEFAULT_TIMEOUT",
    "DEFAULT_PAGE_TIMEOUT",
    "DEFAULT_CONCURRENCY",
    "SCROLL_STEP",
    "SETTLE_INTERVAL",
]
