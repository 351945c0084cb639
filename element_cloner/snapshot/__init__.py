"""
Snapshot layer: live-node snapshots, fingerprints, and style freezing.
"""

from .nodes import VisualNode, FragmentNode, TEXT_TAG, parse_style, format_style
from .markers import MarkerOverlay
from .fingerprint import fingerprint
from .assets import AssetCache, AssetFetcher
from .sanitize import sanitize_iframe, sanitize_iframe_tag, sanitize_sandbox
from .freezer import StyleFreezer
from .host import CaptureHost, PlaywrightHost, ScrollerMetrics, ViewportMetrics

__all__ = [
    "VisualNode",
    "FragmentNode",
    "TEXT_TAG",
    "parse_style",
    "format_style",
    "MarkerOverlay",
    "fingerprint",
    "AssetCache",
    "AssetFetcher",
    "sanitize_iframe",
    "sanitize_iframe_tag",
    "sanitize_sandbox",
    "StyleFreezer",
    "CaptureHost",
    "PlaywrightHost",
    "ScrollerMetrics",
    "ViewportMetrics",
]
