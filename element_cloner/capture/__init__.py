"""
Capture layer: scraping controller, picker, guided capture, reveal feedback.
"""

from .controller import CaptureController, CaptureState, CapturedItem
from .picker import Picker
from .guided import GuidedCapture, compute_progress
from .reveal import RevealTracker

__all__ = [
    "CaptureController",
    "CaptureState",
    "CapturedItem",
    "Picker",
    "GuidedCapture",
    "compute_progress",
    "RevealTracker",
]
