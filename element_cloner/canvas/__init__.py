"""
Canvas layer: composition world, viewport engine, undo history, editor, and export.
"""

from .world import CanvasWorld
from .viewport import CanvasEngine, CropState, MinimapProjection, ViewportLimits, ViewportState
from .history import Add, BatchDelete, CommandLog, Delete, Move, Resize
from .editor import EDIT_MODES, EditorSession
from .exporter import Exporter

__all__ = [
    "CanvasWorld",
    "CanvasEngine",
    "CropState",
    "MinimapProjection",
    "ViewportLimits",
    "ViewportState",
    "Add",
    "BatchDelete",
    "CommandLog",
    "Delete",
    "Move",
    "Resize",
    "EDIT_MODES",
    "EditorSession",
    "Exporter",
]
