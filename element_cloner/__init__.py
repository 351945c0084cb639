"""
Element Cloner - capture, freeze and recompose live web page fragments.

This package snapshots visually-rendered elements from a live browser page,
turns them into self-contained style-frozen fragments, and lets them be
arranged, cropped and exported on a zoomable canvas with undo history.
"""

__version__ = "1.0.0"
__author__ = "Element Cloner Team"
