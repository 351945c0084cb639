"""
Web module for the element cloner.

Provides a Flask-based control surface for driving a cloner session.
"""

from .app import create_app

__all__ = ["create_app"]
