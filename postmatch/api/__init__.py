"""
API package for postmatch.

Provides the Flask blueprint for the HTTP interface.
"""

from __future__ import annotations

from .routes import api

__all__ = ['api']
