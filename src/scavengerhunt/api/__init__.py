"""
API module for Scavenger Hunt.

Provides:
- FastAPI server exposing the game command surface
- REST endpoints for status, history and debugging
"""

from .server import create_app, start_server

__all__ = ["create_app", "start_server"]
