"""
PencilX HTTP API
"""

from pencilx.api.router import create_ai_router

__all__ = ["create_ai_router"]
