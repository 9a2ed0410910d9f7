"""HTTP surface for the ops agent (requires FastAPI)."""

from .api import create_router

__all__ = ["create_router"]
