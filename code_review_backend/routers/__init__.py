"""Routers module - FastAPI route handlers"""

from . import config, review

__all__ = ["config", "review"]
