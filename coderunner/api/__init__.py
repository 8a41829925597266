"""API endpoints for the Code Runner API."""

from . import execute, health

__all__ = ["execute", "health"]
