"""SQLAlchemy models for the Portfolio Admin application."""

from .admin import Admin

__all__ = ["Admin"]
