"""Data access layer."""

from .admin_repo import AdminRepository

__all__ = ["AdminRepository"]
