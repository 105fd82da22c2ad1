# src/portfolio_admin/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .dev import router as dev_router
from .example import router as example_router

__all__ = [
    "auth_router",
    "dev_router",
    "example_router",
]
