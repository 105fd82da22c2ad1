# src/portfolio_admin/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import auth_router, dev_router, example_router

__all__ = [
    "auth_router",
    "dev_router",
    "example_router",
]
