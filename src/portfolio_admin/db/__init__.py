"""Database helpers for the Portfolio Admin application."""

from .session import Base, build_engine, build_session_factory, create_tables, get_db

__all__ = ["Base", "build_engine", "build_session_factory", "create_tables", "get_db"]
