"""Database package."""

from app.db.base import engine, async_session_maker, Base, init_db

__all__ = ["engine", "async_session_maker", "Base", "init_db"]
