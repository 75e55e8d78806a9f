"""Database package — async SQLAlchemy engine, session factory, Base."""
from apitoolbox.db.base import Base, async_session_factory, engine, get_db, init_db

__all__ = ["Base", "async_session_factory", "engine", "get_db", "init_db"]
