# src/civic_stage/db/__init__.py
"""Database configuration and utilities."""

from .session import Base, SessionLocal, create_tables, drop_tables, engine

__all__ = ["Base", "SessionLocal", "create_tables", "drop_tables", "engine"]
