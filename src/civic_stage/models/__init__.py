# src/civic_stage/models/__init__.py
"""SQLAlchemy models for the reference collaborators."""

from .account import Account
from .document import Document

__all__ = ["Account", "Document"]
