# src/civic_stage/models/document.py
"""SQLAlchemy model backing the reference document store."""

from typing import Any

from sqlalchemy import JSON, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from civic_stage.db.session import Base


class Document(Base):
    """A schemaless JSON document addressed by ``(collection, doc_id)``.

    Filtering and ordering of query results happen in the store; this table
    only guarantees identity and holds the latest committed data.
    """

    __tablename__ = "document"
    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_document_collection_doc_id"),
        Index("ix_document_collection", "collection"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String(64), nullable=False)
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
