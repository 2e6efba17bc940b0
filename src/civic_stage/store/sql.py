"""SQLAlchemy-backed reference implementation of the document store.

Documents are kept as JSON rows in the ``document`` table. Every write runs
inside a single SQL transaction; field deltas are applied against the row
read under that transaction, so concurrent increments and array unions from
different sessions do not overwrite each other. After a successful commit all
watches on the touched collections are re-evaluated.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from civic_stage.db.session import SessionLocal
from civic_stage.models import Document
from civic_stage.store.base import (
    BaseDocumentStore,
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentRef,
    DocumentSnapshot,
    Query,
    Snapshot,
    StoreError,
    WatchTarget,
    new_document_id,
)
from civic_stage.store.deltas import FieldDelta, apply_fields

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


@dataclass(frozen=True)
class _WriteOp:
    kind: str  # "set", "create", "update" or "delete"
    collection: str
    doc_id: str
    data: Mapping[str, Any] | None = None


def _plain(data: Mapping[str, Any]) -> dict[str, Any]:
    """Reject deltas in full-document writes and return a detached copy."""
    for key, value in data.items():
        if isinstance(value, FieldDelta):
            raise ValueError(f"Field delta not allowed in a full document write: {key}")
    return copy.deepcopy(dict(data))


class SqlWriteBatch:
    """Writes collected locally and committed in one transaction."""

    def __init__(self, store: SqlDocumentStore) -> None:
        self._store = store
        self._ops: list[_WriteOp] = []
        self._committed = False

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> SqlWriteBatch:
        self._ops.append(_WriteOp("set", collection, doc_id, _plain(data)))
        return self

    def create(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> SqlWriteBatch:
        self._ops.append(_WriteOp("create", collection, doc_id, _plain(data)))
        return self

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> SqlWriteBatch:
        self._ops.append(_WriteOp("update", collection, doc_id, dict(fields)))
        return self

    def delete(self, collection: str, doc_id: str) -> SqlWriteBatch:
        self._ops.append(_WriteOp("delete", collection, doc_id))
        return self

    async def commit(self) -> None:
        if self._committed:
            raise StoreError("Write batch already committed")
        self._committed = True
        if self._ops:
            self._store._commit(self._ops)


class SqlDocumentStore(BaseDocumentStore):
    """Document store persisting JSON documents through SQLAlchemy."""

    def __init__(self, session_factory: SessionFactory = SessionLocal) -> None:
        super().__init__()
        self._session_factory = session_factory

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        return self._read_document(collection, doc_id)

    async def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = new_document_id()
        self._commit([_WriteOp("create", collection, doc_id, _plain(data))])
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        self._commit([_WriteOp("set", collection, doc_id, _plain(data))])

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        self._commit([_WriteOp("update", collection, doc_id, dict(fields))])

    async def delete(self, collection: str, doc_id: str) -> None:
        self._commit([_WriteOp("delete", collection, doc_id)])

    def batch(self) -> SqlWriteBatch:
        return SqlWriteBatch(self)

    def _evaluate(self, target: WatchTarget) -> Snapshot:
        if isinstance(target, DocumentRef):
            return self._read_document(target.collection, target.doc_id)
        return self._run_query(target)

    def _read_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        try:
            with self._session_factory() as db:
                row = db.execute(
                    select(Document).where(
                        Document.collection == collection,
                        Document.doc_id == doc_id,
                    )
                ).scalar_one_or_none()
                data = copy.deepcopy(row.data) if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read {collection}/{doc_id}: {exc}") from exc
        return DocumentSnapshot(id=doc_id, data=data)

    def _run_query(self, query: Query) -> list[DocumentSnapshot]:
        try:
            with self._session_factory() as db:
                rows = db.execute(
                    select(Document.doc_id, Document.data).where(
                        Document.collection == query.collection
                    )
                ).all()
                snapshots = [
                    DocumentSnapshot(id=doc_id, data=copy.deepcopy(data)) for doc_id, data in rows
                ]
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to query {query.collection}: {exc}") from exc
        return query.apply(snapshots)

    def _commit(self, ops: list[_WriteOp]) -> None:
        """Apply ``ops`` atomically, then notify watches on the touched collections."""
        db = self._session_factory()
        try:
            for op in ops:
                self._apply(db, op)
            db.commit()
        except StoreError:
            db.rollback()
            raise
        except IntegrityError as exc:
            db.rollback()
            raise DocumentExistsError(f"Document already exists: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Document store write failed: %s", exc)
            raise StoreError(f"Write failed: {exc}") from exc
        finally:
            db.close()

        self.notify({op.collection for op in ops})

    def _apply(self, db: Session, op: _WriteOp) -> None:
        row = db.execute(
            select(Document)
            .where(Document.collection == op.collection, Document.doc_id == op.doc_id)
            .with_for_update()
        ).scalar_one_or_none()

        if op.kind == "delete":
            if row is not None:
                db.delete(row)
                db.flush()
            return

        if op.kind == "create":
            if row is not None:
                raise DocumentExistsError(f"Document already exists: {op.collection}/{op.doc_id}")
            db.add(Document(collection=op.collection, doc_id=op.doc_id, data=dict(op.data or {})))
            db.flush()
            return

        if op.kind == "set":
            if row is None:
                db.add(
                    Document(collection=op.collection, doc_id=op.doc_id, data=dict(op.data or {}))
                )
                db.flush()
            else:
                row.data = dict(op.data or {})
            return

        if row is None:
            raise DocumentNotFoundError(f"No document to update: {op.collection}/{op.doc_id}")
        # JSON columns only track reassignment, never in-place mutation.
        row.data = apply_fields(copy.deepcopy(row.data), op.data or {})
