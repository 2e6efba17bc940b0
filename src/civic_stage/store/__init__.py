"""Document store contract, field deltas and the SQL reference store."""

from .base import (
    BaseDocumentStore,
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentRef,
    DocumentSnapshot,
    DocumentStore,
    FieldFilter,
    OrderBy,
    PermissionDeniedError,
    Query,
    StoreError,
    Watch,
    WriteBatch,
    new_document_id,
)
from .deltas import ArrayRemove, ArrayUnion, FieldDelta, Increment, apply_fields

__all__ = [
    "ArrayRemove",
    "ArrayUnion",
    "BaseDocumentStore",
    "DocumentExistsError",
    "DocumentNotFoundError",
    "DocumentRef",
    "DocumentSnapshot",
    "DocumentStore",
    "FieldDelta",
    "FieldFilter",
    "Increment",
    "OrderBy",
    "PermissionDeniedError",
    "Query",
    "StoreError",
    "Watch",
    "WriteBatch",
    "apply_fields",
    "new_document_id",
]
