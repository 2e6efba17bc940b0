"""Document store contract consumed by the synchronization core.

The core never talks to a concrete database. It depends on:

- point reads (:meth:`DocumentStore.get`),
- live watches that deliver the *entire* current result set on every change,
- fire-and-forget writes carrying plain values or field-level deltas,
- atomic multi-document batches.

:class:`BaseDocumentStore` implements the watch bookkeeping shared by concrete
stores; subclasses only evaluate targets and commit writes.
"""

from __future__ import annotations

import asyncio
import logging
import operator
import secrets
import string
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, TypeAlias

# Configure logger for this module
logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_letters + string.digits
_ID_LENGTH = 20


class StoreError(RuntimeError):
    """Base exception raised for document store failures."""


class DocumentNotFoundError(StoreError):
    """Raised when a field update targets a document that does not exist."""


class DocumentExistsError(StoreError):
    """Raised when a create-only write targets an existing document."""


class PermissionDeniedError(StoreError):
    """Raised when the store's access rules reject a read or write."""


def new_document_id() -> str:
    """Return a random 20 character identifier for a new document."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def _order_rank(value: Any) -> tuple[int, Any]:
    """Sort key ranking values by type first, so mixed types never compare directly."""
    if isinstance(value, bool):
        return (0, value)
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, repr(value))


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "array-contains": lambda current, value: isinstance(current, list) and value in current,
}


@dataclass(frozen=True)
class DocumentRef:
    """Address of a single document."""

    collection: str
    doc_id: str


@dataclass(frozen=True)
class FieldFilter:
    """A single ``field <op> value`` predicate."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, data: Mapping[str, Any]) -> bool:
        if self.field not in data:
            return False
        try:
            return _OPERATORS[self.op](data[self.field], self.value)
        except TypeError:
            return False


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class Query:
    """Collection query with conjunctive filters, a single ordering and a limit.

    Documents lacking the ordering field, or holding null there, are excluded
    from ordered results. Values of different types order by type: booleans,
    numbers, strings, then anything else.
    """

    collection: str
    filters: tuple[FieldFilter, ...] = ()
    order: OrderBy | None = None
    max_results: int | None = None

    def where(self, field_name: str, op: str, value: Any) -> Query:
        return replace(self, filters=(*self.filters, FieldFilter(field_name, op, value)))

    def order_by(self, field_name: str, *, descending: bool = False) -> Query:
        return replace(self, order=OrderBy(field_name, descending))

    def limit(self, count: int) -> Query:
        if count < 1:
            raise ValueError("Query limit must be positive")
        return replace(self, max_results=count)

    def apply(self, snapshots: Iterable[DocumentSnapshot]) -> list[DocumentSnapshot]:
        """Filter, order and truncate ``snapshots`` according to this query."""
        matched = [
            snap for snap in snapshots
            if snap.data is not None and all(f.matches(snap.data) for f in self.filters)
        ]
        if self.order is not None:
            key = self.order.field
            matched = [
                snap for snap in matched
                if snap.data.get(key) is not None  # type: ignore[union-attr]
            ]
            # Ties resolve by document id so ordering is deterministic.
            matched.sort(key=lambda snap: snap.id, reverse=self.order.descending)
            matched.sort(key=lambda snap: _order_rank(snap.data[key]), reverse=self.order.descending)  # type: ignore[index]
        if self.max_results is not None:
            matched = matched[: self.max_results]
        return matched


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time copy of a document; ``data`` is None when it does not exist."""

    id: str
    data: Mapping[str, Any] | None = field(default=None, compare=True)

    @property
    def exists(self) -> bool:
        return self.data is not None


WatchTarget: TypeAlias = Query | DocumentRef
Snapshot: TypeAlias = DocumentSnapshot | list[DocumentSnapshot]
SnapshotCallback: TypeAlias = Callable[[Snapshot], None]
ErrorCallback: TypeAlias = Callable[[StoreError], None]


class Watch(Protocol):
    """Cancellation handle of a live watch."""

    @property
    def active(self) -> bool: ...

    def cancel(self) -> None: ...


class WriteBatch(Protocol):
    """Group of writes committed atomically: all of them or none."""

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> WriteBatch: ...

    def create(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> WriteBatch: ...

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> WriteBatch: ...

    def delete(self, collection: str, doc_id: str) -> WriteBatch: ...

    async def commit(self) -> None: ...


class DocumentStore(Protocol):
    """Operations the synchronization core needs from a document database."""

    def watch(
        self,
        target: WatchTarget,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Watch: ...

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot: ...

    async def add(self, collection: str, data: Mapping[str, Any]) -> str: ...

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None: ...

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    def batch(self) -> WriteBatch: ...


_UNSET: Any = object()


class StoreWatch:
    """Live watch registered with a :class:`BaseDocumentStore`.

    Deliveries are scheduled onto the event loop that created the watch and
    evaluated when they run, so each delivery reflects the latest committed
    state. Identical consecutive results are not re-delivered.
    """

    def __init__(
        self,
        store: BaseDocumentStore,
        target: WatchTarget,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.store = store
        self.target = target
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.loop = loop
        self.last: Any = _UNSET
        self.pending = False
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def collection(self) -> str:
        return self.target.collection

    def cancel(self) -> None:
        if self._active:
            self._active = False
            self.store._unregister(self)


class BaseDocumentStore:
    """Watch registry shared by concrete stores."""

    def __init__(self) -> None:
        self._watches: list[StoreWatch] = []

    def watch(
        self,
        target: WatchTarget,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> StoreWatch:
        """Start watching ``target``; must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        handle = StoreWatch(self, target, on_snapshot, on_error, loop)
        self._watches.append(handle)
        self._schedule(handle)
        return handle

    @property
    def watch_count(self) -> int:
        return len(self._watches)

    def notify(self, collections: Iterable[str]) -> None:
        """Schedule re-evaluation of every watch on the changed ``collections``."""
        changed = set(collections)
        for handle in list(self._watches):
            if handle.collection in changed:
                self._schedule(handle)

    def refresh_all(self) -> None:
        """Schedule re-evaluation of every live watch."""
        for handle in list(self._watches):
            self._schedule(handle)

    def _unregister(self, handle: StoreWatch) -> None:
        try:
            self._watches.remove(handle)
        except ValueError:
            pass

    def _schedule(self, handle: StoreWatch) -> None:
        if handle.pending or not handle.active:
            return
        handle.pending = True
        handle.loop.call_soon_threadsafe(self._deliver, handle)

    def _deliver(self, handle: StoreWatch) -> None:
        handle.pending = False
        if not handle.active:
            return
        try:
            snapshot = self._evaluate(handle.target)
        except (TypeError, ValueError) as exc:
            self._fail(handle, StoreError(f"Could not evaluate watch on {handle.collection}: {exc}"))
            return
        except StoreError as exc:
            self._fail(handle, exc)
            return
        if snapshot == handle.last:
            return
        handle.last = snapshot
        handle.on_snapshot(snapshot)

    def _fail(self, handle: StoreWatch, exc: StoreError) -> None:
        logger.warning("Watch on %s failed: %s", handle.collection, exc)
        if handle.on_error is not None:
            handle.on_error(exc)

    def _evaluate(self, target: WatchTarget) -> Snapshot:
        raise NotImplementedError
