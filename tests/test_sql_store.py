# tests/test_sql_store.py
"""Tests for the SQLAlchemy-backed document store."""

from __future__ import annotations

from typing import Any

import pytest

from civic_stage.store.base import (
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentRef,
    DocumentSnapshot,
    Query,
    StoreError,
)
from civic_stage.store.deltas import ArrayUnion, Increment
from civic_stage.store.sql import SqlDocumentStore


@pytest.mark.asyncio
async def test_get_missing_document_returns_empty_snapshot(store: SqlDocumentStore) -> None:
    snapshot = await store.get("posts", "nope")
    assert snapshot.id == "nope"
    assert not snapshot.exists


@pytest.mark.asyncio
async def test_set_overwrites_whole_document(store: SqlDocumentStore) -> None:
    await store.set("users", "u1", {"name": "Rahim", "bio": "hi"})
    await store.set("users", "u1", {"name": "Karim"})
    snapshot = await store.get("users", "u1")
    assert snapshot.data == {"name": "Karim"}


@pytest.mark.asyncio
async def test_add_generates_id(store: SqlDocumentStore) -> None:
    doc_id = await store.add("posts", {"title": "Road"})
    assert len(doc_id) == 20
    assert (await store.get("posts", doc_id)).data == {"title": "Road"}


@pytest.mark.asyncio
async def test_update_applies_deltas_against_stored_value(store: SqlDocumentStore) -> None:
    await store.set("posts", "p1", {"upvotes": 1, "upvoters": ["u1"], "title": "A"})
    await store.update("posts", "p1", {"upvotes": Increment(1), "upvoters": ArrayUnion("u2")})
    await store.update("posts", "p1", {"upvotes": Increment(1), "upvoters": ArrayUnion("u3")})
    data = (await store.get("posts", "p1")).data
    assert data == {"upvotes": 3, "upvoters": ["u1", "u2", "u3"], "title": "A"}


@pytest.mark.asyncio
async def test_update_missing_document_raises(store: SqlDocumentStore) -> None:
    with pytest.raises(DocumentNotFoundError):
        await store.update("posts", "missing", {"title": "x"})


@pytest.mark.asyncio
async def test_delete_missing_document_is_a_no_op(store: SqlDocumentStore) -> None:
    await store.delete("posts", "missing")


@pytest.mark.asyncio
async def test_full_writes_reject_deltas(store: SqlDocumentStore) -> None:
    with pytest.raises(ValueError):
        await store.set("posts", "p1", {"upvotes": Increment(1)})


@pytest.mark.asyncio
async def test_batch_commits_all_or_nothing(store: SqlDocumentStore) -> None:
    await store.set("usernames", "rahim", {"uid": "someone"})

    batch = store.batch()
    batch.set("users", "u1", {"name": "Rahim"})
    batch.create("usernames", "rahim", {"uid": "u1"})
    with pytest.raises(DocumentExistsError):
        await batch.commit()

    assert not (await store.get("users", "u1")).exists
    assert (await store.get("usernames", "rahim")).data == {"uid": "someone"}


@pytest.mark.asyncio
async def test_batch_cannot_be_committed_twice(store: SqlDocumentStore) -> None:
    batch = store.batch().set("users", "u1", {"name": "A"})
    await batch.commit()
    with pytest.raises(StoreError):
        await batch.commit()


@pytest.mark.asyncio
async def test_watch_delivers_current_state_then_changes(
    store: SqlDocumentStore, settle: Any
) -> None:
    received: list[list[DocumentSnapshot]] = []
    await store.set("posts", "p1", {"timestamp": 1})

    store.watch(Query("posts").order_by("timestamp", descending=True), received.append)
    await settle()
    assert [[s.id for s in batch] for batch in received] == [["p1"]]

    await store.set("posts", "p2", {"timestamp": 2})
    await settle()
    assert [s.id for s in received[-1]] == ["p2", "p1"]


@pytest.mark.asyncio
async def test_watch_skips_identical_consecutive_results(
    store: SqlDocumentStore, settle: Any
) -> None:
    received: list[Any] = []
    await store.set("users", "u1", {"name": "A"})
    store.watch(DocumentRef("users", "u1"), received.append)
    await settle()

    await store.set("users", "u2", {"name": "B"})
    await settle()
    assert len(received) == 1


@pytest.mark.asyncio
async def test_watch_coalesces_writes_made_before_delivery(
    store: SqlDocumentStore, settle: Any
) -> None:
    received: list[Any] = []
    store.watch(DocumentRef("users", "u1"), received.append)
    await store.set("users", "u1", {"name": "A"})
    await store.set("users", "u1", {"name": "B"})
    await settle()
    assert [snapshot.data for snapshot in received] == [{"name": "B"}]


@pytest.mark.asyncio
async def test_cancelled_watch_receives_nothing(store: SqlDocumentStore, settle: Any) -> None:
    received: list[Any] = []
    handle = store.watch(DocumentRef("users", "u1"), received.append)
    handle.cancel()
    await store.set("users", "u1", {"name": "A"})
    await settle()
    assert received == []
    assert not handle.active
    assert store.watch_count == 0


@pytest.mark.asyncio
async def test_malformed_order_field_does_not_break_the_watch(
    store: SqlDocumentStore, settle: Any
) -> None:
    received: list[list[DocumentSnapshot]] = []
    await store.set("posts", "good", {"timestamp": 5})
    await store.set("posts", "bad", {"timestamp": None})
    await store.set("posts", "text", {"timestamp": "soon"})

    store.watch(Query("posts").order_by("timestamp", descending=True), received.append)
    await settle()
    assert [s.id for s in received[-1]] == ["text", "good"]

    await store.set("posts", "newer", {"timestamp": 9})
    await settle()
    assert [s.id for s in received[-1]] == ["text", "newer", "good"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failure", [StoreError("permission denied"), TypeError("unorderable values")]
)
async def test_failed_evaluation_is_reported_to_on_error(
    store: SqlDocumentStore, settle: Any, mocker: Any, failure: Exception
) -> None:
    received: list[Any] = []
    errors: list[StoreError] = []
    await store.set("posts", "p1", {"timestamp": 1})
    store.watch(Query("posts").order_by("timestamp"), received.append, errors.append)
    await settle()
    assert len(received) == 1

    mocker.patch.object(store, "_evaluate", side_effect=failure)
    await store.set("posts", "p2", {"timestamp": 2})
    await settle()

    assert len(received) == 1
    assert len(errors) == 1 and isinstance(errors[0], StoreError)
