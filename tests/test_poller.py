# tests/test_poller.py
"""Tests for the background watch refresher."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from civic_stage.store.base import DocumentRef, StoreError
from civic_stage.store.poller import ChangePoller
from civic_stage.store.sql import SqlDocumentStore


@pytest.mark.asyncio
async def test_poller_refreshes_until_stopped(store: SqlDocumentStore, mocker: Any) -> None:
    refresh = mocker.spy(store, "refresh_all")
    poller = ChangePoller(store, interval=0.1)

    await poller.start()
    assert poller.running
    await asyncio.sleep(0.25)
    await poller.stop()

    assert not poller.running
    assert refresh.call_count >= 2
    calls = refresh.call_count
    await asyncio.sleep(0.15)
    assert refresh.call_count == calls


@pytest.mark.asyncio
async def test_poller_picks_up_writes_from_other_processes(
    store: SqlDocumentStore, session_factory: Any, settle: Any
) -> None:
    received: list[Any] = []
    store.watch(DocumentRef("settings", "config"), received.append)
    await settle()

    # A second store on the same database does not notify the first one's watches.
    other = SqlDocumentStore(session_factory)
    await other.set("settings", "config", {"maintenance_mode": True})
    await settle()
    assert len(received) == 1

    poller = ChangePoller(store, interval=0.1)
    await poller.start()
    await asyncio.sleep(0.05)
    await poller.stop()
    await settle()

    assert received[-1].data == {"maintenance_mode": True}


@pytest.mark.asyncio
async def test_poller_backs_off_on_store_errors(store: SqlDocumentStore, mocker: Any) -> None:
    mocker.patch.object(store, "refresh_all", side_effect=StoreError("database is locked"))
    warning = mocker.patch("civic_stage.store.poller.logger.warning")
    poller = ChangePoller(store, interval=0.1)

    await poller.start()
    await asyncio.sleep(0.05)
    await poller.stop()

    assert warning.called
    assert poller.refresh_count == 0
