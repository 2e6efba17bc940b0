"""Keyed registry of live store watches.

Every subscription is registered under a key ("posts", "profile", ...).
Subscribing again under the same key releases the previous watch first, and a
per-key generation number makes sure a delivery that arrives after its
subscription was superseded or cancelled is dropped rather than applied.
"""

from __future__ import annotations

import logging
from types import TracebackType

from civic_stage.store.base import (
    DocumentStore,
    ErrorCallback,
    Snapshot,
    SnapshotCallback,
    StoreError,
    Watch,
    WatchTarget,
)

logger = logging.getLogger(__name__)


class Subscription:
    """Handle for one keyed subscription; usable as a context manager."""

    def __init__(self, manager: SubscriptionManager, key: str, generation: int) -> None:
        self._manager = manager
        self.key = key
        self.generation = generation

    @property
    def active(self) -> bool:
        return self._manager._is_current(self.key, self.generation)

    def cancel(self) -> None:
        if self.active:
            self._manager.cancel(self.key)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cancel()


class SubscriptionManager:
    """Owns every live watch the client holds against the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._watches: dict[str, Watch] = {}
        self._generations: dict[str, int] = {}

    def subscribe(
        self,
        key: str,
        target: WatchTarget,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Watch ``target`` under ``key``, replacing any subscription already held there."""
        self.cancel(key)
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation

        def deliver(snapshot: Snapshot) -> None:
            if not self._is_current(key, generation):
                logger.debug("Dropping stale delivery for %s", key)
                return
            try:
                on_snapshot(snapshot)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error("Failed to apply snapshot for %s: %s", key, e, exc_info=True)

        def fail(error: StoreError) -> None:
            if not self._is_current(key, generation):
                return
            logger.warning("Subscription %s failed: %s", key, error)
            if on_error is not None:
                on_error(error)

        self._watches[key] = self._store.watch(target, deliver, fail)
        return Subscription(self, key, generation)

    def cancel(self, key: str) -> bool:
        """Release the subscription held under ``key``; return False if there was none."""
        watch = self._watches.pop(key, None)
        if watch is None:
            return False
        # Bumping the generation invalidates deliveries already scheduled.
        self._generations[key] = self._generations.get(key, 0) + 1
        watch.cancel()
        return True

    def cancel_all(self) -> None:
        """Release every subscription, most recently acquired first."""
        for key in reversed(list(self._watches)):
            self.cancel(key)

    def active_keys(self) -> list[str]:
        return list(self._watches)

    def is_active(self, key: str) -> bool:
        return key in self._watches

    def _is_current(self, key: str, generation: int) -> bool:
        return key in self._watches and self._generations.get(key) == generation
