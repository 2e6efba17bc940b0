"""Application context wiring the synchronization components together.

Startup order is identity signal, posts, site settings; the profile and
notification subscriptions follow from the session. :meth:`AppContext.close`
tears everything down in the reverse order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from civic_stage.core.settings import Settings, settings as default_settings
from civic_stage.identity.base import IdentityProvider
from civic_stage.identity.local import LocalIdentityProvider
from civic_stage.schemas import UserProfile
from civic_stage.schemas.site import SETTINGS_COLLECTION, SETTINGS_DOC_ID, SiteSettings
from civic_stage.services.analysis import TextAnalyzer, load_analysis_config
from civic_stage.services.auth_flow import AuthService
from civic_stage.store.base import (
    BaseDocumentStore,
    DocumentRef,
    DocumentSnapshot,
    DocumentStore,
    Query,
    Snapshot,
    StoreError,
)
from civic_stage.store.poller import ChangePoller
from civic_stage.store.sql import SqlDocumentStore
from civic_stage.sync.cache import EntityCache
from civic_stage.sync.dispatcher import POSTS_COLLECTION, MutationDispatcher
from civic_stage.sync.session import (
    USERS_COLLECTION,
    Authenticated,
    SessionController,
    SessionState,
)
from civic_stage.sync.subscriptions import SubscriptionManager

logger = logging.getLogger(__name__)

POSTS_KEY = "posts"
SETTINGS_KEY = "settings"


def posts_query() -> Query:
    return Query(POSTS_COLLECTION).order_by("timestamp", descending=True)


class AppContext:
    """Owns the cache, subscriptions, session and dispatcher of one client."""

    def __init__(
        self,
        config: Settings | None = None,
        store: DocumentStore | None = None,
        identity_provider: IdentityProvider | None = None,
        analyzer: TextAnalyzer | None = None,
    ) -> None:
        self.config = config or default_settings
        store = store or SqlDocumentStore()
        identity_provider = identity_provider or LocalIdentityProvider(config=self.config)
        self.store = store
        self.identity_provider = identity_provider
        self.analyzer = analyzer or TextAnalyzer(load_analysis_config(self.config))

        self.cache = EntityCache()
        self.subscriptions = SubscriptionManager(store)
        self.session = SessionController(
            identity_provider, self.subscriptions, self.cache, self.config
        )
        self.dispatcher = MutationDispatcher(store, self.cache, self.session, self.analyzer)
        self.auth = AuthService(
            store, identity_provider, self.config, current_settings=lambda: self.cache.settings
        )

        self._poller: ChangePoller | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._settings_seen = False
        self._settings_initializing = False
        self.session.add_listener(self._on_session_state)
        self.started = False

    async def start(self) -> None:
        """Start following the identity signal, the posts feed and site settings."""
        if self.started:
            return
        self.started = True
        self.session.start()
        self.subscriptions.subscribe(POSTS_KEY, posts_query(), self._on_posts)
        self.subscriptions.subscribe(
            SETTINGS_KEY, DocumentRef(SETTINGS_COLLECTION, SETTINGS_DOC_ID), self._on_settings
        )
        if self.config.store_poll_enabled and isinstance(self.store, BaseDocumentStore):
            self._poller = ChangePoller(self.store, self.config.store_poll_interval_seconds)
            await self._poller.start()

    async def close(self) -> None:
        """Release every subscription in reverse order and wait for pending writes."""
        if self._poller is not None:
            await self._poller.stop()
            self._poller = None
        self.session.end_session()
        self.subscriptions.cancel_all()
        self.session.close()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.analyzer.close()
        self.started = False

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run a mutation in the background; failures are logged, not raised."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def fetch_profile(self, user_id: str) -> UserProfile | None:
        """Return a profile from the cache, fetching and merging it if missing."""
        cached = self.cache.get_profile(user_id)
        if cached is not None:
            return cached
        try:
            snapshot = await self.store.get(USERS_COLLECTION, user_id)
        except StoreError as e:
            logger.warning("Failed to fetch profile %s: %s", user_id, e)
            return None
        return self.cache.merge_profile_snapshot(snapshot)

    def is_site_available(self) -> bool:
        """False while maintenance mode is on, except for administrators."""
        return not self.cache.settings.maintenance_mode or self.session.is_admin

    def _on_posts(self, snapshot: Snapshot) -> None:
        if isinstance(snapshot, list):
            self.cache.replace_posts(snapshot)

    def _on_settings(self, snapshot: Snapshot) -> None:
        if not isinstance(snapshot, DocumentSnapshot):
            return
        self._settings_seen = True
        self.cache.apply_settings(snapshot)
        self._maybe_initialize_settings()

    def _on_session_state(self, state: SessionState) -> None:
        if isinstance(state, Authenticated):
            self._maybe_initialize_settings()

    def _maybe_initialize_settings(self) -> None:
        if (
            self._settings_seen
            and not self.cache.settings_present
            and self.session.is_admin
            and not self._settings_initializing
        ):
            self._settings_initializing = True
            self.spawn(self._initialize_settings())

    async def _initialize_settings(self) -> None:
        batch = self.store.batch()
        batch.create(SETTINGS_COLLECTION, SETTINGS_DOC_ID, SiteSettings().to_document())
        try:
            await batch.commit()
            logger.info("Initialized site settings with defaults")
        except StoreError as e:
            # Another admin may have written the document first.
            logger.warning("Could not initialize site settings: %s", e)
        finally:
            self._settings_initializing = False

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed: %s", exc, exc_info=exc)
