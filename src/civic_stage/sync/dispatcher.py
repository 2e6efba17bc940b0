"""User-initiated writes against the document store.

Mutations are expressed as field-level deltas wherever concurrent sessions may
touch the same document, so two users voting or commenting at the same time
both land. The dispatcher never writes to the cache: the resulting state comes
back through the live subscriptions.

Remote failures are logged and reported as a ``False`` return value, except
for :meth:`MutationDispatcher.update_settings`, whose failure is re-raised so
the admin screen can tell the settings were not saved.
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from civic_stage.db.time import now_ms
from civic_stage.schemas import ContentItem, SiteSettings, UserProfile
from civic_stage.schemas.site import SETTINGS_COLLECTION, SETTINGS_DOC_ID
from civic_stage.services.compose import (
    Analyzer,
    DraftValidationError,
    PostDraft,
    build_post_document,
)
from civic_stage.store.base import DocumentStore, StoreError
from civic_stage.store.deltas import ArrayRemove, ArrayUnion, Increment
from civic_stage.sync.cache import EntityCache
from civic_stage.sync.session import DEFAULT_NAME, USERS_COLLECTION, SessionController

logger = logging.getLogger(__name__)

POSTS_COLLECTION = "posts"
COMMENT_ID_LENGTH = 9
_COMMENT_ID_ALPHABET = string.ascii_lowercase + string.digits

Confirm = Callable[[], bool]


class AuthorizationError(PermissionError):
    """Raised when the acting user lacks the role an operation expects."""


class VoteDirection(str, Enum):
    UP = "up"
    DOWN = "down"


def plan_vote(item: ContentItem, voter_id: str, direction: VoteDirection) -> dict[str, Any]:
    """Return the single field update that applies ``direction`` from ``voter_id``.

    Voting the same way twice withdraws the vote; voting the other way moves it.
    """
    if direction is VoteDirection.UP:
        same_count, same_voters, other_count, other_voters = (
            "upvotes", "upvoters", "downvotes", "downvoters",
        )
    else:
        same_count, same_voters, other_count, other_voters = (
            "downvotes", "downvoters", "upvotes", "upvoters",
        )
    same_list = getattr(item, same_voters)
    other_list = getattr(item, other_voters)

    if voter_id in same_list:
        return {same_count: Increment(-1), same_voters: ArrayRemove(voter_id)}
    if voter_id in other_list:
        return {
            same_count: Increment(1),
            other_count: Increment(-1),
            same_voters: ArrayUnion(voter_id),
            other_voters: ArrayRemove(voter_id),
        }
    return {same_count: Increment(1), same_voters: ArrayUnion(voter_id)}


def new_comment_id() -> str:
    return "".join(secrets.choice(_COMMENT_ID_ALPHABET) for _ in range(COMMENT_ID_LENGTH))


def _plain_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Drop the document id and store enum members by value."""
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in fields.items()
        if key != "id"
    }


class MutationDispatcher:
    """Turns user actions into store writes on behalf of the current session."""

    def __init__(
        self,
        store: DocumentStore,
        cache: EntityCache,
        session: SessionController,
        analyzer: Analyzer | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._session = session
        self._analyzer = analyzer

    async def vote(self, item_id: str, direction: VoteDirection) -> bool:
        identity = self._session.require_identity()
        item = await self._load_item(item_id)
        if item is None:
            logger.warning("Cannot vote on unknown post %s", item_id)
            return False
        fields = plan_vote(item, identity.uid, direction)
        return await self._update(POSTS_COLLECTION, item_id, fields, action="vote")

    async def comment(self, item_id: str, text: str) -> bool:
        identity = self._session.require_identity()
        content = text.strip()
        if not content:
            raise DraftValidationError("Comment text cannot be empty.")
        record = {
            "id": new_comment_id(),
            "author_id": identity.uid,
            "author": self._acting_name(),
            "content": content,
            "timestamp": now_ms(),
        }
        return await self._update(
            POSTS_COLLECTION, item_id, {"comments": ArrayUnion(record)}, action="comment"
        )

    async def edit_content(self, item_id: str, title: str, body: str) -> bool:
        self._require_author_or_admin(item_id)
        if not title.strip():
            raise DraftValidationError("A title is required.")
        return await self._update(
            POSTS_COLLECTION, item_id, {"title": title, "body": body}, action="edit"
        )

    async def delete_content(self, item_id: str, confirm: Confirm | None = None) -> bool:
        self._require_author_or_admin(item_id)
        if confirm is not None and not confirm():
            return False
        try:
            await self._store.delete(POSTS_COLLECTION, item_id)
        except StoreError as e:
            logger.warning("Failed to delete post %s: %s", item_id, e)
            return False
        return True

    async def create_post(self, draft: PostDraft) -> str | None:
        """Publish ``draft``; return the new post id, or None if the store rejected it."""
        identity = self._session.require_identity()
        document = await build_post_document(
            draft,
            author_id=identity.uid,
            author=self._acting_name(),
            analyzer=self._analyzer,
            site_settings=self._cache.settings,
        )
        try:
            return await self._store.add(POSTS_COLLECTION, document)
        except StoreError as e:
            logger.warning("Failed to create post: %s", e)
            return None

    async def update_profile(self, fields: Mapping[str, Any]) -> bool:
        """Overwrite profile ``fields`` of the acting user.

        A bootstrapped profile that was never stored is written in full.
        """
        identity = self._session.require_identity()
        changes = _plain_fields(fields)
        profile = self._session.profile

        if profile is not None and not self._session.persisted:
            merged = UserProfile.model_validate({**profile.model_dump(), **changes})
            try:
                await self._store.set(USERS_COLLECTION, identity.uid, merged.to_document())
            except StoreError as e:
                logger.warning("Failed to save profile %s: %s", identity.uid, e)
                return False
            return True

        if profile is not None:
            # Reject values the profile model would not accept.
            UserProfile.model_validate({**profile.model_dump(), **changes})
        return await self._update(USERS_COLLECTION, identity.uid, changes, action="profile")

    async def admin_update_user(self, user_id: str, fields: Mapping[str, Any]) -> bool:
        self._require_admin()
        changes = _plain_fields(fields)
        current = self._cache.get_profile(user_id)
        base = current.model_dump() if current is not None else {"id": user_id}
        UserProfile.model_validate({**base, **changes})
        return await self._update(USERS_COLLECTION, user_id, changes, action="admin update")

    async def admin_delete_user(self, user_id: str, confirm: Confirm | None = None) -> bool:
        self._require_admin()
        if confirm is not None and not confirm():
            return False
        try:
            await self._store.delete(USERS_COLLECTION, user_id)
        except StoreError as e:
            logger.warning("Failed to delete user %s: %s", user_id, e)
            return False
        return True

    async def update_settings(self, new_settings: SiteSettings) -> None:
        """Overwrite the site settings document.

        Raises:
            StoreError: if the store rejects the write.
        """
        self._require_admin()
        try:
            await self._store.set(SETTINGS_COLLECTION, SETTINGS_DOC_ID, new_settings.to_document())
        except StoreError as e:
            logger.warning("Failed to save site settings: %s", e)
            raise

    async def _load_item(self, item_id: str) -> ContentItem | None:
        item = self._cache.get_post(item_id)
        if item is not None:
            return item
        try:
            snapshot = await self._store.get(POSTS_COLLECTION, item_id)
        except StoreError as e:
            logger.warning("Failed to load post %s: %s", item_id, e)
            return None
        if snapshot.data is None:
            return None
        return ContentItem.model_validate({**dict(snapshot.data), "id": snapshot.id})

    async def _update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any], *, action: str
    ) -> bool:
        try:
            await self._store.update(collection, doc_id, fields)
        except StoreError as e:
            logger.warning("Failed to %s %s/%s: %s", action, collection, doc_id, e)
            return False
        return True

    def _acting_name(self) -> str:
        profile = self._session.profile
        if profile is not None:
            return profile.name
        identity = self._session.identity
        return (identity.display_name if identity else None) or DEFAULT_NAME

    def _require_admin(self) -> None:
        self._session.require_identity()
        if not self._session.is_admin:
            raise AuthorizationError("Administrator role required.")

    def _require_author_or_admin(self, item_id: str) -> None:
        identity = self._session.require_identity()
        item = self._cache.get_post(item_id)
        if item is None or self._session.is_admin:
            return
        if item.author_id != identity.uid:
            raise AuthorizationError("Only the author or an administrator can change this post.")

