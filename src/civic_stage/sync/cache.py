"""Local mirror of the remote collections the client displays.

The cache is written only by subscription callbacks and by the profile point
fetch. Every post or notification snapshot replaces the whole list; profiles
are merged by id so a fetched author never disturbs other entries.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from civic_stage.schemas import ContentItem, Notification, SiteSettings, UserProfile
from civic_stage.store.base import DocumentSnapshot

logger = logging.getLogger(__name__)

CacheListener = Callable[[str], None]

POSTS = "posts"
PROFILES = "profiles"
NOTIFICATIONS = "notifications"
SETTINGS = "settings"


def _with_id(snapshot: DocumentSnapshot) -> dict[str, Any]:
    data: dict[str, Any] = dict(snapshot.data or {})
    data["id"] = snapshot.id
    return data


class EntityCache:
    """Latest known snapshots of posts, profiles, notifications and site settings."""

    def __init__(self) -> None:
        self._posts: tuple[ContentItem, ...] = ()
        self._posts_by_id: dict[str, ContentItem] = {}
        self._profiles: dict[str, UserProfile] = {}
        self._notifications: tuple[Notification, ...] = ()
        self._settings = SiteSettings()
        self._settings_present = False
        self._listeners: list[CacheListener] = []

    @property
    def posts(self) -> tuple[ContentItem, ...]:
        """Posts in the order the store delivered them."""
        return self._posts

    @property
    def profiles(self) -> Mapping[str, UserProfile]:
        return dict(self._profiles)

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return self._notifications

    @property
    def settings(self) -> SiteSettings:
        return self._settings

    @property
    def settings_present(self) -> bool:
        """False until a stored settings document has been seen."""
        return self._settings_present

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self._notifications if not item.read)

    def add_listener(self, listener: CacheListener) -> Callable[[], None]:
        """Call ``listener`` with the changed section name after every write."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def replace_posts(self, snapshots: Iterable[DocumentSnapshot]) -> None:
        items = self._validate_all(ContentItem, snapshots)
        self._posts = tuple(items)
        self._posts_by_id = {item.id: item for item in items}
        self._changed(POSTS)

    def replace_notifications(self, snapshots: Iterable[DocumentSnapshot]) -> None:
        self._notifications = tuple(self._validate_all(Notification, snapshots))
        self._changed(NOTIFICATIONS)

    def apply_settings(self, snapshot: DocumentSnapshot) -> None:
        """Merge a stored settings document over the defaults.

        A missing document keeps whatever settings are currently held.
        """
        if snapshot.data is None:
            self._settings_present = False
            return
        try:
            self._settings = SiteSettings.from_document(dict(snapshot.data))
        except ValidationError as e:
            logger.error("Ignoring invalid site settings: %s", e)
            return
        self._settings_present = True
        self._changed(SETTINGS)

    def merge_profile(self, profile: UserProfile) -> None:
        self._profiles[profile.id] = profile
        self._changed(PROFILES)

    def merge_profile_snapshot(self, snapshot: DocumentSnapshot) -> UserProfile | None:
        """Validate and merge a profile document; return None if it is absent or invalid."""
        if snapshot.data is None:
            return None
        try:
            profile = UserProfile.model_validate(_with_id(snapshot))
        except ValidationError as e:
            logger.error("Skipping invalid profile %s: %s", snapshot.id, e)
            return None
        self.merge_profile(profile)
        return profile

    def get_post(self, item_id: str) -> ContentItem | None:
        return self._posts_by_id.get(item_id)

    def get_profile(self, user_id: str) -> UserProfile | None:
        return self._profiles.get(user_id)

    def clear_session_state(self) -> None:
        """Drop notifications and cached profiles when the session ends.

        Posts and site settings are shared by every session and stay.
        """
        self._notifications = ()
        self._profiles = {}
        self._changed(NOTIFICATIONS)
        self._changed(PROFILES)

    def _validate_all(self, model: Any, snapshots: Iterable[DocumentSnapshot]) -> list[Any]:
        items = []
        for snapshot in snapshots:
            if snapshot.data is None:
                continue
            try:
                items.append(model.model_validate(_with_id(snapshot)))
            except ValidationError as e:
                logger.error("Skipping invalid %s %s: %s", model.__name__, snapshot.id, e)
        return items

    def _changed(self, section: str) -> None:
        for listener in list(self._listeners):
            listener(section)
