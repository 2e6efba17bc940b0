"""Session lifecycle: who is signed in and which profile goes with them.

States move ``Unauthenticated -> Authenticating -> Authenticated`` when the
identity provider reports a signed-in principal and the profile document
arrives, and back to ``Unauthenticated`` on sign-out. A principal with no
stored profile gets a bootstrapped default that is not persisted until the
user saves it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeAlias

from pydantic import ValidationError

from civic_stage.core.settings import Settings
from civic_stage.db.time import now_ms
from civic_stage.identity.base import Identity, IdentityProvider
from civic_stage.schemas import Role, UserProfile
from civic_stage.store.base import DocumentRef, DocumentSnapshot, Query, Snapshot
from civic_stage.sync.cache import EntityCache
from civic_stage.sync.subscriptions import SubscriptionManager

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
NOTIFICATIONS_COLLECTION = "notifications"
PROFILE_KEY = "profile"
NOTIFICATIONS_KEY = "notifications"
DEFAULT_NAME = "Citizen"


class AuthenticationRequiredError(RuntimeError):
    """Raised when an operation needs a signed-in session and there is none."""


@dataclass(frozen=True)
class Unauthenticated:
    pass


@dataclass(frozen=True)
class Authenticating:
    identity: Identity


@dataclass(frozen=True)
class Authenticated:
    """Signed-in session; ``persisted`` is False for a bootstrapped profile."""

    identity: Identity
    profile: UserProfile
    persisted: bool = True


SessionState: TypeAlias = Unauthenticated | Authenticating | Authenticated
SessionListener = Callable[[SessionState], None]


def bootstrap_profile(identity: Identity, avatar_base_url: str) -> UserProfile:
    """Default profile for a principal that has no stored profile yet."""
    return UserProfile(
        id=identity.uid,
        name=identity.display_name or DEFAULT_NAME,
        avatar=f"{avatar_base_url}?seed={identity.uid}",
        email=identity.email,
        followers=0,
        following=0,
        joined_date=now_ms(),
    )


def notifications_query(user_id: str, limit: int) -> Query:
    return (
        Query(NOTIFICATIONS_COLLECTION)
        .where("user_id", "==", user_id)
        .order_by("timestamp", descending=True)
        .limit(limit)
    )


class SessionController:
    """Drives the session state machine from identity and profile signals."""

    def __init__(
        self,
        identity_provider: IdentityProvider,
        subscriptions: SubscriptionManager,
        cache: EntityCache,
        config: Settings,
    ) -> None:
        self._identity_provider = identity_provider
        self._subscriptions = subscriptions
        self._cache = cache
        self._config = config
        self._state: SessionState = Unauthenticated()
        self._listeners: list[SessionListener] = []
        self._unsubscribe_identity: Callable[[], None] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def identity(self) -> Identity | None:
        if isinstance(self._state, (Authenticating, Authenticated)):
            return self._state.identity
        return None

    @property
    def profile(self) -> UserProfile | None:
        if isinstance(self._state, Authenticated):
            return self._state.profile
        return None

    @property
    def persisted(self) -> bool:
        return isinstance(self._state, Authenticated) and self._state.persisted

    @property
    def is_admin(self) -> bool:
        profile = self.profile
        return profile is not None and profile.is_admin

    def require_identity(self) -> Identity:
        identity = self.identity
        if identity is None:
            raise AuthenticationRequiredError("Sign in to continue.")
        return identity

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def start(self) -> None:
        """Begin following the identity provider's session signal."""
        if self._unsubscribe_identity is None:
            self._unsubscribe_identity = self._identity_provider.on_session_changed(
                self._on_identity
            )

    def close(self) -> None:
        """End any session, then stop following the identity signal."""
        self.end_session()
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None

    def apply_admin_override(self, profile: UserProfile, identity: Identity) -> UserProfile:
        if self._config.is_admin_email(identity.email) and profile.role is not Role.ADMIN:
            return profile.model_copy(update={"role": Role.ADMIN})
        return profile

    def _on_identity(self, identity: Identity | None) -> None:
        if identity is None:
            self.end_session()
            return
        current = self.identity
        if current is not None and current.uid == identity.uid:
            return
        if current is not None:
            self.end_session()

        self._set_state(Authenticating(identity))
        self._subscriptions.subscribe(
            PROFILE_KEY,
            DocumentRef(USERS_COLLECTION, identity.uid),
            lambda snapshot: self._on_profile(identity, snapshot),
        )

    def _on_profile(self, identity: Identity, snapshot: Snapshot) -> None:
        if self.identity is None or self.identity.uid != identity.uid:
            return
        if not isinstance(snapshot, DocumentSnapshot):
            return

        profile: UserProfile | None = None
        persisted = True
        if snapshot.exists:
            try:
                profile = UserProfile.model_validate({**dict(snapshot.data or {}), "id": snapshot.id})
            except ValidationError as e:
                logger.error("Stored profile %s is invalid: %s", snapshot.id, e)
        if profile is None:
            if isinstance(self._state, Authenticated) and not self._state.persisted:
                profile = self._state.profile
            else:
                profile = bootstrap_profile(identity, self._config.avatar_base_url)
            persisted = False

        profile = self.apply_admin_override(profile, identity)
        self._cache.merge_profile(profile)
        self._set_state(Authenticated(identity, profile, persisted))

        if not self._subscriptions.is_active(NOTIFICATIONS_KEY):
            self._subscriptions.subscribe(
                NOTIFICATIONS_KEY,
                notifications_query(identity.uid, self._config.notification_limit),
                self._on_notifications,
            )

    def _on_notifications(self, snapshot: Snapshot) -> None:
        if isinstance(snapshot, list):
            self._cache.replace_notifications(snapshot)

    def end_session(self) -> None:
        """Release profile and notification subscriptions and clear session state."""
        self._subscriptions.cancel(NOTIFICATIONS_KEY)
        self._subscriptions.cancel(PROFILE_KEY)
        if isinstance(self._state, Unauthenticated):
            return
        self._cache.clear_session_state()
        self._set_state(Unauthenticated())

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
