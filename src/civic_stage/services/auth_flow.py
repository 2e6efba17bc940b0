"""Sign-in, sign-up and password reset flows.

Sign-up creates the identity first, then writes the profile and the username
reservation in one atomic batch so a profile never exists without its
reservation (or the other way round).
"""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict

from civic_stage.core.settings import Settings
from civic_stage.db.time import now_ms
from civic_stage.identity.base import Identity, IdentityError, IdentityProvider
from civic_stage.schemas import AccountStatus, Role, SiteSettings
from civic_stage.store.base import DocumentExistsError, DocumentStore, StoreError

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
USERNAMES_COLLECTION = "usernames"
MIN_USERNAME_LENGTH = 3

_FRIENDLY_MESSAGES = {
    "email-already-in-use": "Email is already registered.",
    "weak-password": "Password should be at least 6 characters.",
    "invalid-credential": "Invalid email or password.",
}


class AuthFlowError(RuntimeError):
    """Raised with a message suitable for showing on the sign-in form."""


class UsernameStatus(str, Enum):
    IDLE = "IDLE"
    AVAILABLE = "AVAILABLE"
    TAKEN = "TAKEN"


@dataclass(frozen=True)
class UsernameCheck:
    status: UsernameStatus
    suggestions: list[str] = field(default_factory=list)


class SignupForm(BaseModel):
    name: str
    username: str
    email: str
    password: str
    agree_terms: bool = False

    model_config = ConfigDict(frozen=True)


def normalize_username(username: str) -> str:
    return re.sub(r"\s+", "", username).lower()


def describe_auth_error(error: IdentityError) -> str:
    """Translate an identity provider error code into a short message."""
    code = error.code.removeprefix("auth/")
    return _FRIENDLY_MESSAGES.get(code, code)


def username_suggestions(username: str) -> list[str]:
    return [f"{username}_bd", f"{username}{random.randint(0, 98)}", f"citizen.{username}"]


class AuthService:
    """Authentication flows shown on the sign-in page."""

    def __init__(
        self,
        store: DocumentStore,
        identity_provider: IdentityProvider,
        config: Settings,
        current_settings: Callable[[], SiteSettings] = SiteSettings,
    ) -> None:
        self._store = store
        self._identity = identity_provider
        self._config = config
        self._current_settings = current_settings

    async def check_username(self, username: str) -> UsernameCheck:
        """Report whether ``username`` can still be reserved."""
        normalized = normalize_username(username)
        if len(normalized) < MIN_USERNAME_LENGTH:
            return UsernameCheck(UsernameStatus.IDLE)
        try:
            snapshot = await self._store.get(USERNAMES_COLLECTION, normalized)
        except StoreError as e:
            logger.warning("Username check failed: %s", e)
            return UsernameCheck(UsernameStatus.IDLE)
        if snapshot.exists:
            return UsernameCheck(UsernameStatus.TAKEN, username_suggestions(normalized))
        return UsernameCheck(UsernameStatus.AVAILABLE)

    async def sign_in(self, email: str, password: str) -> Identity:
        try:
            return await self._identity.sign_in(email, password)
        except IdentityError as e:
            raise AuthFlowError(describe_auth_error(e)) from e

    async def sign_up(self, form: SignupForm) -> Identity:
        """Register a new citizen and reserve their username.

        Raises:
            AuthFlowError: if registration is closed, the form is incomplete,
                the username is taken, or the identity provider refuses.
        """
        if not self._current_settings().registration_open:
            raise AuthFlowError("Registration is currently closed.")
        if not form.agree_terms:
            raise AuthFlowError("Please agree to the Terms & Privacy Policy.")
        username = normalize_username(form.username)
        if len(username) < MIN_USERNAME_LENGTH:
            raise AuthFlowError("Username must be at least 3 characters.")
        check = await self.check_username(username)
        if check.status is UsernameStatus.TAKEN:
            raise AuthFlowError("Username is already taken.")

        try:
            identity = await self._identity.sign_up(form.email, form.password)
            identity = await self._identity.update_display_name(form.name)
        except IdentityError as e:
            raise AuthFlowError(describe_auth_error(e)) from e

        email = form.email.strip().lower()
        profile = {
            "name": form.name,
            "username": username,
            "email": email,
            "avatar": f"{self._config.avatar_base_url}?seed={identity.uid}",
            "role": (Role.ADMIN if self._config.is_admin_email(email) else Role.USER).value,
            "followers": 0,
            "following": 0,
            "joined_date": now_ms(),
            "status": AccountStatus.ACTIVE.value,
        }
        batch = self._store.batch()
        batch.set(USERS_COLLECTION, identity.uid, profile)
        batch.create(USERNAMES_COLLECTION, username, {"uid": identity.uid})
        try:
            await batch.commit()
        except DocumentExistsError as e:
            raise AuthFlowError("Username is already taken.") from e
        except StoreError as e:
            logger.warning("Failed to store profile for %s: %s", identity.uid, e)
            raise AuthFlowError("Could not create your profile. Please try again.") from e

        logger.info("Signed up %s as %s", identity.uid, username)
        return identity

    async def send_password_reset(self, email: str) -> None:
        try:
            await self._identity.send_password_reset(email)
        except IdentityError as e:
            raise AuthFlowError(describe_auth_error(e)) from e

    async def sign_out(self) -> None:
        await self._identity.sign_out()
