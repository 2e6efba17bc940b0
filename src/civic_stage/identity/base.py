"""Identity provider contract.

The provider authenticates people and broadcasts who the current session
belongs to. Profiles are not part of it; they live in the document store.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

EMAIL_ALREADY_IN_USE = "auth/email-already-in-use"
WEAK_PASSWORD = "auth/weak-password"
INVALID_CREDENTIAL = "auth/invalid-credential"
INVALID_EMAIL = "auth/invalid-email"
USER_NOT_FOUND = "auth/user-not-found"
EXPIRED_ACTION_CODE = "auth/expired-action-code"
NO_CURRENT_USER = "auth/no-current-user"


@dataclass(frozen=True)
class Identity:
    """The authenticated principal behind a session."""

    uid: str
    email: str | None = None
    display_name: str | None = None
    email_verified: bool = False


class IdentityError(RuntimeError):
    """Raised by identity providers; ``code`` is a stable ``auth/...`` string."""

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(message or code)
        self.code = code


SessionCallback = Callable[[Identity | None], None]


class IdentityProvider(Protocol):
    """Operations the session controller and auth flows need."""

    def on_session_changed(self, callback: SessionCallback) -> Callable[[], None]:
        """Register ``callback``; it first receives the current state, then every change.

        Returns a callable that unregisters the callback.
        """
        ...

    @property
    def current(self) -> Identity | None: ...

    async def sign_in(self, email: str, password: str) -> Identity: ...

    async def sign_up(self, email: str, password: str) -> Identity: ...

    async def update_display_name(self, display_name: str) -> Identity: ...

    async def send_password_reset(self, email: str) -> None: ...

    async def sign_out(self) -> None: ...
