"""Email/password identity provider backed by the ``account`` table."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import timedelta

from jose import JWTError, jwt
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from civic_stage.core.settings import Settings, settings as default_settings
from civic_stage.db.session import SessionLocal
from civic_stage.db.time import now_ms, utcnow
from civic_stage.identity.base import (
    EMAIL_ALREADY_IN_USE,
    EXPIRED_ACTION_CODE,
    INVALID_CREDENTIAL,
    INVALID_EMAIL,
    NO_CURRENT_USER,
    USER_NOT_FOUND,
    WEAK_PASSWORD,
    Identity,
    IdentityError,
    SessionCallback,
)
from civic_stage.models import Account

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000
RESET_PURPOSE = "password_reset"

Mailer = Callable[[str, str], None]


def _log_mailer(email: str, token: str) -> None:
    logger.info("Password reset requested for %s", email)


def hash_password(password: str, salt: bytes) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return digest.hex()


def _normalize_email(email: str) -> str:
    normalized = email.strip().lower()
    local, _, domain = normalized.partition("@")
    if not local or "." not in domain:
        raise IdentityError(INVALID_EMAIL)
    return normalized


def _to_identity(account: Account) -> Identity:
    return Identity(
        uid=account.uid,
        email=account.email,
        display_name=account.display_name,
        email_verified=account.email_verified,
    )


class LocalIdentityProvider:
    """Identity provider storing credentials in the application database.

    Session changes are broadcast to registered callbacks on the running event
    loop, never synchronously from inside the operation that caused them.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        config: Settings | None = None,
        mailer: Mailer | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or default_settings
        self._mailer = mailer or _log_mailer
        self._current: Identity | None = None
        self._callbacks: list[SessionCallback] = []

    @property
    def current(self) -> Identity | None:
        return self._current

    def on_session_changed(self, callback: SessionCallback) -> Callable[[], None]:
        self._callbacks.append(callback)
        loop = asyncio.get_running_loop()
        current = self._current
        loop.call_soon(self._invoke, callback, current)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def sign_in(self, email: str, password: str) -> Identity:
        normalized = _normalize_email(email)
        with self._session_factory() as db:
            account = db.execute(
                select(Account).where(func.lower(Account.email) == normalized)
            ).scalar_one_or_none()
            if account is None or not self._check_password(account, password):
                raise IdentityError(INVALID_CREDENTIAL)
            identity = _to_identity(account)
        self._set_current(identity)
        return identity

    async def sign_up(self, email: str, password: str) -> Identity:
        normalized = _normalize_email(email)
        if len(password) < self._config.password_min_length:
            raise IdentityError(WEAK_PASSWORD)

        salt = secrets.token_bytes(16)
        account = Account(
            uid=uuid.uuid4().hex,
            email=normalized,
            password_hash=hash_password(password, salt),
            password_salt=salt.hex(),
            display_name=None,
            email_verified=False,
            created_at_ms=now_ms(),
        )
        with self._session_factory() as db:
            exists = db.execute(
                select(Account.uid).where(func.lower(Account.email) == normalized)
            ).first()
            if exists is not None:
                raise IdentityError(EMAIL_ALREADY_IN_USE)
            db.add(account)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise IdentityError(EMAIL_ALREADY_IN_USE) from exc
            identity = _to_identity(account)

        logger.info("Registered account %s", identity.uid)
        self._set_current(identity)
        return identity

    async def update_display_name(self, display_name: str) -> Identity:
        if self._current is None:
            raise IdentityError(NO_CURRENT_USER)
        with self._session_factory() as db:
            account = db.get(Account, self._current.uid)
            if account is None:
                raise IdentityError(USER_NOT_FOUND)
            account.display_name = display_name
            db.commit()
            identity = _to_identity(account)
        # Profile fields are not a session change; callbacks are not re-run.
        self._current = identity
        return identity

    async def send_password_reset(self, email: str) -> None:
        normalized = _normalize_email(email)
        with self._session_factory() as db:
            account = db.execute(
                select(Account).where(func.lower(Account.email) == normalized)
            ).scalar_one_or_none()
            if account is None:
                raise IdentityError(USER_NOT_FOUND)
            token = self._create_reset_token(account.uid)
        self._mailer(normalized, token)

    async def confirm_password_reset(self, token: str, new_password: str) -> None:
        """Set a new password for the account named by a reset ``token``."""
        try:
            payload = jwt.decode(
                token,
                self._config.secret_key,
                algorithms=[self._config.jwt_algorithm],
            )
        except JWTError as err:
            raise IdentityError(EXPIRED_ACTION_CODE) from err
        if payload.get("purpose") != RESET_PURPOSE or not payload.get("sub"):
            raise IdentityError(EXPIRED_ACTION_CODE)
        if len(new_password) < self._config.password_min_length:
            raise IdentityError(WEAK_PASSWORD)

        with self._session_factory() as db:
            account = db.get(Account, payload["sub"])
            if account is None:
                raise IdentityError(USER_NOT_FOUND)
            salt = secrets.token_bytes(16)
            account.password_salt = salt.hex()
            account.password_hash = hash_password(new_password, salt)
            db.commit()

    async def sign_out(self) -> None:
        if self._current is not None:
            self._set_current(None)

    def _create_reset_token(self, uid: str) -> str:
        expire = utcnow() + timedelta(minutes=self._config.reset_token_ttl_minutes)
        to_encode: dict[str, object] = {"sub": uid, "purpose": RESET_PURPOSE, "exp": expire}
        encoded: str = jwt.encode(
            to_encode,
            self._config.secret_key,
            algorithm=self._config.jwt_algorithm,
        )
        return encoded

    @staticmethod
    def _check_password(account: Account, password: str) -> bool:
        expected = hash_password(password, bytes.fromhex(account.password_salt))
        return hmac.compare_digest(expected, account.password_hash)

    def _set_current(self, identity: Identity | None) -> None:
        self._current = identity
        loop = asyncio.get_running_loop()
        for callback in list(self._callbacks):
            loop.call_soon(self._invoke, callback, identity)

    def _invoke(self, callback: SessionCallback, identity: Identity | None) -> None:
        if callback in self._callbacks:
            callback(identity)
