# tests/test_identity_local.py
from __future__ import annotations

from typing import Any

import pytest
from jose import jwt

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
)
from civic_stage.identity.local import LocalIdentityProvider, hash_password


def test_hash_password_depends_on_salt() -> None:
    assert hash_password("secret1", b"a" * 16) == hash_password("secret1", b"a" * 16)
    assert hash_password("secret1", b"a" * 16) != hash_password("secret1", b"b" * 16)


@pytest.mark.asyncio
async def test_session_callbacks_run_on_the_loop(
    identity_provider: LocalIdentityProvider, settle: Any
) -> None:
    seen: list[Identity | None] = []
    unsubscribe = identity_provider.on_session_changed(seen.append)
    assert seen == []

    await settle()
    assert seen == [None]

    identity = await identity_provider.sign_up("rahim@example.com", "secret1")
    assert seen == [None]
    await settle()
    assert seen == [None, identity]

    unsubscribe()
    await identity_provider.sign_out()
    await settle()
    assert seen == [None, identity]


@pytest.mark.asyncio
async def test_unsubscribe_before_delivery_drops_pending_callback(
    identity_provider: LocalIdentityProvider, settle: Any
) -> None:
    seen: list[Identity | None] = []
    unsubscribe = identity_provider.on_session_changed(seen.append)
    unsubscribe()
    await settle()
    assert seen == []


@pytest.mark.asyncio
async def test_sign_up_and_sign_in(identity_provider: LocalIdentityProvider) -> None:
    created = await identity_provider.sign_up(" Rahim@Example.com ", "secret1")
    assert created.email == "rahim@example.com"
    assert created.email_verified is False
    assert identity_provider.current == created

    await identity_provider.sign_out()
    assert identity_provider.current is None

    identity = await identity_provider.sign_in("rahim@example.com", "secret1")
    assert identity.uid == created.uid


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("email", "password", "code"),
    [
        ("rahim", "secret1", INVALID_EMAIL),
        ("rahim@localhost", "secret1", INVALID_EMAIL),
        ("rahim@example.com", "12345", WEAK_PASSWORD),
    ],
)
async def test_sign_up_rejections(
    identity_provider: LocalIdentityProvider, email: str, password: str, code: str
) -> None:
    with pytest.raises(IdentityError) as excinfo:
        await identity_provider.sign_up(email, password)
    assert excinfo.value.code == code


@pytest.mark.asyncio
async def test_duplicate_email(identity_provider: LocalIdentityProvider) -> None:
    await identity_provider.sign_up("rahim@example.com", "secret1")
    with pytest.raises(IdentityError) as excinfo:
        await identity_provider.sign_up("RAHIM@example.com", "secret2")
    assert excinfo.value.code == EMAIL_ALREADY_IN_USE


@pytest.mark.asyncio
async def test_wrong_password_and_unknown_email_look_the_same(
    identity_provider: LocalIdentityProvider,
) -> None:
    await identity_provider.sign_up("rahim@example.com", "secret1")
    for email, password in (("rahim@example.com", "nope-nope"), ("karim@example.com", "secret1")):
        with pytest.raises(IdentityError) as excinfo:
            await identity_provider.sign_in(email, password)
        assert excinfo.value.code == INVALID_CREDENTIAL


@pytest.mark.asyncio
async def test_update_display_name(identity_provider: LocalIdentityProvider) -> None:
    with pytest.raises(IdentityError) as excinfo:
        await identity_provider.update_display_name("Rahim")
    assert excinfo.value.code == NO_CURRENT_USER

    await identity_provider.sign_up("rahim@example.com", "secret1")
    identity = await identity_provider.update_display_name("Rahim")
    assert identity.display_name == "Rahim"
    assert identity_provider.current == identity


@pytest.mark.asyncio
async def test_password_reset_round_trip(
    identity_provider: LocalIdentityProvider, sent_resets: list[tuple[str, str]]
) -> None:
    await identity_provider.sign_up("rahim@example.com", "secret1")

    await identity_provider.send_password_reset("Rahim@example.com")
    assert len(sent_resets) == 1
    email, token = sent_resets[0]
    assert email == "rahim@example.com"

    await identity_provider.confirm_password_reset(token, "new-secret")
    await identity_provider.sign_in("rahim@example.com", "new-secret")
    with pytest.raises(IdentityError):
        await identity_provider.sign_in("rahim@example.com", "secret1")


@pytest.mark.asyncio
async def test_password_reset_unknown_email(identity_provider: LocalIdentityProvider) -> None:
    with pytest.raises(IdentityError) as excinfo:
        await identity_provider.send_password_reset("nobody@example.com")
    assert excinfo.value.code == USER_NOT_FOUND


@pytest.mark.asyncio
async def test_reset_rejects_foreign_tokens(identity_provider: LocalIdentityProvider) -> None:
    identity = await identity_provider.sign_up("rahim@example.com", "secret1")
    wrong_purpose = jwt.encode({"sub": identity.uid, "purpose": "login"}, "test-secret-key", algorithm="HS256")
    wrong_key = jwt.encode({"sub": identity.uid, "purpose": "password_reset"}, "other-key", algorithm="HS256")

    for token in (wrong_purpose, wrong_key, "garbage"):
        with pytest.raises(IdentityError) as excinfo:
            await identity_provider.confirm_password_reset(token, "new-secret")
        assert excinfo.value.code == EXPIRED_ACTION_CODE
