# tests/test_auth_flow.py
from __future__ import annotations

from typing import Any

import pytest

from civic_stage.identity.base import IdentityError
from civic_stage.schemas import SiteSettings
from civic_stage.services.auth_flow import (
    AuthFlowError,
    AuthService,
    SignupForm,
    UsernameCheck,
    UsernameStatus,
    describe_auth_error,
    normalize_username,
    username_suggestions,
)
from civic_stage.store.base import StoreError
from civic_stage.sync.context import AppContext

from conftest import ADMIN_EMAIL


def _form(**overrides: Any) -> SignupForm:
    fields: dict[str, Any] = {
        "name": "Rahim Uddin",
        "username": "Rahim",
        "email": "rahim@example.com",
        "password": "secret1",
        "agree_terms": True,
    }
    fields.update(overrides)
    return SignupForm(**fields)


def test_normalize_username_strips_whitespace_and_case() -> None:
    assert normalize_username(" Rahim  Uddin ") == "rahimuddin"


def test_username_suggestions_shape() -> None:
    first, second, third = username_suggestions("rahim")
    assert first == "rahim_bd"
    assert second.startswith("rahim") and second[len("rahim"):].isdigit()
    assert third == "citizen.rahim"


def test_describe_auth_error_maps_known_codes() -> None:
    assert describe_auth_error(IdentityError("auth/email-already-in-use")) == "Email is already registered."
    assert describe_auth_error(IdentityError("auth/weak-password")) == "Password should be at least 6 characters."
    assert describe_auth_error(IdentityError("auth/invalid-credential")) == "Invalid email or password."
    assert describe_auth_error(IdentityError("auth/user-not-found")) == "user-not-found"


@pytest.mark.asyncio
async def test_check_username(context: AppContext) -> None:
    assert (await context.auth.check_username("ab")).status is UsernameStatus.IDLE
    assert (await context.auth.check_username("rahim")).status is UsernameStatus.AVAILABLE

    await context.store.set("usernames", "rahim", {"uid": "u1"})
    check = await context.auth.check_username(" Rahim ")
    assert check.status is UsernameStatus.TAKEN
    assert "rahim_bd" in check.suggestions


@pytest.mark.asyncio
async def test_check_username_failure_is_idle(context: AppContext, mocker: Any) -> None:
    mocker.patch.object(context.store, "get", side_effect=StoreError("offline"))
    assert (await context.auth.check_username("rahim")) == UsernameCheck(UsernameStatus.IDLE)


@pytest.mark.asyncio
async def test_sign_up_writes_profile_and_reservation(context: AppContext) -> None:
    identity = await context.auth.sign_up(_form())

    assert identity.display_name == "Rahim Uddin"
    profile = (await context.store.get("users", identity.uid)).data
    assert profile is not None
    assert profile["username"] == "rahim"
    assert profile["role"] == "user"
    assert profile["status"] == "Active"
    assert profile["avatar"].endswith(f"?seed={identity.uid}")
    reservation = await context.store.get("usernames", "rahim")
    assert reservation.data == {"uid": identity.uid}


@pytest.mark.asyncio
async def test_sign_up_grants_admin_role_to_admin_email(context: AppContext) -> None:
    identity = await context.auth.sign_up(_form(email=ADMIN_EMAIL.upper(), username="boss"))
    profile = (await context.store.get("users", identity.uid)).data
    assert profile is not None and profile["role"] == "admin"


@pytest.mark.asyncio
async def test_sign_up_rejects_taken_username(context: AppContext) -> None:
    await context.store.set("usernames", "rahim", {"uid": "u1"})
    with pytest.raises(AuthFlowError, match="already taken"):
        await context.auth.sign_up(_form())
    assert context.identity_provider.current is None


@pytest.mark.asyncio
async def test_sign_up_reservation_race_writes_nothing(context: AppContext, mocker: Any) -> None:
    # The name is reserved between the availability check and the batch.
    await context.store.set("usernames", "rahim", {"uid": "u1"})
    mocker.patch.object(
        context.auth, "check_username", return_value=UsernameCheck(UsernameStatus.AVAILABLE)
    )

    with pytest.raises(AuthFlowError, match="already taken"):
        await context.auth.sign_up(_form())

    identity = context.identity_provider.current
    assert identity is not None
    assert not (await context.store.get("users", identity.uid)).exists
    assert (await context.store.get("usernames", "rahim")).data == {"uid": "u1"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"agree_terms": False}, "Terms"),
        ({"username": "ab"}, "at least 3"),
        ({"password": "123"}, "at least 6"),
        ({"email": "not-an-email"}, "invalid-email"),
    ],
)
async def test_sign_up_validation(context: AppContext, overrides: dict[str, Any], message: str) -> None:
    with pytest.raises(AuthFlowError, match=message):
        await context.auth.sign_up(_form(**overrides))


@pytest.mark.asyncio
async def test_sign_up_fails_when_registration_closed(context: AppContext) -> None:
    service = AuthService(
        context.store,
        context.identity_provider,
        context.config,
        current_settings=lambda: SiteSettings(registration_open=False),
    )
    with pytest.raises(AuthFlowError, match="closed"):
        await service.sign_up(_form())


@pytest.mark.asyncio
async def test_duplicate_email_is_reported(context: AppContext) -> None:
    await context.auth.sign_up(_form())
    with pytest.raises(AuthFlowError, match="Email is already registered."):
        await context.auth.sign_up(_form(username="other"))


@pytest.mark.asyncio
async def test_sign_in_and_out(context: AppContext) -> None:
    created = await context.auth.sign_up(_form())
    await context.auth.sign_out()
    assert context.identity_provider.current is None

    identity = await context.auth.sign_in("RAHIM@example.com", "secret1")
    assert identity.uid == created.uid

    with pytest.raises(AuthFlowError, match="Invalid email or password."):
        await context.auth.sign_in("rahim@example.com", "wrong-password")


@pytest.mark.asyncio
async def test_password_reset_for_unknown_email(context: AppContext) -> None:
    with pytest.raises(AuthFlowError, match="user-not-found"):
        await context.auth.send_password_reset("nobody@example.com")
