"""Tests for password authentication and the JWT cookie guard."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.core.constants import ACCESS_TOKEN_COOKIE
from identity_api.core.crypto import CryptoService
from identity_api.core.exceptions import BadRequestException, UnauthorizedException
from identity_api.core.security import create_access_token, decode_access_token
from identity_api.dependencies import get_crypto_service
from identity_api.models.sessions import sessions
from identity_api.models.users import users
from identity_api.models.verification_tokens import verification_tokens
from identity_api.schemas.sessions import ByToken, DeviceInfo
from identity_api.services.auth_service import AuthService, UserInformation
from identity_api.services.session_service import SessionService
from identity_api.services.user_service import UserService

DEVICE = DeviceInfo(
    user_agent="pytest - 1", ip_address="127.0.0.1", device_name="CI", device_type="desktop"
)


@pytest.fixture
def auth_service() -> AuthService:
    """Auth service without media storage."""
    return AuthService(get_crypto_service(), UserService(), SessionService())


@pytest.mark.asyncio
async def test_validate_user_success(db_session: AsyncSession, auth_service: AuthService, test_user):
    """Correct credentials return the user without the password hash."""
    user = await auth_service.validate_user(db_session, test_user["email"], "Password123")

    assert user["id"] == test_user["id"]
    assert "password" not in user


@pytest.mark.asyncio
async def test_validate_user_failures(db_session: AsyncSession, auth_service: AuthService, test_user):
    """Each rejection carries its own message."""
    with pytest.raises(BadRequestException, match="User with this email does not exist"):
        await auth_service.validate_user(db_session, "nobody@example.com", "Password123")

    with pytest.raises(UnauthorizedException, match="Invalid credentials"):
        await auth_service.validate_user(db_session, test_user["email"], "WrongPass1")

    await UserService().create_user(db_session, email="new@example.com", password="Password123")
    with pytest.raises(UnauthorizedException, match="Email not verified"):
        await auth_service.validate_user(db_session, "new@example.com", "Password123")

    await UserService().create_user(db_session, email="oauth@example.com", email_verified=True)
    with pytest.raises(UnauthorizedException, match="User does not have a password set"):
        await auth_service.validate_user(db_session, "oauth@example.com", "Password123")


@pytest.mark.asyncio
async def test_access_token_claims_are_encrypted(
    db_session: AsyncSession, auth_service: AuthService, test_user
):
    """The JWT never carries the raw user id or email, and a session row backs it."""
    token = await auth_service.generate_access_token(
        db_session,
        UserInformation(user_id=test_user["id"], email=test_user["email"], device=DEVICE),
    )

    payload = decode_access_token(token)
    assert payload is not None
    assert payload["sub"] != str(test_user["id"])
    assert test_user["email"] not in payload["email"]
    assert get_crypto_service().decrypt(payload["sub"]) == str(test_user["id"])
    assert get_crypto_service().decrypt(payload["email"]) == test_user["email"]

    session = await SessionService().validate_session(db_session, test_user["id"], ByToken(token))
    assert session["device_name"] == "CI"


@pytest.mark.asyncio
async def test_authenticate_token_rejects_foreign_crypto(
    db_session: AsyncSession, auth_service: AuthService, test_user
):
    """A validly signed JWT whose subject was encrypted with another key is rejected."""
    token = create_access_token({"sub": CryptoService("other").encrypt(str(test_user["id"]))})

    with pytest.raises(UnauthorizedException):
        await auth_service.authenticate_token(db_session, token)


@pytest.mark.asyncio
async def test_authenticate_token_without_session_row(
    db_session: AsyncSession, auth_service: AuthService, test_user
):
    """A JWT that never got a session row is not accepted."""
    token = create_access_token({"sub": get_crypto_service().encrypt(str(test_user["id"]))})

    with pytest.raises(UnauthorizedException, match="Invalid session token"):
        await auth_service.authenticate_token(db_session, token)


@pytest.mark.asyncio
async def test_register(client: AsyncClient, db_session: AsyncSession, csrf_headers):
    """Registration creates an unverified user and an email verification code."""
    response = await client.post(
        "/api/v1/auth/register",
        json={"name": "Jane", "email": "jane@example.com", "password": "Secret123"},
        headers=await csrf_headers(),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status_code"] == 201
    assert body["data"]["email"] == "jane@example.com"
    assert body["data"]["email_verified"] is False
    assert "password" not in body["data"]

    user = (await db_session.execute(select(users).where(users.c.email == "jane@example.com"))).first()
    assert user is not None
    assert body["data"]["id"] == str(user.public_id)
    assert user.password != "Secret123"

    token_row = (
        await db_session.execute(
            select(verification_tokens).where(verification_tokens.c.identifier == "jane@example.com")
        )
    ).first()
    assert token_row is not None
    assert token_row.token_type.value == "EMAIL_VERIFICATION"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, csrf_headers, test_user):
    """An email can only be registered once."""
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": test_user["email"], "password": "Secret123"},
        headers=await csrf_headers(),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "User with this email already exists"


@pytest.mark.asyncio
async def test_register_race_on_duplicate_email(
    client: AsyncClient, csrf_headers, test_user, monkeypatch: pytest.MonkeyPatch
):
    """A duplicate that slips past the existence check is still a 400, not a 500."""
    monkeypatch.setattr(UserService, "user_exists", AsyncMock(return_value=False))

    response = await client.post(
        "/api/v1/auth/register",
        json={"email": test_user["email"], "password": "Secret123"},
        headers=await csrf_headers(),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "User with this email already exists"


@pytest.mark.asyncio
async def test_create_user_duplicate_rolls_back(db_session: AsyncSession, test_user):
    """The unique email constraint surfaces as BadRequest and the session stays usable."""
    service = UserService()

    with pytest.raises(BadRequestException, match="already exists"):
        await service.create_user(db_session, email=test_user["email"], password="Secret123")

    assert await service.user_exists(db_session, test_user["email"])


@pytest.mark.asyncio
async def test_email_is_case_insensitive(client: AsyncClient, db_session: AsyncSession, csrf_headers, login):
    """Emails are stored lowercased and matched regardless of case."""
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": "Alice@Example.com", "password": "Secret123"},
        headers=await csrf_headers(),
    )
    assert response.status_code == 201
    assert response.json()["data"]["email"] == "alice@example.com"

    response = await client.post(
        "/api/v1/auth/register",
        json={"email": "ALICE@example.com", "password": "Secret123"},
        headers=await csrf_headers(),
    )
    assert response.status_code == 400

    user = await UserService().get_user_by_email(db_session, "aLiCe@EXAMPLE.com")
    assert user["email"] == "alice@example.com"
    await UserService().mark_email_verified(db_session, user["id"])

    response = await login("ALICE@Example.COM", "Secret123")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_register_rejects_weak_password(client: AsyncClient, csrf_headers):
    """Passwords need letters and digits."""
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": "weak@example.com", "password": "onlyletters"},
        headers=await csrf_headers(),
    )

    assert response.status_code == 422
    assert response.json()["message"] == "Request validation failed"


@pytest.mark.asyncio
async def test_login_sets_cookie_and_returns_public_id(client: AsyncClient, login, test_user):
    """Login answers with the public id and sets the httpOnly session cookie."""
    response = await login()

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    assert body["data"]["id"] == str(test_user["public_id"])
    assert "password" not in body["data"]

    set_cookie = next(
        value
        for value in response.headers.get_list("set-cookie")
        if value.startswith(f"{ACCESS_TOKEN_COOKIE}=")
    )
    assert "HttpOnly" in set_cookie
    assert "Max-Age=604800" in set_cookie
    assert "Domain=api.example.com" in set_cookie
    assert client.cookies.get(ACCESS_TOKEN_COOKIE)


@pytest.mark.asyncio
async def test_login_unverified_user(client: AsyncClient, db_session: AsyncSession, login):
    """Unverified accounts cannot log in."""
    await UserService().create_user(db_session, email="pending@example.com", password="Password123")

    response = await login("pending@example.com")

    assert response.status_code == 401
    assert response.json()["message"] == "Email not verified"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, login, test_user):
    """Wrong password is a 401."""
    response = await login(password="WrongPass1")

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_me_requires_cookie(client: AsyncClient):
    """No cookie, no profile."""
    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401
    assert response.json()["message"] == "Unauthorized"


@pytest.mark.asyncio
async def test_me_returns_profile(client: AsyncClient, login, test_user):
    """The profile hides image information."""
    await login()

    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == test_user["email"]
    assert data["image_information"] is None


@pytest.mark.asyncio
async def test_me_rejects_forged_cookie(client: AsyncClient):
    """A token not signed with the auth secret is rejected."""
    client.cookies.set(ACCESS_TOKEN_COOKIE, "not-a-jwt", domain="api.example.com")

    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_session(client: AsyncClient, login, csrf_headers, test_user):
    """After logout the cookie is gone and the old token is revoked."""
    await login()
    token = client.cookies.get(ACCESS_TOKEN_COOKIE)

    response = await client.post("/api/v1/auth/logout", headers=await csrf_headers())
    assert response.status_code == 200
    assert client.cookies.get(ACCESS_TOKEN_COOKIE) is None

    client.cookies.set(ACCESS_TOKEN_COOKIE, token, domain="api.example.com")
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["message"] == "Session has been revoked"


@pytest.mark.asyncio
async def test_two_factor_gate(
    client: AsyncClient, db_session: AsyncSession, login, test_user
):
    """2FA users need a two-factor-verified session."""
    await db_session.execute(
        update(users).where(users.c.id == test_user["id"]).values(is_2fa_enabled=True)
    )
    await db_session.commit()
    await login()

    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["code"] == "TWO_FACTOR_REQUIRED"

    await db_session.execute(
        update(sessions).where(sessions.c.user_id == test_user["id"]).values(two_factor_verified=True)
    )
    await db_session.commit()

    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_error_envelope_for_unknown_route(client: AsyncClient):
    """Errors share one JSON shape."""
    response = await client.get("/api/v1/does-not-exist")

    assert response.status_code == 404
    body = response.json()
    assert body["status_code"] == 404
    assert body["error"] == "Not Found"
    assert body["path"] == "/api/v1/does-not-exist"
    assert "timestamp" in body


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Health endpoints answer without authentication."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await client.get("/api/v1/health/detailed")
    assert response.status_code == 200
    assert response.json()["redis"] == "disabled"
