"""Tests for one-time codes: email verification and password reset."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.config import settings
from identity_api.core.exceptions import BadRequestException, RateLimitException
from identity_api.core.security import utc_now
from identity_api.models.verification_tokens import TokenType, verification_tokens
from identity_api.services import otp_service as otp_module
from identity_api.services.otp_service import OTPService, generate_otp

FIXED_OTP = 123456


@pytest.fixture
def fixed_otp(monkeypatch: pytest.MonkeyPatch) -> int:
    """Make every issued code predictable."""
    monkeypatch.setattr(otp_module, "generate_otp", lambda: FIXED_OTP)
    return FIXED_OTP


async def age_record(db: AsyncSession, email: str, **values) -> None:
    await db.execute(
        update(verification_tokens)
        .where(verification_tokens.c.identifier == email)
        .values(**values)
    )
    await db.commit()


async def get_record(db: AsyncSession, email: str, token_type: TokenType):
    result = await db.execute(
        select(verification_tokens).where(
            verification_tokens.c.identifier == email,
            verification_tokens.c.token_type == token_type,
        )
    )
    return result.first()


def test_generate_otp_has_fixed_length():
    """Codes never lose leading digits."""
    for _ in range(50):
        assert len(str(generate_otp())) == 6
    assert len(str(generate_otp(8))) == 8

    with pytest.raises(ValueError):
        generate_otp(3)


@pytest.mark.asyncio
async def test_save_otp_stores_only_a_hash(db_session: AsyncSession, fixed_otp: int):
    """The plain code is returned, the row holds a bcrypt hash."""
    otp = await OTPService().save_otp(db_session, "a@example.com", TokenType.PASSWORD_RESET)

    record = await get_record(db_session, "a@example.com", TokenType.PASSWORD_RESET)
    assert otp == fixed_otp
    assert record.token != str(fixed_otp)
    assert record.token.startswith("$2")


@pytest.mark.asyncio
async def test_save_otp_is_rate_limited_then_replaced(db_session: AsyncSession, fixed_otp: int):
    """A second code inside the window is refused; after it the row is replaced."""
    service = OTPService(expiry_minutes=5)
    await service.save_otp(db_session, "a@example.com", TokenType.PASSWORD_RESET)

    with pytest.raises(RateLimitException, match="per 5 minute"):
        await service.save_otp(db_session, "a@example.com", TokenType.PASSWORD_RESET)

    # A different purpose has its own window
    await service.save_otp(db_session, "a@example.com", TokenType.EMAIL_VERIFICATION)

    await age_record(db_session, "a@example.com", updated_at=utc_now() - timedelta(minutes=6))
    await service.save_otp(db_session, "a@example.com", TokenType.PASSWORD_RESET)

    rows = (
        await db_session.execute(
            select(verification_tokens).where(verification_tokens.c.identifier == "a@example.com")
        )
    ).all()
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_verify_otp(db_session: AsyncSession, fixed_otp: int):
    """Right code passes, wrong code and unknown email fail."""
    service = OTPService()
    await service.save_otp(db_session, "a@example.com", TokenType.PASSWORD_RESET)

    assert await service.verify_otp(
        db_session, "a@example.com", str(fixed_otp), TokenType.PASSWORD_RESET
    )

    with pytest.raises(BadRequestException, match="Invalid OTP"):
        await service.verify_otp(db_session, "a@example.com", "654321", TokenType.PASSWORD_RESET)

    with pytest.raises(BadRequestException, match="Invalid OTP"):
        await service.verify_otp(
            db_session, "a@example.com", str(fixed_otp), TokenType.EMAIL_VERIFICATION
        )


@pytest.mark.asyncio
async def test_register_then_verify_email_allows_login(
    client: AsyncClient, db_session: AsyncSession, csrf_headers, login, fixed_otp: int
):
    """A registered user can log in once the emailed code is verified."""
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": "new@example.com", "password": "Secret123"},
        headers=await csrf_headers(),
    )
    assert response.status_code == 201

    response = await login("new@example.com", "Secret123")
    assert response.status_code == 401

    response = await client.post(
        "/api/v1/auth/verify-otp",
        json={"email": "new@example.com", "otp": 111111, "verification_method": "EMAIL_VERIFICATION"},
        headers=await csrf_headers(),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid OTP"

    response = await client.post(
        "/api/v1/auth/verify-otp",
        json={
            "email": "new@example.com",
            "otp": fixed_otp,
            "verification_method": "EMAIL_VERIFICATION",
        },
        headers=await csrf_headers(),
    )
    assert response.status_code == 200
    assert response.json()["message"] == "OTP verified successfully"
    assert await get_record(db_session, "new@example.com", TokenType.EMAIL_VERIFICATION) is None

    response = await login("new@example.com", "Secret123")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_verify_expired_otp(
    client: AsyncClient, db_session: AsyncSession, csrf_headers, fixed_otp: int
):
    """An expired code is a 408 and is removed."""
    await client.post(
        "/api/v1/auth/register",
        json={"email": "late@example.com", "password": "Secret123"},
        headers=await csrf_headers(),
    )
    await age_record(db_session, "late@example.com", expires_at=utc_now() - timedelta(seconds=1))

    response = await client.post(
        "/api/v1/auth/verify-otp",
        json={
            "email": "late@example.com",
            "otp": fixed_otp,
            "verification_method": "EMAIL_VERIFICATION",
        },
        headers=await csrf_headers(),
    )

    assert response.status_code == 408
    assert response.json()["message"] == "OTP expired"
    assert await get_record(db_session, "late@example.com", TokenType.EMAIL_VERIFICATION) is None


@pytest.mark.asyncio
async def test_verify_otp_unknown_user(client: AsyncClient, csrf_headers):
    """Codes for unknown emails are a 404."""
    response = await client.post(
        "/api/v1/auth/verify-otp",
        json={"email": "ghost@example.com", "otp": 123456, "verification_method": "PASSWORD_RESET"},
        headers=await csrf_headers(),
    )

    assert response.status_code == 404
    assert response.json()["message"] == "User not found"


@pytest.mark.asyncio
async def test_request_new_verification_code_after_expiry(
    client: AsyncClient, db_session: AsyncSession, csrf_headers, login, fixed_otp: int
):
    """An expired verification code can be replaced and the account still verified."""
    await client.post(
        "/api/v1/auth/register",
        json={"email": "late@example.com", "password": "Secret123"},
        headers=await csrf_headers(),
    )
    verify = {
        "email": "late@example.com",
        "otp": fixed_otp,
        "verification_method": "EMAIL_VERIFICATION",
    }

    response = await client.post(
        "/api/v1/auth/verify-email/request",
        json={"email": "late@example.com"},
        headers=await csrf_headers(),
    )
    assert response.status_code == 429

    await age_record(
        db_session,
        "late@example.com",
        expires_at=utc_now() - timedelta(seconds=1),
        updated_at=utc_now() - timedelta(minutes=settings.otp_expiry_minutes + 1),
    )
    response = await client.post("/api/v1/auth/verify-otp", json=verify, headers=await csrf_headers())
    assert response.status_code == 408

    response = await client.post(
        "/api/v1/auth/verify-email/request",
        json={"email": "late@example.com"},
        headers=await csrf_headers(),
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Email verification OTP sent"
    assert response.json()["data"]["otp"] is None
    assert await get_record(db_session, "late@example.com", TokenType.EMAIL_VERIFICATION)

    response = await client.post("/api/v1/auth/verify-otp", json=verify, headers=await csrf_headers())
    assert response.status_code == 200

    response = await login("late@example.com", "Secret123")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_request_verification_code_rejections(
    client: AsyncClient, csrf_headers, test_user: dict
):
    """Verified accounts and unknown emails get no new code."""
    response = await client.post(
        "/api/v1/auth/verify-email/request",
        json={"email": test_user["email"]},
        headers=await csrf_headers(),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Email already verified"

    response = await client.post(
        "/api/v1/auth/verify-email/request",
        json={"email": "ghost@example.com"},
        headers=await csrf_headers(),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reset_request_hides_code_by_default(
    client: AsyncClient, csrf_headers, test_user, fixed_otp: int
):
    """The code is not echoed unless SHOW_OTP is on; re-requests are throttled."""
    response = await client.post(
        "/api/v1/auth/reset-password/request",
        json={"email": test_user["email"]},
        headers=await csrf_headers(),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["otp"] is None
    assert data["otp_expiration_time"] == settings.otp_expiry_minutes

    response = await client.post(
        "/api/v1/auth/reset-password/request",
        json={"email": test_user["email"]},
        headers=await csrf_headers(),
    )
    assert response.status_code == 429


@pytest.mark.asyncio
async def test_reset_request_echoes_code_in_development(
    client: AsyncClient, csrf_headers, test_user, fixed_otp: int, monkeypatch: pytest.MonkeyPatch
):
    """With SHOW_OTP the code comes back in the response."""
    monkeypatch.setattr(settings, "show_otp", True)

    response = await client.post(
        "/api/v1/auth/reset-password/request",
        json={"email": test_user["email"]},
        headers=await csrf_headers(),
    )

    assert response.status_code == 200
    assert response.json()["data"]["otp"] == fixed_otp


@pytest.mark.asyncio
async def test_reset_password_confirm(
    client: AsyncClient, db_session: AsyncSession, csrf_headers, login, test_user, fixed_otp: int
):
    """A reset changes the password, consumes the code and signs out every session."""
    assert (await login()).status_code == 200

    await client.post(
        "/api/v1/auth/reset-password/request",
        json={"email": test_user["email"]},
        headers=await csrf_headers(),
    )

    response = await client.post(
        "/api/v1/auth/reset-password/confirm",
        json={"email": test_user["email"], "otp": fixed_otp, "password": "NewSecret456"},
        headers=await csrf_headers(),
    )
    assert response.status_code == 200
    assert response.json()["message"] == "User password reset"
    assert await get_record(db_session, test_user["email"], TokenType.PASSWORD_RESET) is None

    # The old cookie no longer works
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401

    assert (await login()).status_code == 401
    assert (await login(password="NewSecret456")).status_code == 200

    response = await client.post(
        "/api/v1/auth/reset-password/confirm",
        json={"email": test_user["email"], "otp": fixed_otp, "password": "Another789"},
        headers=await csrf_headers(),
    )
    assert response.status_code == 400
