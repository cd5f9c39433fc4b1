"""Authentication endpoints."""

from urllib.parse import urlparse
from uuid import UUID

import structlog
from fastapi import APIRouter, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.config import settings
from identity_api.core.constants import ACCESS_TOKEN_COOKIE, SESSION_TIMEOUT
from identity_api.core.cookies import CookiePolicy
from identity_api.core.exceptions import (
    BadRequestException,
    NotFoundException,
    UnauthorizedException,
)
from identity_api.dependencies import (
    Auth,
    Cookies,
    CurrentAuth,
    CurrentUser,
    DatabaseSession,
    OAuth,
    Otp,
    Sessions,
    Users,
)
from identity_api.models.verification_tokens import TokenType
from identity_api.schemas.auth import (
    LoginRequest,
    OTPIssuedResponse,
    OTPRequest,
    OTPVerifyRequest,
    PasswordResetConfirm,
    RegisterRequest,
)
from identity_api.schemas.common import ApiResponse, create_api_response
from identity_api.schemas.sessions import ById, ByToken, RevokeAllResponse, SessionResponse
from identity_api.schemas.users import UserResponse
from identity_api.services.auth_service import UserInformation
from identity_api.services.oauth import decode_state, encode_state, oauth_error_message
from identity_api.services.session_service import SessionService
from identity_api.services.user_service import UserService

router = APIRouter()
logger = structlog.get_logger(__name__)


def set_access_token_cookie(response: Response, token: str, policy: CookiePolicy) -> None:
    """Attach the session token as an httpOnly cookie."""
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        token,
        max_age=int(SESSION_TIMEOUT.total_seconds()),
        httponly=True,
        **policy.cookie_kwargs(),
    )


def clear_access_token_cookie(response: Response, policy: CookiePolicy) -> None:
    """Expire the session cookie with the same attributes it was set with."""
    response.delete_cookie(ACCESS_TOKEN_COOKIE, httponly=True, **policy.cookie_kwargs())


def allowed_redirect(redirect: str | None) -> str | None:
    """Return ``redirect`` only when its origin is one of the configured origins."""
    if not redirect:
        return None
    try:
        parsed = urlparse(redirect)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    origin = f"{parsed.scheme}://{parsed.netloc}"
    return redirect if origin in settings.allowed_origins else None


async def _get_user_or_404(users: UserService, db: AsyncSession, email: str) -> dict:
    user = await users.get_user_by_email(db, email)
    if not user:
        raise NotFoundException("User not found")
    return user


@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register with email and password",
)
async def register(
    payload: RegisterRequest,
    request: Request,
    db: DatabaseSession,
    auth_service: Auth,
    users: Users,
    otp_service: Otp,
) -> ApiResponse[UserResponse]:
    """
    Create an unverified user and issue an email verification code.

    Raises:
        BadRequestException: If the email is already registered
    """
    if await users.user_exists(db, payload.email):
        raise BadRequestException("User with this email already exists")

    user = await auth_service.create_user(
        db,
        email=payload.email,
        name=payload.name,
        password=payload.password,
        image=payload.image,
        email_verified=False,
        phone=payload.phone,
    )

    otp = await otp_service.save_otp(db, user["email"], TokenType.EMAIL_VERIFICATION)
    if settings.show_otp:
        logger.info("otp_generated", email=user["email"], otp=otp)

    return create_api_response(
        request,
        status.HTTP_201_CREATED,
        "User registered successfully",
        UserResponse.from_user(user),
    )


@router.post(
    "/login",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_200_OK,
    summary="Login with email and password",
)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: DatabaseSession,
    auth_service: Auth,
    policy: Cookies,
) -> ApiResponse[UserResponse]:
    """
    Validate credentials, open a session and set the ``access-token`` cookie.

    Raises:
        BadRequestException: If no user has this email
        UnauthorizedException: If the credentials are not acceptable
    """
    user = await auth_service.validate_user(db, payload.email, payload.password)

    token = await auth_service.generate_access_token(
        db,
        UserInformation(
            user_id=user["id"],
            email=user["email"],
            device=SessionService.get_session_info(request),
        ),
    )
    set_access_token_cookie(response, token, policy)

    return create_api_response(
        request, status.HTTP_200_OK, "Login successful", UserResponse.from_user(user)
    )


@router.post(
    "/logout",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
    summary="Logout and revoke the current session",
)
async def logout(
    request: Request,
    response: Response,
    auth: CurrentAuth,
    db: DatabaseSession,
    sessions: Sessions,
    policy: Cookies,
) -> ApiResponse[None]:
    """Revoke the session behind the cookie and clear it."""
    await sessions.revoke_session(db, auth.user["id"], ByToken(auth.token))
    clear_access_token_cookie(response, policy)

    return create_api_response(request, status.HTTP_200_OK, "Logout successful", None)


@router.get(
    "/me",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_200_OK,
    summary="Get current user",
)
async def get_profile(request: Request, user: CurrentUser) -> ApiResponse[UserResponse]:
    """Return the authenticated user's profile."""
    return create_api_response(
        request,
        status.HTTP_200_OK,
        "User profile fetched successfully",
        UserResponse.from_user(user, include_image_information=False),
    )


@router.get(
    "/google",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    summary="Start Google sign-in",
)
async def google_login(
    provider: OAuth,
    redirect: str | None = Query(None, description="Where to send the user after login"),
) -> RedirectResponse:
    """Redirect to Google's consent screen, carrying ``redirect`` in ``state``."""
    state = encode_state(redirect) if redirect else None
    return RedirectResponse(provider.authorization_url(state))


@router.get(
    "/google/callback",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_200_OK,
    summary="Google sign-in callback",
)
async def google_callback(
    request: Request,
    db: DatabaseSession,
    auth_service: Auth,
    provider: OAuth,
    policy: Cookies,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    error_description: str | None = Query(None),
) -> Response:
    """
    Finish Google sign-in and set the session cookie.

    Redirects to the ``state`` redirect when its origin is allowed, otherwise
    answers with the user as JSON.

    Raises:
        UnauthorizedException: If the provider reported an error or the exchange failed
    """
    if error:
        raise UnauthorizedException(oauth_error_message(error, error_description))
    if not code:
        raise BadRequestException("Missing authorization code")

    profile = await provider.fetch_profile(code)
    user = await auth_service.find_or_create_user(db, profile)

    token = await auth_service.generate_access_token(
        db,
        UserInformation(
            user_id=user["id"],
            email=user["email"],
            device=SessionService.get_session_info(request),
        ),
    )

    redirect_url = allowed_redirect(decode_state(state))
    response: Response
    if redirect_url:
        response = RedirectResponse(redirect_url, status_code=status.HTTP_302_FOUND)
    else:
        body = create_api_response(
            request,
            status.HTTP_200_OK,
            "Google login successful",
            UserResponse.from_user(user, include_image_information=False),
        )
        response = JSONResponse(content=body.model_dump(mode="json"))

    set_access_token_cookie(response, token, policy)
    return response


@router.post(
    "/verify-otp",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
    summary="Verify a one-time code",
)
async def verify_otp(
    payload: OTPVerifyRequest,
    request: Request,
    db: DatabaseSession,
    users: Users,
    otp_service: Otp,
) -> ApiResponse[None]:
    """
    Check a one-time code.

    Email verification codes mark the email verified and are consumed.
    Password reset codes stay valid for the confirm step.
    """
    user = await _get_user_or_404(users, db, payload.email)

    await otp_service.verify_otp(
        db, user["email"], str(payload.otp), payload.verification_method
    )

    if payload.verification_method == TokenType.EMAIL_VERIFICATION:
        await users.mark_email_verified(db, user["id"])
        await otp_service.delete_otp(db, user["email"], TokenType.EMAIL_VERIFICATION)

    return create_api_response(request, status.HTTP_200_OK, "OTP verified successfully", None)


@router.post(
    "/verify-email/request",
    response_model=ApiResponse[OTPIssuedResponse],
    status_code=status.HTTP_200_OK,
    summary="Request a new email verification code",
)
async def verify_email_request(
    payload: OTPRequest,
    request: Request,
    db: DatabaseSession,
    users: Users,
    otp_service: Otp,
) -> ApiResponse[OTPIssuedResponse]:
    """
    Re-issue the email verification code, e.g. after the first one expired.

    Raises:
        NotFoundException: If no user has this email
        BadRequestException: If the email is already verified
        RateLimitException: If a code was issued within the expiry window
    """
    user = await _get_user_or_404(users, db, payload.email)
    if user["email_verified"]:
        raise BadRequestException("Email already verified")

    otp = await otp_service.save_otp(db, user["email"], TokenType.EMAIL_VERIFICATION)

    return create_api_response(
        request,
        status.HTTP_200_OK,
        "Email verification OTP sent",
        OTPIssuedResponse(
            otp_expiration_time=otp_service.expiry_minutes,
            otp=otp if settings.show_otp else None,
        ),
    )


@router.post(
    "/reset-password/request",
    response_model=ApiResponse[OTPIssuedResponse],
    status_code=status.HTTP_200_OK,
    summary="Request a password reset code",
)
async def reset_password_request(
    payload: OTPRequest,
    request: Request,
    db: DatabaseSession,
    users: Users,
    otp_service: Otp,
) -> ApiResponse[OTPIssuedResponse]:
    """Issue a password reset code; the code is only echoed when ``SHOW_OTP`` is on."""
    user = await _get_user_or_404(users, db, payload.email)

    otp = await otp_service.save_otp(db, user["email"], TokenType.PASSWORD_RESET)

    return create_api_response(
        request,
        status.HTTP_200_OK,
        "Password reset OTP sent",
        OTPIssuedResponse(
            otp_expiration_time=otp_service.expiry_minutes,
            otp=otp if settings.show_otp else None,
        ),
    )


@router.post(
    "/reset-password/confirm",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
    summary="Reset password with a one-time code",
)
async def reset_password_confirm(
    payload: PasswordResetConfirm,
    request: Request,
    db: DatabaseSession,
    users: Users,
    sessions: Sessions,
    otp_service: Otp,
) -> ApiResponse[None]:
    """Verify the code, set the new password and sign the user out everywhere."""
    user = await _get_user_or_404(users, db, payload.email)

    await otp_service.verify_otp(db, user["email"], str(payload.otp), TokenType.PASSWORD_RESET)
    await otp_service.delete_otp(db, user["email"], TokenType.PASSWORD_RESET)
    await users.update_password(db, user["id"], payload.password)
    await sessions.revoke_all_user_sessions(db, user["id"])

    return create_api_response(request, status.HTTP_200_OK, "User password reset", None)


@router.get(
    "/sessions",
    response_model=ApiResponse[list[SessionResponse]],
    status_code=status.HTTP_200_OK,
    summary="List login sessions",
)
async def list_sessions(
    request: Request,
    auth: CurrentAuth,
    db: DatabaseSession,
    sessions: Sessions,
) -> ApiResponse[list[SessionResponse]]:
    """List the current user's sessions, newest first."""
    rows = await sessions.list_sessions(db, auth.user["id"])
    return create_api_response(
        request,
        status.HTTP_200_OK,
        "Sessions fetched successfully",
        [SessionResponse.from_session(row, current_token=auth.token) for row in rows],
    )


@router.delete(
    "/sessions/{public_id}",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
    summary="Revoke one session",
)
async def revoke_session(
    public_id: UUID,
    request: Request,
    auth: CurrentAuth,
    db: DatabaseSession,
    sessions: Sessions,
) -> ApiResponse[None]:
    """Revoke a session of the current user, e.g. a lost device."""
    session = await sessions.get_session_by_public_id(db, auth.user["id"], public_id)
    await sessions.revoke_session(db, auth.user["id"], ById(session["id"]))

    return create_api_response(request, status.HTTP_200_OK, "Session revoked", None)


@router.post(
    "/sessions/revoke-all",
    response_model=ApiResponse[RevokeAllResponse],
    status_code=status.HTTP_200_OK,
    summary="Revoke every session",
)
async def revoke_all_sessions(
    request: Request,
    response: Response,
    auth: CurrentAuth,
    db: DatabaseSession,
    sessions: Sessions,
    policy: Cookies,
) -> ApiResponse[RevokeAllResponse]:
    """Sign the current user out of every device, including this one."""
    revoked = await sessions.revoke_all_user_sessions(db, auth.user["id"])
    clear_access_token_cookie(response, policy)

    return create_api_response(
        request,
        status.HTTP_200_OK,
        "All sessions revoked",
        RevokeAllResponse(revoked=revoked),
    )
