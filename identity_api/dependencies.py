"""FastAPI dependencies."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import APIKeyCookie
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.config import settings
from identity_api.core.constants import ACCESS_TOKEN_COOKIE, CSRF_ERROR_MESSAGE
from identity_api.core.cookies import CookiePolicy, resolve_cookie_policy
from identity_api.core.crypto import CryptoService
from identity_api.core.csrf import SAFE_METHODS, CsrfService, is_csrf_exempt
from identity_api.core.exceptions import ForbiddenException, UnauthorizedException
from identity_api.core.redis_client import CacheManager, get_redis_client
from identity_api.core.storage import MediaStorage
from identity_api.database import get_db
from identity_api.services.auth_service import AuthenticatedUser, AuthService
from identity_api.services.media_service import MediaService
from identity_api.services.oauth import GoogleOAuthProvider, OAuthProvider
from identity_api.services.otp_service import OTPService
from identity_api.services.session_service import SessionService
from identity_api.services.user_service import UserService

# Security
access_token_cookie = APIKeyCookie(name=ACCESS_TOKEN_COOKIE, auto_error=False)


@lru_cache
def get_crypto_service() -> CryptoService:
    """Crypto helper with the key derived once per process."""
    return CryptoService(settings.crypto_secret)


@lru_cache
def get_cookie_policy() -> CookiePolicy:
    """Cookie attributes for this deployment."""
    return resolve_cookie_policy(settings.cookie_domain, settings.api_url)


@lru_cache
def get_csrf_service() -> CsrfService:
    """CSRF token signer."""
    return CsrfService(settings.csrf_secret, get_cookie_policy())


@lru_cache
def get_media_storage() -> MediaStorage:
    """Cloudinary-backed media storage."""
    return MediaStorage(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
    )


@lru_cache
def get_oauth_provider() -> OAuthProvider:
    """Google sign-in adapter."""
    return GoogleOAuthProvider(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_callback_url,
    )


def get_cache_manager() -> CacheManager | None:
    """User profile cache, or None when Redis is not configured."""
    redis_client = get_redis_client()
    return CacheManager(redis_client) if redis_client is not None else None


def get_user_service(
    cache: Annotated[CacheManager | None, Depends(get_cache_manager)],
) -> UserService:
    """User service wired to the profile cache."""
    return UserService(cache)


def get_session_service() -> SessionService:
    """Session service."""
    return SessionService()


def get_otp_service() -> OTPService:
    """OTP service using the configured code lifetime."""
    return OTPService(settings.otp_expiry_minutes)


def get_media_service() -> MediaService:
    """Media service."""
    return MediaService()


def get_auth_service(
    crypto: Annotated[CryptoService, Depends(get_crypto_service)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
    storage: Annotated[MediaStorage, Depends(get_media_storage)],
) -> AuthService:
    """Auth service assembled from its collaborators."""
    return AuthService(crypto, user_service, session_service, storage)


async def verify_csrf(
    request: Request,
    csrf: Annotated[CsrfService, Depends(get_csrf_service)],
) -> None:
    """
    Reject unsafe requests without a matching CSRF header and cookie.

    Raises:
        ForbiddenException: If the double-submit check fails
    """
    if request.method in SAFE_METHODS or is_csrf_exempt(request):
        return

    if not csrf.validate_request(request):
        raise ForbiddenException(CSRF_ERROR_MESSAGE)


async def get_current_auth(
    request: Request,
    token: Annotated[str | None, Depends(access_token_cookie)],
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthenticatedUser:
    """
    Resolve the ``access-token`` cookie to a user and a live session.

    Raises:
        UnauthorizedException: If the cookie is missing or not acceptable
    """
    if not token:
        raise UnauthorizedException("Unauthorized")

    auth = await auth_service.authenticate_token(db, token)
    # Picked up by the request logging middleware
    request.state.user_id = str(auth.user["public_id"])
    request.state.session_id = str(auth.session["public_id"])
    return auth


async def get_current_user(
    auth: Annotated[AuthenticatedUser, Depends(get_current_auth)],
) -> dict:
    """Current user without the password hash."""
    return auth.user


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentAuth = Annotated[AuthenticatedUser, Depends(get_current_auth)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
Crypto = Annotated[CryptoService, Depends(get_crypto_service)]
Csrf = Annotated[CsrfService, Depends(get_csrf_service)]
Cookies = Annotated[CookiePolicy, Depends(get_cookie_policy)]
Users = Annotated[UserService, Depends(get_user_service)]
Sessions = Annotated[SessionService, Depends(get_session_service)]
Otp = Annotated[OTPService, Depends(get_otp_service)]
Media = Annotated[MediaService, Depends(get_media_service)]
Storage = Annotated[MediaStorage, Depends(get_media_storage)]
Auth = Annotated[AuthService, Depends(get_auth_service)]
OAuth = Annotated[OAuthProvider, Depends(get_oauth_provider)]
