"""Double-submit cookie CSRF protection."""

import hmac
import secrets
from collections.abc import Callable
from typing import Any, TypeVar

from fastapi import Request, Response
from itsdangerous import BadData, URLSafeTimedSerializer

from identity_api.core.constants import CSRF_COOKIE, CSRF_HEADER, CSRF_TIMEOUT
from identity_api.core.cookies import CookiePolicy

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
SKIP_CSRF_ATTR = "skip_csrf"

EndpointT = TypeVar("EndpointT", bound=Callable[..., Any])


def skip_csrf(endpoint: EndpointT) -> EndpointT:
    """
    Exempt a route from CSRF validation.

    Example:
        @router.post("/webhook")
        @skip_csrf
        async def webhook(): ...
    """
    setattr(endpoint, SKIP_CSRF_ATTR, True)
    return endpoint


def is_csrf_exempt(request: Request) -> bool:
    """Check the matched endpoint for the opt-out marker."""
    endpoint = request.scope.get("endpoint")
    return bool(getattr(endpoint, SKIP_CSRF_ATTR, False))


class CsrfService:
    """Issue and validate signed CSRF tokens held in a cookie and echoed in a header."""

    def __init__(self, secret: str, cookie_policy: CookiePolicy):
        """Initialize the signer and the cookie attributes."""
        self._serializer = URLSafeTimedSerializer(secret, salt=CSRF_COOKIE)
        self._cookie_policy = cookie_policy
        self._max_age = int(CSRF_TIMEOUT.total_seconds())

    def _is_valid_token(self, token: str | None) -> bool:
        if not token:
            return False
        try:
            self._serializer.loads(token, max_age=self._max_age)
        except BadData:
            return False
        return True

    def generate_csrf_token(self, request: Request, response: Response) -> str:
        """
        Issue (or refresh) the CSRF cookie and return its token.

        Args:
            request: Incoming request, checked for a still-valid cookie
            response: Response that receives the cookie

        Returns:
            Token the client must echo in the ``x-csrf-token`` header
        """
        token = request.cookies.get(CSRF_COOKIE)
        if not self._is_valid_token(token):
            token = self._serializer.dumps(secrets.token_hex(32))

        response.set_cookie(
            CSRF_COOKIE,
            token,
            max_age=self._max_age,
            httponly=True,
            **self._cookie_policy.cookie_kwargs(),
        )
        return token  # type: ignore[return-value]

    def validate_request(self, request: Request) -> bool:
        """Header and cookie must both be present, equal, and carry a valid signature."""
        cookie_token = request.cookies.get(CSRF_COOKIE)
        header_token = request.headers.get(CSRF_HEADER)

        if not cookie_token or not header_token:
            return False

        if not hmac.compare_digest(cookie_token.encode(), header_token.encode()):
            return False

        return self._is_valid_token(cookie_token)
