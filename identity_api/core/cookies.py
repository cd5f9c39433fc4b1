"""Cookie attribute policy derived from deployment configuration."""

import re
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import urlparse

from identity_api.core.constants import BLACKLISTED_COOKIE_DOMAINS

SameSite = Literal["lax", "strict", "none"]

_IPV4_PATTERN = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
_LOCAL_HOSTS = {"localhost", "127.0.0.1"}


@dataclass(frozen=True)
class CookiePolicy:
    """SameSite, Secure and Domain attributes shared by every cookie we set."""

    same_site: SameSite
    secure: bool
    domain: str | None = None

    def cookie_kwargs(self) -> dict[str, Any]:
        """Render the policy as keyword arguments for ``Response.set_cookie``."""
        kwargs: dict[str, Any] = {"samesite": self.same_site, "secure": self.secure}
        if self.domain:
            kwargs["domain"] = self.domain
        return kwargs


def _is_ip_address(hostname: str) -> bool:
    return bool(_IPV4_PATTERN.match(hostname))


def _is_blacklisted_domain(domain: str) -> bool:
    return any(domain.endswith(suffix.replace(".", "", 1)) for suffix in BLACKLISTED_COOKIE_DOMAINS)


def _domain_from_api_url(api_url: str | None) -> str:
    if not api_url:
        return "localhost"
    try:
        hostname = urlparse(api_url).hostname
    except ValueError:
        return api_url
    return hostname or api_url


def resolve_cookie_policy(cookie_domain: str | None, api_url: str | None = None) -> CookiePolicy:
    """
    Determine cookie attributes for the current deployment.

    Args:
        cookie_domain: Configured cookie domain, if any
        api_url: Public URL of the API, used when the cookie must stay host-only

    Returns:
        Cookie policy; falls back to a non-secure ``lax`` policy on any error
    """
    try:
        if not cookie_domain:
            return CookiePolicy(same_site="lax", secure=False, domain=_domain_from_api_url(api_url))

        domain_to_check = cookie_domain[1:] if cookie_domain.startswith(".") else cookie_domain

        if domain_to_check in _LOCAL_HOSTS or _is_ip_address(domain_to_check):
            return CookiePolicy(same_site="lax", secure=False, domain=_domain_from_api_url(api_url))

        if _is_blacklisted_domain(domain_to_check):
            return CookiePolicy(same_site="none", secure=True, domain=_domain_from_api_url(api_url))

        return CookiePolicy(same_site="lax", secure=True, domain=cookie_domain)
    except Exception:
        return CookiePolicy(same_site="lax", secure=False)
