"""Shared constants."""

from datetime import timedelta

SESSION_TIMEOUT = timedelta(days=7)
CSRF_TIMEOUT = timedelta(hours=1)

ACCESS_TOKEN_COOKIE = "access-token"
CSRF_COOKIE = "csrf-token"
CSRF_HEADER = "x-csrf-token"

CSRF_ERROR_MESSAGE = (
    "Invalid CSRF token. Perhaps your browser blocked 3rd-party cookies. "
    "Please allow 3rd-party cookies or try a different browser. "
    "If the problem persists, please contact support."
)

# Public hosting suffixes whose subdomains cannot share a parent-domain cookie
BLACKLISTED_COOKIE_DOMAINS = (
    ".vercel.app",
    ".herokuapp.com",
    ".netlify.app",
    ".render.com",
    ".onrender.com",
    ".surge.sh",
    ".firebaseapp.com",
    ".web.app",
    ".pages.dev",
    ".workers.dev",
    ".glitch.me",
    ".now.sh",
    ".github.io",
    ".gitlab.io",
    ".bitbucket.io",
    ".stackblitz.io",
    ".repl.co",
    ".supabase.co",
    ".railway.app",
    ".ngrok-free.app",
)

OTP_LENGTH = 6
MAX_MEDIA_PER_USER = 5
MEDIA_FILE_SIZE_LIMIT = 2 * 1024 * 1024  # 2MB
ALLOWED_MEDIA_TYPES = ("image/png", "image/jpeg", "application/pdf")
MEDIA_FOLDER = "media"
