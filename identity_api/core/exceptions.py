"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500, code: str | None = None):
        """Initialize exception with message, status code and optional machine code."""
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(self.message)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized", code: str | None = None):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401, code=code)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class RequestTimeoutException(AppException):
    """Expired one-time credential exception."""

    def __init__(self, message: str = "Request timeout"):
        """Initialize with 408 status code."""
        super().__init__(message, status_code=408)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class UnprocessableEntityException(AppException):
    """Valid input that could not be applied (e.g. no row written)."""

    def __init__(self, message: str = "Unprocessable entity"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    def __init__(self, message: str = "Rate limit exceeded"):
        """Initialize with 429 status code."""
        super().__init__(message, status_code=429)


class InternalServerException(AppException):
    """Unexpected server-side failure."""

    def __init__(self, message: str = "An unexpected error occurred"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)


class AuthenticationFailure(Exception):
    """Ciphertext could not be authenticated or decoded."""
