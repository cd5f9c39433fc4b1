"""Application configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Identity API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")
    api_url: str | None = Field(
        default=None,
        alias="API_URL",
        description="Public URL of this API, used to derive the cookie domain",
    )

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # Redis (user profile cache, disabled when no host is configured)
    redis_host: str | None = Field(default=None, alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_decode_responses: bool = Field(default=True, alias="REDIS_DECODE_RESPONSES")

    # JWT
    auth_secret: str = Field(..., alias="AUTH_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Subject claim encryption
    crypto_secret: str = Field(..., alias="CRYPTO_SECRET")

    # CSRF
    csrf_secret: str = Field(..., alias="CSRF_SECRET")

    # Cookies
    cookie_domain: str | None = Field(default=None, alias="COOKIE_DOMAIN")

    # Google OAuth
    google_client_id: str = Field(default="", alias="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(default="", alias="GOOGLE_CLIENT_SECRET")
    google_callback_url: str = Field(default="", alias="GOOGLE_CALLBACK_URL")

    # Cloudinary
    cloudinary_cloud_name: str = Field(default="", alias="CLOUDINARY_CLOUD_NAME")
    cloudinary_api_key: str = Field(default="", alias="CLOUDINARY_API_KEY")
    cloudinary_api_secret: str = Field(default="", alias="CLOUDINARY_API_SECRET")

    # OTP
    otp_expiry_minutes: int = Field(default=5, alias="OTP_EXPIRY_MINUTES")
    show_otp: bool = Field(
        default=False,
        alias="SHOW_OTP",
        description="Echo issued OTP codes in API responses (development only)",
    )

    # CORS and OAuth redirect allow-list
    origin_url: str = Field(
        default="http://localhost:3000",
        alias="ORIGIN_URL",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def allowed_origins(self) -> list[str]:
        """Get allowed origins as a list."""
        return [origin.strip() for origin in self.origin_url.split(",") if origin.strip()]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
