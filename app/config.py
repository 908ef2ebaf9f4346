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
    app_name: str = Field(default="TeleCare Scheduling API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")
    database_pool_size: int = Field(default=10, alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=20, alias="DATABASE_MAX_OVERFLOW")

    # Redis
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_decode_responses: bool = Field(default=True, alias="REDIS_DECODE_RESPONSES")

    # JWT (tokens are issued by the auth service, only verified here)
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Scheduling
    default_timezone: str = Field(default="UTC", alias="DEFAULT_TIMEZONE")
    default_consultation_duration_minutes: int = Field(
        default=30,
        alias="DEFAULT_CONSULTATION_DURATION_MINUTES",
    )
    max_appointment_duration_minutes: int = Field(
        default=180,
        alias="MAX_APPOINTMENT_DURATION_MINUTES",
        description="Upper bound of any appointment length, used to bound the conflict query",
    )
    conflict_check_timeout_seconds: float = Field(
        default=5.0,
        alias="CONFLICT_CHECK_TIMEOUT_SECONDS",
    )
    availability_cache_ttl_seconds: int = Field(
        default=300,
        alias="AVAILABILITY_CACHE_TTL_SECONDS",
    )

    # Payments (Razorpay)
    razorpay_key_id: str = Field(default="", alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str = Field(
        ...,
        alias="RAZORPAY_KEY_SECRET",
        description="Shared secret used to verify checkout payment signatures",
    )
    razorpay_webhook_secret: str = Field(
        default="",
        alias="RAZORPAY_WEBHOOK_SECRET",
        description="Secret used to verify webhook payload signatures",
    )
    razorpay_api_base_url: str = Field(
        default="https://api.razorpay.com/v1",
        alias="RAZORPAY_API_BASE_URL",
    )
    razorpay_timeout_seconds: float = Field(default=30.0, alias="RAZORPAY_TIMEOUT_SECONDS")
    payment_currency: str = Field(default="INR", alias="PAYMENT_CURRENCY")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
