"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="reborn-orders", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    store_timeout_seconds: float = Field(default=10.0, description="Timeout for a single database call")

    # Admin
    admin_api_token: str = Field(..., description="Bearer token required on /admin routes")
    admin_email: str = Field(default="", description="Recipient of new-order alerts")

    # Email (Resend)
    resend_api_key: str = Field(default="", description="Resend API key for sending emails")
    email_from_address: str = Field(
        default="Joanna's Reborns <orders@joannasreborns.com>",
        description="From address for transactional emails",
    )

    # Frontend
    site_url: str = Field(
        default="http://localhost:3000",
        description="Storefront URL used for links in emails",
    )

    # Orders
    reference_prefix: str = Field(default="RB", description="Prefix of human-readable order references")
    reference_max_attempts: int = Field(default=8, ge=1, description="Insert attempts before giving up on a reference")
    strict_status_transitions: bool = Field(
        default=True,
        description="Reject transitions out of completed/cancelled",
    )

    # Notifications
    notification_workers: int = Field(default=2, ge=1, description="Background email worker count")
    notification_queue_size: int = Field(default=100, ge=1, description="Max queued emails before dropping")
    notification_timeout_seconds: float = Field(default=15.0, description="Timeout for a single send")
    notification_max_retries: int = Field(default=2, ge=0, description="Retries after a failed send")
    notification_retry_backoff_seconds: float = Field(default=2.0, description="Base backoff between retries")

    # Attachments
    max_reply_attachments: int = Field(default=5, description="Max attachments on an order reply")
    max_attachment_bytes: int = Field(default=5 * 1024 * 1024, description="Max decoded size per attachment")

    # Request limits
    max_request_body_size: int = Field(default=30 * 1024 * 1024, description="Max request body in bytes")
    track_rate_limit_requests: int = Field(default=10, description="Tracking lookups per window per client")
    track_rate_limit_window_seconds: int = Field(default=60, description="Tracking rate limit window")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def admin_recipient(self) -> str:
        """Address that receives new-order alerts.

        Falls back to the sender address when ADMIN_EMAIL is unset.
        """
        return self.admin_email or self.email_from_address


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
