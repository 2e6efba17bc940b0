"""Application settings and configuration.

This module defines all configuration options for the Civic Stage client core.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files. The
    application context accepts an explicit instance so deployments and tests
    can inject their own values.
    """

    # Application metadata
    app_name: str = Field(default="Civic Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Administrator identity; a session whose email matches is always an admin.
    admin_email: str | None = Field(default=None, alias="ADMIN_EMAIL")

    # Security and session tokens issued by the local identity provider
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    reset_token_ttl_minutes: int = Field(default=60, alias="RESET_TOKEN_TTL_MINUTES")
    password_min_length: int = Field(default=6, alias="PASSWORD_MIN_LENGTH")

    # Reference document store
    database_url: str = Field(default="sqlite:///./civic_stage.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    store_poll_enabled: bool = Field(default=False, alias="STORE_POLL_ENABLED")
    store_poll_interval_seconds: float = Field(
        default=2.0,
        alias="STORE_POLL_INTERVAL_SECONDS",
    )

    # Synchronization
    notification_limit: int = Field(default=20, alias="NOTIFICATION_LIMIT")
    avatar_base_url: str = Field(
        default="https://api.dicebear.com/7.x/avataaars/svg",
        alias="AVATAR_BASE_URL",
    )

    # Text analysis (Gemini generateContent REST API)
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-3-flash-preview", alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )
    analysis_timeout_seconds: float = Field(default=10.0, alias="ANALYSIS_TIMEOUT_SECONDS")

    # CORS configuration for the read-only HTTP mirror
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(default=["GET", "OPTIONS"], alias="CORS_ALLOW_METHODS")
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    def is_admin_email(self, email: str | None) -> bool:
        """Return True if ``email`` is the configured administrator address."""
        if not email or not self.admin_email:
            return False
        return email.strip().lower() == self.admin_email.strip().lower()


settings = Settings()  # type: ignore[call-arg]
