"""
Optima AI - Configuration
=========================
Environment-based settings using pydantic-settings.
"""

from functools import lru_cache
from typing import Optional
import sys

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


WEAK_JWT_SECRETS = {"default_secret", "secret", "changeme", "CHANGE_ME_IN_PRODUCTION"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/optima.db",
        description="SQLAlchemy async database URL"
    )

    # ==========================================================================
    # Auth & Password Reset
    # ==========================================================================
    jwt_secret: str = Field(default="default_secret", description="Secret used to sign JWTs")
    reset_token_ttl_seconds: int = Field(default=3600, ge=60, le=86400)
    access_token_ttl_seconds: int = Field(default=86400, ge=60)
    bcrypt_rounds: int = Field(default=10, ge=4, le=16)
    base_url: str = Field(
        default="http://localhost:3000",
        description="Public URL of the web client, used in reset links"
    )

    # ==========================================================================
    # SMTP Configuration
    # ==========================================================================
    smtp_enabled: bool = Field(default=True)
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=587)
    smtp_secure: bool = Field(default=False, description="Implicit TLS (port 465)")
    email_user: Optional[str] = Field(default=None)
    email_pass: Optional[str] = Field(default=None)

    # ==========================================================================
    # Language Model Providers
    # ==========================================================================
    groq_api_key: Optional[str] = None
    google_generative_ai_api_key: Optional[str] = None
    mistral_api_key: Optional[str] = None
    cohere_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    together_ai_api_key: Optional[str] = None
    requesty_ai_api_key: Optional[str] = None
    chutes_ai_api_key: Optional[str] = None
    xai_api_key: Optional[str] = None
    cerebras_api_key: Optional[str] = None

    llm_timeout_seconds: float = Field(default=300.0, description="Long streaming generations")

    # ==========================================================================
    # Media & Tool Services
    # ==========================================================================
    chutes_image_api_token: Optional[str] = None
    chutes_image_url: str = Field(default="https://chutes-infiniteyou.chutes.ai/generate")
    deepgram_api_key: Optional[str] = None
    deepgram_url: str = Field(default="https://api.deepgram.com/v1/listen")
    voicerss_api_key: Optional[str] = None
    voicerss_url: str = Field(default="https://api.voicerss.org/")
    anyapi_key: Optional[str] = None
    anyapi_url: str = Field(default="https://anyapi.io/api/v1/scrape")
    pexels_api_key: Optional[str] = None
    pexels_video_url: str = Field(default="https://api.pexels.com/videos/search")

    # ==========================================================================
    # Runtime Configuration
    # ==========================================================================
    environment: str = Field(default="production")
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    @property
    def smtp_from(self) -> str:
        """Sender header for outgoing mail."""
        return f'"Password Reset" <{self.email_user or "no-reply@localhost"}>'

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Validate the JWT secret is not empty, warn when it is a known default."""
        import logging

        if not v or v.strip() == "":
            raise ValueError("JWT_SECRET must not be empty")

        # Logging is not configured yet while Settings is being built
        if v in WEAK_JWT_SECRETS:
            logger = logging.getLogger("config")
            logger.warning(
                "Using a default/weak JWT secret. Set JWT_SECRET in production!",
                extra={"secret_pattern": "weak"}
            )
            print(
                "⚠️  WARNING: Using a default/weak JWT secret. "
                "Set JWT_SECRET in production!",
                file=sys.stderr
            )
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment on every call.
    """
    return Settings()
