"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app and the Loyverse client
factory share a consistent configuration surface.
"""

from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_DEFAULT_SCOPES = " ".join(
    (
        "ITEMS_READ",
        "ITEMS_WRITE",
        "CATEGORIES_READ",
        "CATEGORIES_WRITE",
        "MODIFIERS_READ",
        "MODIFIERS_WRITE",
        "INVENTORY_READ",
        "INVENTORY_WRITE",
        "RECEIPTS_READ",
        "RECEIPTS_WRITE",
        "MERCHANT_READ",
        "STORES_READ",
    )
)


class LoyverseSettings(BaseSettings):
    """Configuration required for interacting with the Loyverse APIs."""

    model_config = SettingsConfigDict(
        env_prefix="LOYVERSE_", env_file=".env", extra="ignore"
    )

    client_id: str
    client_secret: str
    redirect_uri: AnyHttpUrl = Field(
        "http://localhost:8000/api/integrations/loyverse/callback"
    )
    api_base_url: str = Field("https://api.loyverse.com")
    api_version: str = Field("v1.0")
    authorize_url: str = Field("https://cloud.loyverse.com/oauth/authorize")
    token_url: str = Field("https://api.loyverse.com/oauth/token")
    revoke_url: str = Field("https://api.loyverse.com/oauth/revoke")
    scopes: str = Field(
        _DEFAULT_SCOPES, description="Space separated OAuth scopes to request."
    )
    requests_per_minute: int = Field(60, gt=0)
    rate_limit_window_seconds: float = Field(60.0, gt=0)
    retry_base_delay_seconds: float = Field(1.0, ge=0)
    max_retries: int = Field(3, ge=0)
    request_timeout_seconds: float = Field(30.0, gt=0)
    page_limit: int = Field(250, gt=0, le=250)

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def resource_base_url(self) -> str:
        """Versioned base URL that resource endpoints are appended to."""
        return f"{self.api_base_url}/{self.api_version}"


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(env_prefix="OAUTH_", extra="ignore")

    state_ttl_seconds: int = Field(900)


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    token_encryption_previous_secrets: str = Field(
        "",
        description=(
            "Comma separated list of retired secrets still accepted for decryption."
        ),
    )

    @property
    def previous_secrets(self) -> tuple[str, ...]:
        return tuple(
            secret.strip()
            for secret in self.token_encryption_previous_secrets.split(",")
            if secret.strip()
        )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    database_path: str = Field(
        "data/integrations.db", validation_alias="APP_DATABASE_PATH"
    )
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    loyverse: LoyverseSettings = Field(default_factory=LoyverseSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "LoyverseSettings",
    "OAuthSettings",
    "SecuritySettings",
    "get_settings",
]
