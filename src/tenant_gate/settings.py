"""
tenant_gate.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for the auth pipeline and cipher.
- Hide secrets from repr/logging (e.g., the encryption master key).
- Derive identity-issuer endpoints from the issuer tenant/client identifiers.
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_LEEWAY_SECONDS = 300


class Settings(BaseSettings):
    """
    Enterprise pattern:
    - Strict env-driven configuration
    - Defaults safe for local dev, but dev auth is opt-in only
    - Single settings object injected across layers
    """

    model_config = SettingsConfigDict(env_prefix="TG_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "tenant-gate"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Identity issuer (Microsoft identity platform by default)
    azure_tenant_id: str = "common"
    azure_client_id: str = ""
    jwks_url: str | None = None
    jwt_issuer: str | None = None
    jwt_audience: str | None = None
    jwt_algorithm: str = "RS256"
    jwt_leeway_seconds: int = Field(default=60, ge=0)
    jwks_cache_ttl_seconds: int = 24 * 60 * 60
    jwks_min_refresh_seconds: int = 30
    jwks_timeout_seconds: float = 5.0

    # Development bypass. Must be set explicitly; never honored with env=prod.
    dev_auth_enabled: bool = False
    dev_user_email: str = "demo@it-doku.local"
    dev_user_name: str = "Demo User"

    # Tenancy
    tenant_exempt_paths: list[str] = Field(
        default_factory=lambda: ["/healthz", "/readyz", "/docs", "/openapi.json", "/v1/auth"]
    )

    # Secret protection
    encryption_master_key: str | None = Field(default=None, repr=False)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./tenant_gate.db"

    @field_validator("jwt_leeway_seconds")
    @classmethod
    def _bounded_leeway(cls, v: int) -> int:
        if v > MAX_LEEWAY_SECONDS:
            raise ValueError(f"jwt_leeway_seconds must be <= {MAX_LEEWAY_SECONDS}")
        return v

    @property
    def resolved_jwks_url(self) -> str:
        return self.jwks_url or (
            f"https://login.microsoftonline.com/{self.azure_tenant_id}/discovery/v2.0/keys"
        )

    @property
    def resolved_issuer(self) -> str:
        return self.jwt_issuer or f"https://login.microsoftonline.com/{self.azure_tenant_id}/v2.0"

    @property
    def resolved_audience(self) -> str:
        return self.jwt_audience or self.azure_client_id


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# The dev auth flag is read here once; `auth.models.AuthMode.from_settings` turns it
# into the single mode value injected into the pipeline.
