from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    This is separate from shieldcuisine_api.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="ShieldCuisine API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Backend API for ShieldCuisine, a multi-tenant management platform for food-service "
            "companies: APPCC/HACCP controls, warehouse, CMS, e-learning and AI assistance."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, run minimal database seeding after migrations.",
    )

    # Seeding (AUTO_SEED or python -m shieldcuisine_api.db.seed)
    DEFAULT_TENANT_NAME: str = Field(default="ShieldCuisine Demo")
    DEFAULT_TENANT_SLUG: str = Field(default="shield-demo")
    SEED_ADMIN_USERNAME: str = Field(default="admin")
    SEED_ADMIN_EMAIL: str = Field(default="admin@shieldcuisine.com")
    SEED_ADMIN_PASSWORD: str = Field(default="change-me-now")

    # Tokens and session cookie
    JWT_SECRET_KEY: str = Field(default="change-me", description="Secret used to sign JWTs")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)
    REFRESH_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 7)
    SESSION_COOKIE_NAME: str = Field(default="shield_session")
    SESSION_COOKIE_SECURE: bool = Field(default=False)

    # AI providers
    OPENAI_API_KEY: Optional[str] = Field(default=None)
    OPENAI_MODEL: str = Field(default="gpt-4o")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1")
    PERPLEXITY_API_KEY: Optional[str] = Field(default=None)
    PERPLEXITY_MODEL: str = Field(default="llama-3.1-sonar-small-128k-online")
    PERPLEXITY_BASE_URL: str = Field(default="https://api.perplexity.ai")
    AI_REQUEST_TIMEOUT_SECONDS: float = Field(default=60.0)
    AI_ANALYSIS_PROVIDER: str = Field(
        default="openai", description="Provider used for APPCC analysis (openai/perplexity)"
    )

    # Media uploads
    UPLOAD_DIR: str = Field(default="uploads")
    UPLOAD_URL_PREFIX: str = Field(default="/uploads")
    MAX_UPLOAD_BYTES: int = Field(default=20 * 1024 * 1024)

    # Lists above this many rows are reported as windowed to clients
    LIST_WINDOW_THRESHOLD: int = Field(default=100)

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]

    @property
    def is_production(self) -> bool:
        return (self.ENVIRONMENT or "").lower() in ("prod", "production")


# PUBLIC_INTERFACE
@lru_cache
def get_app_settings() -> AppSettings:
    """
    Return the process-wide AppSettings instance populated from environment variables.

    Call get_app_settings.cache_clear() to reload after changing the environment.
    """
    return AppSettings()
