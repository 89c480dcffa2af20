"""Application configuration settings."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, RedisDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def _find_env_file() -> str | None:
    """Find .env file in common locations.

    Checks (in order):
    1. .env (running from project root or Docker)
    2. /app/.env (Docker alternative)
    3. None (rely on environment variables - production)
    """
    candidates = [
        Path(".env"),
        Path("/app/.env"),
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


# 90 days, the lifetime of a client cache scope
DEFAULT_CACHE_TTL = 7776000


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=_find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = True

    # Redis (client cache scopes)
    redis_url: RedisDsn = Field(default="redis://localhost:6379/0")
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL
    cache_key_prefix: str = "paperhub:scope:"

    # GitHub
    github_api_url: str = "https://api.github.com"

    # Etherpad
    etherpad_url: str = "http://localhost:9001"
    etherpad_api_key: str = ""
    etherpad_api_version: str = "1.2.15"

    # Rendering
    # Materialized documents and their PDF/PNG artifacts live under workspace_dir.
    workspace_dir: Path = Path("./workspace")
    render_command: list[str] = ["./compile-document.sh"]
    image_command: list[str] = ["convert"]

    @model_validator(mode="after")
    def validate_service_settings(self) -> "Settings":
        """Validate settings needed to reach external services.

        In production a missing Etherpad API key is an error; elsewhere it is
        only logged, so local runs against a dev pad server keep working.
        """
        warnings: list[str] = []
        errors: list[str] = []

        if not self.etherpad_api_key:
            msg = "ETHERPAD_API_KEY is not set. Document synchronization will fail."
            if self.app_env == "production":
                errors.append(msg)
            else:
                warnings.append(msg)

        if self.cache_ttl_seconds <= 0:
            errors.append("CACHE_TTL_SECONDS must be a positive number of seconds.")

        for warning in warnings:
            logger.warning(f"CONFIG WARNING: {warning}")

        if errors:
            error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_msg)

        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
