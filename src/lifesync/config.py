"""Application configuration via environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import ClassVar

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    database_url: str = "sqlite+aiosqlite:///./lifesync.db"
    # Log every SQL statement (DATABASE_ECHO=true)
    database_echo: bool = False
    api_secret_key: str = "change-me"
    api_host: str = "0.0.0.0"
    api_port: int = 8788
    cors_origins: str = "*"
    environment: str = "development"

    default_device_id: str = "default"
    snapshot_dir: str = "./data"
    http_timeout_seconds: int = 10
    user_agent: str = "lifesync/0.1"

    # Page cache: both must be non-zero for caching to be enabled
    cache_duration_secs: int = 600
    cache_interval_secs: int = 1200

    # Steam
    steam_api_key: str | None = None
    steam_user_id: str | None = None
    steam_device_id: str | None = None
    steam_poll_interval_minutes: int = 20

    # PlayStation Network
    psn_npsso: str | None = None
    psn_device_id: str | None = None
    psn_poll_interval_minutes: int = 5

    # RetroAchievements
    retroachievements_username: str | None = None
    retroachievements_api_key: str | None = None
    retroachievements_device_id: str | None = None
    retroachievements_poll_interval_minutes: int = 5

    # YouTube (Google OAuth client)
    youtube_client_id: str | None = None
    youtube_client_secret: str | None = None
    youtube_refresh_token: str | None = None
    youtube_poll_interval_minutes: int = 5

    # Letterboxd
    letterboxd_username: str | None = None
    letterboxd_poll_interval_minutes: int = 1440

    # Bluesky
    bluesky_username: str | None = None
    bluesky_include_replies: bool = False
    bluesky_poll_interval_minutes: int = 15

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    INSECURE_SECRETS: ClassVar[set[str]] = {"change-me", "change-me-in-production", "secret", ""}

    def validate_production(self) -> None:
        """Raise if running in production with an insecure default secret key."""
        if self.environment == "production" and self.api_secret_key in self.INSECURE_SECRETS:
            raise RuntimeError(
                "API_SECRET_KEY must be changed from default in production. "
                'Generate one: python -c "import secrets; print(secrets.token_hex(32))"'
            )

    def snapshot_path(self, name: str) -> Path:
        """Return the snapshot file used by the named adapter."""
        return Path(self.snapshot_dir) / f"{name}.json"

    def device_id_for(self, override: str | None) -> str:
        """Return the adapter-specific device id, falling back to the default."""
        return override or self.default_device_id


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
