# @TASK S0-T0.2 - pydantic-settings based application settings

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """NoteSync application settings.

    All values are loaded from environment variables.
    A .env file in the backend directory is also supported.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Database ---
    DATABASE_URL: str = "postgresql+asyncpg://notesync:notesync@db:5432/notesync"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    # --- HTTP ---
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # --- Rate limiting (sliding window, per client IP) ---
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 3600

    # --- Public sharing ---
    SHARE_DEFAULT_EXPIRY_DAYS: int = 7

    # --- Offline write queue (client side) ---
    SYNC_SERVER_URL: str = "http://localhost:3000"
    QUEUE_RETRY_CEILING: int = 3
    QUEUE_COMPLETED_GRACE_SECONDS: float = 5.0
    QUEUE_DRAIN_INTERVAL_SECONDS: float = 30.0
    QUEUE_STORAGE_PATH: str = "~/.notesync/sync_queue.json"

    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses an async driver."""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("sqlite:///"):
            url = url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return url


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings singleton."""
    return Settings()
