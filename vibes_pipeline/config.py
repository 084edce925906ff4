from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

from vibes_pipeline.features.vibes.errors import ConfigurationError

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase settings
    SUPABASE_URL: str | None = None
    SUPABASE_DB_URL: str | None = None

    # =================================================================
    # DATABASE POOL SETTINGS - a batch job needs very few connections
    # =================================================================
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 4
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # OpenRouter (OpenAI-compatible) settings
    OPENROUTER_API_KEY: str | None = None
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    OPENROUTER_MODEL: str = "qwen/qwen3-vl-8b-instruct"
    OPENROUTER_TIMEOUT_SECONDS: float = 120.0
    OPENROUTER_MAX_RETRIES: int = 3
    OPENROUTER_RETRY_AFTER_DEFAULT_SECONDS: float = 5.0
    OPENROUTER_APP_URL: str | None = None
    OPENROUTER_APP_TITLE: str = "Property Vibes Backfill"

    # =================================================================
    # BACKFILL DEFAULTS - every value can be overridden per run on the CLI
    # =================================================================
    VIBES_BACKFILL_LIMIT: int | None = None
    VIBES_BACKFILL_BATCH_SIZE: int = 10
    VIBES_BACKFILL_DELAY_MS: int = 1000
    NEIGHBORHOOD_VIBES_DELAY_MS: int = 800
    VIBES_BACKFILL_MIN_PRICE: int = 100_000
    VIBES_BACKFILL_STOP_AFTER_NO_SUCCESS_BATCHES: int = 3
    VIBES_BACKFILL_CHECKPOINT_EVERY: int = 1
    VIBES_MAX_IMAGES: int = 18
    NEIGHBORHOOD_VIBES_SAMPLE_LIMIT: int = 12
    VIBES_LOG_DIR: str = ".logs"

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def supabase_host(self) -> str:
        """Host part of SUPABASE_URL (falls back to the DB URL host)."""
        for url in (self.SUPABASE_URL, self.SUPABASE_DB_URL):
            if not url:
                continue
            try:
                host = urlparse(url).hostname
            except ValueError:
                continue
            if host:
                return host
        return ""

    def require_backfill_credentials(self) -> None:
        """
        Fail fast before any batch starts.

        Raises:
            ConfigurationError: provider credential or database URL missing
        """
        missing = []
        if not (self.OPENROUTER_API_KEY or "").strip():
            missing.append("OPENROUTER_API_KEY")
        if not (self.SUPABASE_DB_URL or "").strip():
            missing.append("SUPABASE_DB_URL")
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    def get_db_pool_config(self) -> dict:
        """Get database pool configuration."""
        return {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }


settings = Settings()
