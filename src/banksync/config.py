from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parent.parent.parent / ".env"),
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./banksync.db"
    db_echo: bool = False

    # Credential vault master secret. AUTH_SECRET is accepted for deployments
    # that share one secret across subsystems; the vault separates domains.
    credentials_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("credentials_secret", "auth_secret"),
    )

    # Money / amounts
    base_currency: str = "ILS"

    # Sync
    sync_max_concurrency: int = 3
    sync_timeout_seconds: float = 300.0
    sync_lookback_days: int = 90
    stale_sync_threshold_hours: int = 12


settings = Settings()
