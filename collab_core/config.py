# collab_core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    PROJECT_NAME: str = "Collab Core"
    PROJECT_VERSION: str = "1.0.0"
    PROJECT_DESCRIPTION: str = "Join-request and chat lifecycle coordinator"
    DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    CHANGE_CHANNEL_PREFIX: str = "store"
    MESSAGE_WINDOW: int = 100
    MESSAGE_FETCH_LIMIT: int = 50
    LOCK_TIMEOUT_SECONDS: float = 10.0
    LOCK_BLOCKING_TIMEOUT_SECONDS: float = 5.0
    RECONCILE_INTERVAL_SECONDS: float = 30.0
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="allow")
