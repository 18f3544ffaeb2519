from pydantic import AnyUrl
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal

class Settings(BaseSettings):
    ENV: str = "dev"
    SERVICE_PORT: int = 8080
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"
    # Event store selection: "memory" or "redis"
    STORE_ADAPTER: Literal["memory", "redis"] = "memory"
    STORE_TIMEOUT_SECONDS: float = 5.0
    REDIS_URL: AnyUrl | None = None
    REDIS_STREAM_KEY: str = "adanalytics:events"
    REDIS_STREAM_MAXLEN: int | None = None  # None keeps the full history
    REDIS_SCAN_BATCH: int = 500
    # Ingestion limits
    MAX_EVENT_SIZE: int = 65536
    MAX_BATCH_SIZE: int = 1000

    class ConfigDict:
        env_file = ".env"
        extra = "ignore"

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
