from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str
    SECRET_KEY: str
    REDIS_URL: str = "redis://localhost:6379/0"
    ALLOW_ORIGINS: Optional[str] = None

    # Feed fetching
    FEED_FETCH_TIMEOUT: float = 15.0
    FEED_USER_AGENT: str = "CollabRSS/1.0 (+feed refresher)"

    # Recurring refresh jobs
    SCHEDULER_KEY_PREFIX: str = "feed-refresh"
    SCHEDULER_POLL_INTERVAL: float = 30.0
    # a claimed firing is handed out again if not completed within this window
    SCHEDULER_LEASE_SECONDS: float = 600.0
    SCHEDULE_ON_STARTUP: bool = True
    WORKER_THREADS: int = 4


settings = Settings()
