from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///seatime.db"
    LOG_LEVEL: str = "INFO"
    # Connection pool (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    # MyShipTracking v2 - per-vessel position/speed lookups
    MYSHIPTRACKING_API_KEY: str | None = None
    MYSHIPTRACKING_API_BASE_URL: str = "https://api.myshiptracking.com/api/v2"
    AIS_REQUEST_TIMEOUT: float = 20.0
    # Local sample cache; force-refresh checks bypass it
    AIS_CACHE_TTL_SECONDS: int = 300
    # Provider positions older than this are stale - speed is treated as unknown
    AIS_STALE_AFTER_HOURS: float = 6.0
    # Movement threshold (knots) - below this is anchor drift / current noise
    MOVING_SPEED_THRESHOLD_KNOTS: float = 2.0
    # MCA minimum sea-service increment (hours)
    MCA_MIN_DURATION_HOURS: float = 4.0
    # Consecutive not-moving checks needed to close an open interval
    INTERVAL_CLOSE_AFTER_STOPPED_SAMPLES: int = 1
    # Scheduler
    DEFAULT_TASK_INTERVAL_HOURS: float = 2.0
    SCHEDULER_POLL_SECONDS: int = 60
    SCHEDULER_MAX_WORKERS: int = 4
    SCHEDULER_ENABLED: bool = False
    # Reconciliation sweep cadence, in scheduler passes (60 x 60s = hourly)
    RECONCILE_EVERY_PASSES: int = 60
    MANUAL_CHECK_LOCK_TIMEOUT_SECONDS: float = 60.0
    # API authentication (if unset, all requests pass - local dev)
    SEATIME_API_KEY: str | None = None
    # CORS origins (comma-separated string for env var support)
    CORS_ORIGINS: str = "http://localhost:8081"


settings = Settings()
