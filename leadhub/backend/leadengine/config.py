from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    LEAD_DB_URL: str = "sqlite+aiosqlite:///./leads.db"

    # --- Minimal B2B Auth (API key) ---
    # Send: X-API-Key: <key>
    API_KEY: str | None = None

    # Cron endpoints. Send: X-Cron-Key: <key>
    CRON_API_KEY: str | None = None

    # --- Providers ---
    APOLLO_API_KEY: str | None = None
    APOLLO_BASE_URL: str = "https://api.apollo.io/v1"

    FACEBOOK_ACCESS_TOKEN: str | None = None
    FACEBOOK_GRAPH_URL: str = "https://graph.facebook.com/v17.0"
    FACEBOOK_LEAD_FORM_ID: str | None = None

    TIKTOK_API_KEY: str | None = None
    TIKTOK_BASE_URL: str = "https://business-api.tiktok.com/open_api/v1.3"

    INSTAGRAM_ACCESS_TOKEN: str | None = None
    INSTAGRAM_BASE_URL: str = "https://graph.instagram.com/v17.0"

    GOOGLE_PLACES_API_KEY: str | None = None
    GOOGLE_PLACES_URL: str = "https://maps.googleapis.com/maps/api/place"

    # --- HTTP client tuning ---
    HTTP_TIMEOUT_S: float = 6.0
    HTTP_MAX_RETRIES: int = 2
    HTTP_BACKOFF_BASE_S: float = 0.5

    # Hard ceiling on one adapter call during fan-out (covers retries)
    ADAPTER_TIMEOUT_S: float = 8.0

    # --- Lead store ---
    LEAD_CACHE_TTL_S: float = 15 * 60
    STATS_DEBOUNCE_S: float = 60.0

    # --- Quota / allocation ---
    LOW_CREDIT_THRESHOLD: int = 10
    MIN_SOURCE_ALLOCATION: int = 5
    REFILL_MAX_PER_RUN: int = 200
    DEFAULT_LEAD_LIMIT: int = 50

    # --- Alerts ---
    ALERT_WEBHOOK_URL: str | None = None
    ALERT_WEBHOOK_SECRET: str | None = None

    # --- Scheduler tuning (UTC) ---
    SCHED_USAGE_RESET_HOUR: int = 0
    SCHED_USAGE_RESET_MINUTE: int = 0
    SCHED_REFILL_HOUR: int = 0
    SCHED_REFILL_MINUTE: int = 5


settings = Settings()
