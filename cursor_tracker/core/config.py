"""Application settings loaded from environment / .env file."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Vendor dashboard ──────────────────────────────────
    vendor_base_url: str = "https://cursor.com"
    dashboard_path: str = "/dashboard?tab=usage"
    events_api_path: str = "/api/dashboard/get-filtered-usage-events"
    auth_me_path: str = "/api/auth/me"
    billing_path: str = "/api/auth/stripe"
    team_id: int = 0

    # ── Session ───────────────────────────────────────────
    cookies_file: str = "cookies.json"
    cookie_header: str = ""  # raw "name=value; ..." string, overrides cookies_file
    request_timeout: float = 30.0
    auth_wait_seconds: float = 10.0

    # ── Storage ───────────────────────────────────────────
    data_dir: str = "./data"
    retention_days: int | None = None

    # ── Collection ────────────────────────────────────────
    collection_interval: float = 100.0  # seconds between collection cycles
    collect_on_startup: bool = True
    shutdown_grace: float = 10.0
    active_window_hours: float = 24.0
    max_active_events: int = 100
    default_page_size: int = 500
    min_page_size: int = 100
    max_page_size: int = 1000
    page_delay: float = 0.5
    reconcile_window_days: int = 30
    reconcile_page_size: int = 500

    # ── Web ───────────────────────────────────────────────
    web_host: str = "127.0.0.1"
    web_port: int = 3000
    allowed_origins: str = "*"

    # ── Worker ────────────────────────────────────────────
    redis_url: str = "redis://localhost:6379/0"

    log_level: str = "INFO"

    @property
    def dashboard_url(self) -> str:
        return self.vendor_base_url.rstrip("/") + self.dashboard_path

    @property
    def events_api_url(self) -> str:
        return self.vendor_base_url.rstrip("/") + self.events_api_path


@lru_cache
def get_settings() -> Settings:
    return Settings()
