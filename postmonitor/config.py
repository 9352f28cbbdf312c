from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Session material
    linkedin_cookies: str = ""
    linkedin_email: str = ""
    linkedin_password: str = ""
    linkedin_base_url: str = "https://www.linkedin.com"
    linkedin_session_cookie_name: str = "li_at"

    # Record store
    airtable_api_key: str = ""
    airtable_base_id: str = ""
    airtable_api_url: str = "https://api.airtable.com/v0"
    airtable_sources_table: str = "Sources"
    airtable_posts_table: str = "LinkedIn Posts"
    airtable_timeout_s: int = 20

    # Auxiliary state (session vault, run log)
    monitor_redis_url: str = "redis://localhost:6379/0"
    monitor_session_encryption_key: str = ""
    monitor_run_log_key: str = "monitor:runs"
    monitor_run_log_max_entries: int = 200

    # HTTP front-end
    api_secret: str = ""
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Browser
    monitor_playwright_headless: bool = True
    monitor_user_agent_pool: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36|"
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    monitor_viewport_width: int = 1920
    monitor_viewport_height: int = 1080

    # Navigation
    monitor_page_timeout_ms: int = 90000
    monitor_base_page_timeout_ms: int = 30000
    monitor_max_retries: int = 3
    monitor_retry_backoff_s: float = 5.0

    # Authentication timings
    monitor_auth_settle_s: float = 5.0
    monitor_login_form_wait_s: float = 3.0
    monitor_submit_race_s: float = 10.0
    monitor_think_delay_ms_min: int = 400
    monitor_think_delay_ms_max: int = 1500
    monitor_keystroke_delay_ms: int = 100
    monitor_cookie_warn_days: int = 7

    # Extraction
    monitor_max_posts_per_source: int = 10
    monitor_profile_scrolls: int = 8
    monitor_company_scrolls: int = 10
    monitor_scroll_wait_s: float = 2.5
    monitor_settle_after_load_s: float = 2.0
    monitor_container_wait_ms: int = 15000
    monitor_selector_profile_path: str = ""

    # Persistence and pacing
    monitor_write_delay_s: float = 0.5
    monitor_source_delay_s: float = 60.0
    monitor_url_delay_s: float = 30.0
    monitor_default_group: str = "On-Demand"

    # Scheduling
    monitor_interval_s: int = 6 * 3600
    monitor_run_on_start: bool = True

    # Logging
    monitor_log_level: str = "INFO"
    monitor_log_dir: str = "logs"
    monitor_log_to_file: bool = True

    def has_credentials(self) -> bool:
        return bool(self.linkedin_email and self.linkedin_password)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
