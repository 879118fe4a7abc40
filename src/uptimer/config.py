from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    app_name: str = "Uptimer"
    app_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./uptimer.db"

    # Scheduler
    scheduler_tick_seconds: int = 60
    max_concurrent_checks: int = 10

    # Monitoring defaults
    default_check_interval: int = 60  # seconds
    default_timeout: int = 30  # HTTP request timeout in seconds
    history_window_hours: int = 24

    # Agents
    agent_offline_after: int = 300  # seconds without a sample
    agent_check_seconds: int = 60

    # Notifications
    dispatch_timeout: float = 10.0  # per channel, seconds
    default_cpu_threshold: float = 90.0
    default_memory_threshold: float = 85.0
    default_disk_threshold: float = 90.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
