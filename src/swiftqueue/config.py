from typing import Literal

from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    storage: Literal["mongo", "memory"] = "mongo"
    database_url: str = "mongodb://localhost:27017/swiftqueue"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    debug: bool = False
    cors_origins: list[str] = []
    timezone: str = "UTC"  # IANA zone that defines the "current day" for numbering and daily stats
    token_code_max_attempts: int = 10  # Candidate codes tried before giving up on a token
    default_service_minutes: int = 5  # Used when no recent service history exists
    min_service_minutes: int = 2
    service_time_window_hours: int = 24
    auto_assign_on_counter_available: bool = True
    auto_assign_on_token_created: bool = False
    counter_number_probe: bool = False  # Test/bench mode: take the next free number instead of rejecting duplicates
    counter_number_probe_limit: int = 100
    waiting_list_limit: int = 20
    event_queue_size: int = 100  # Buffered events per real-time subscriber

    model_config = {
        "env_file": [".env"],
        "env_prefix": "SWIFTQUEUE_",
        "extra": "ignore",
    }
