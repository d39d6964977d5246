from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "StoreGuard"
    debug: bool = False

    # Role catalog (YAML); None uses the built-in default roles
    role_catalog_path: Optional[str] = None

    # Overrides
    expiring_window_days: int = 7  # "expiring soon" report window

    # Logging
    log_level: str = "INFO"
    decision_log_level: Optional[str] = None  # fail-closed decision loggers; None inherits log_level
    log_dir: str = "/var/log/storeguard"
    file_logging: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
