"""
Configuration module for the callflow engine.

All settings are read from environment variables (or a local .env file).
"""
from functools import lru_cache
from typing import Any, Dict, List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    port: int = 3010
    host: str = "0.0.0.0"
    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "pretty"] = "pretty"
    service_name: str = "callflow-core"

    # Deployment naming, used to qualify action function names
    stage: str = "dev"
    service: str = "callflow"

    # State storage
    state_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "callflow:"
    session_ttl_seconds: int = 86400  # 24 hours after the last write
    state_batch_size: int = 25

    # Rules
    rule_sets_path: str = "./data/rule_sets.json"
    rule_cache_ttl_seconds: int = 60
    action_flow_prefix: str = "RulesEngine"
    mobile_prefix: str = "+614"

    # Call centre calendar
    call_centre_timezone: str = "Australia/Sydney"
    holidays: List[str] = []  # YYYYMMDD, local time
    operating_hours: List[Dict[str, Any]] = []  # [{"Name", "TimeZone", "Config": [...]}]

    # Actions
    action_webhook_timeout_seconds: float = 10.0
    action_webhook_base_url: str = ""

    # Platform object listing used to resolve names in rule parameters
    references_path: str = "./data/references.json"

    # Customer accounts served by the in-memory entity directory
    accounts_path: str = "./data/accounts.json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
