from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Bills Gateway API"
    database_url: str = "sqlite:///bills_gateway.db"
    log_level: str = "INFO"

    provider_base_url: str = "https://www.nellobytesystems.com"
    provider_user_id: str = ""
    provider_api_key: str = ""
    provider_callback_url: str = ""
    provider_timeout_seconds: float = 20.0

    airtime_minimum: int = 50
    data_plan_markup: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BILLS_",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
