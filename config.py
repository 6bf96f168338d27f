"""Application configuration using pydantic settings."""

from datetime import timedelta
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    url: str = "sqlite:///./bank.db"
    echo: bool = False
    busy_timeout: float = 30.0
    transfer_timeout: Optional[float] = 10.0


class SecuritySettings(BaseModel):
    token_symmetric_key: str = Field(default="12345678901234567890123456789012")
    algorithm: str = "HS256"
    access_token_duration: timedelta = timedelta(minutes=15)
    refresh_token_duration: timedelta = timedelta(hours=24)


class CelerySettings(BaseModel):
    broker_url: str = "redis://localhost:6379/0"
    result_backend: str = "redis://localhost:6379/0"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    logger_name: str = "bank"


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    project_name: str = "Money Transfer API"

    database: DatabaseSettings = DatabaseSettings()
    security: SecuritySettings = SecuritySettings()
    celery: CelerySettings = CelerySettings()
    logging: LoggingSettings = LoggingSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def access_token_duration(self) -> timedelta:
        return self.security.access_token_duration

    @property
    def refresh_token_duration(self) -> timedelta:
        return self.security.refresh_token_duration


@lru_cache()
def get_settings() -> Settings:
    return Settings()
