"""Application configuration management."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.debug and self.log_level.upper() != "TRACE":
            self.log_level = "DEBUG"

    # Database
    database_url: str = "sqlite:///./daily_updates.db"

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440

    # CORS
    cors_origins: str = "http://localhost:5173"

    # Admin User
    admin_username: str = "admin"
    admin_password: str = "changeme"

    # Application
    debug: bool = False
    log_level: str = "INFO"
    api_v1_str: str = "/api/v1"

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60
    scheduler_max_workers: int = 5
    execution_timeout_seconds: float = 45.0
    history_retention_days: int = 90

    # External collaborators
    update_service_url: str = "http://localhost:8100"
    update_service_token: str = ""
    email_service_url: str = "http://localhost:8200"
    email_service_token: str = ""

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


# Global settings instance
settings = Settings()
