"""
aibot/core/config.py
Configuration management using Pydantic Settings
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from typing import Optional, Literal

DEFAULT_SERVER_SECRET = "secret"


class Settings(BaseSettings):
    """
    AI Bot Service Configuration
    Environment variables can override these defaults
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    APP_NAME: str = "ai-bot-service"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # ========================================================================
    # HTTP Listener Settings
    # ========================================================================
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=4010, ge=1, le=65535)
    LISTENER_BIND_TIMEOUT: float = Field(default=10.0, gt=0)

    # ========================================================================
    # Platform Settings (applied as process metadata on startup)
    # ========================================================================
    SERVER_SECRET: str = DEFAULT_SERVER_SECRET
    SERVICE_ID: str = "ai-bot-service"
    ACCOUNTS_URL: str = "http://localhost:3000"
    ACCOUNTS_TIMEOUT: float = Field(default=10.0, gt=0)
    SUPPORT_WORKSPACE: str = "support"

    # ========================================================================
    # Bot Account
    # ========================================================================
    FIRST_NAME: str = "AI"
    LAST_NAME: str = "Bot"
    BOT_EMAIL: str = "aibot@localhost"
    BOT_PASSWORD: str = "aibot"

    # Account bootstrap retry policy
    BOOTSTRAP_MAX_ATTEMPTS: int = Field(default=5, ge=1)
    BOOTSTRAP_RETRY_DELAY: float = Field(default=3.0, ge=0.0)  # seconds

    # ========================================================================
    # Storage
    # ========================================================================
    DATABASE_URL: str = "postgresql://localhost:5432/aibot"

    # ========================================================================
    # Shutdown
    # ========================================================================
    # Escalate unexpected faults to a full shutdown instead of only logging them
    SHUTDOWN_ON_FAULT: bool = False

    # ========================================================================
    # Logging Settings
    # ========================================================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # ========================================================================
    # Validators
    # ========================================================================

    @field_validator("ACCOUNTS_URL")
    def validate_accounts_url(cls, v):
        """Accounts endpoint must be an http(s) URL"""
        if not v.startswith(("http://", "https://")):
            raise ValueError("ACCOUNTS_URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("SERVER_SECRET", "SERVICE_ID", "SUPPORT_WORKSPACE", "BOT_EMAIL")
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @model_validator(mode="after")
    def check_production_secret(self):
        """Refuse to run production with the development secret"""
        if self.ENVIRONMENT == "production" and self.SERVER_SECRET == DEFAULT_SERVER_SECRET:
            raise ValueError("SERVER_SECRET must be set in production")
        return self

    # ========================================================================
    # Properties
    # ========================================================================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    def model_dump_safe(self) -> dict:
        """Export config without sensitive data"""
        return self.model_dump(exclude={"SERVER_SECRET", "BOT_PASSWORD", "DATABASE_URL"})


# ============================================================================
# Singleton Pattern - Global Settings Instance
# ============================================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create settings instance (Singleton)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


# ============================================================================
# Export
# ============================================================================

__all__ = ["Settings", "get_settings", "DEFAULT_SERVER_SECRET"]
