"""Configuration loading for the Satis webhook receiver.

This module provides server-level settings:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings

Build settings (bin, json, webroot, user, secret, authorized_ips) live in
config.yml and are read on every request by the YAML config adapter.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support via python-dotenv. Variables are prefixed with
    SATIS_WEBHOOK_ (e.g. SATIS_WEBHOOK_WEBHOOK_PORT).
    """

    model_config = SettingsConfigDict(
        env_prefix="SATIS_WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    config_file: str = Field(
        default="config.yml",
        description="Path to the YAML build configuration",
    )
    working_dir: str | None = Field(
        default=None,
        description="Working directory for build commands (default: current)",
    )

    # Webhook configuration
    webhook_host: str = Field(
        default="0.0.0.0",
        description="Host to listen on for webhook server",
    )
    webhook_port: int = Field(
        default=8080,
        description="Port to listen on for webhook server",
    )
    trust_proxy_headers: bool = Field(
        default=False,
        description="Take the client IP from X-Forwarded-For",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    @field_validator("webhook_port")
    @classmethod
    def validate_webhook_port(cls, v: int) -> int:
        """Ensure webhook port is in valid range."""
        if v <= 0 or v > 65535:
            raise ValueError("webhook_port must be between 1 and 65535")
        return v


def load_settings(env_file: str | None = None) -> Settings:
    """Load application settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If settings validation fails.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()


__all__ = ["Settings", "load_settings"]
