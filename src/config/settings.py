"""Configuration settings for DataSage."""

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults and can be overridden via
    environment variables with the DATASAGE_ prefix or a .env file.
    Per-job values (timeout, retries, headless) come from the job itself;
    these are the process-wide bounds around them.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATASAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Browser settings
    viewport_width: Annotated[int, Field(gt=0)] = Field(
        default=1920,
        description="Browser viewport width",
    )
    viewport_height: Annotated[int, Field(gt=0)] = Field(
        default=1080,
        description="Browser viewport height",
    )
    slow_mo_ms: Annotated[int, Field(ge=0)] = Field(
        default=0,
        description="Delay inserted between browser operations (debugging aid)",
    )

    # Timing bounds
    settle_delay_ms: Annotated[int, Field(ge=0)] = Field(
        default=2000,
        description="Pause after navigation to let client-side rendering finish",
    )
    element_timeout_ms: Annotated[int, Field(gt=0)] = Field(
        default=5000,
        description="Wait bound for an extraction selector to appear",
    )
    login_field_timeout_ms: Annotated[int, Field(gt=0)] = Field(
        default=10000,
        description="Wait bound for the login username field to appear",
    )
    login_navigation_timeout_ms: Annotated[int, Field(gt=0)] = Field(
        default=15000,
        description="Wait bound for the navigation triggered by login submit",
    )
    typing_delay_ms: Annotated[int, Field(ge=0)] = Field(
        default=100,
        description="Per-keystroke delay when filling login credentials",
    )
    teardown_timeout_ms: Annotated[int, Field(gt=0)] = Field(
        default=10000,
        description="Wait bound for closing the browser session",
    )

    # HTTP server
    host: str = Field(
        default="127.0.0.1",
        description="Interface the HTTP API binds to",
    )
    port: Annotated[int, Field(gt=0, lt=65536)] = Field(
        default=3001,
        description="Port the HTTP API listens on",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


# Singleton instance for easy import
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None
