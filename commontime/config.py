"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class PasscodeLimitConfig(BaseModel):
    """Throttling of passcode attempts per caller and event."""
    attempts: int = 5
    window_seconds: int = 60

    @field_validator("attempts", "window_seconds")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Passcode limits must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    api_base_url: str = "http://localhost:3000/api"
    timezone: str = "UTC"
    max_weeks: int = 4
    event_ttl_days: int = 30
    request_timeout_seconds: int = 10
    passcode_limit: PasscodeLimitConfig = Field(default_factory=PasscodeLimitConfig)
    data_file: Optional[Path] = None
    session_file: Optional[Path] = None

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, value: str) -> str:
        """Require an http(s) URL and drop the trailing slash."""
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"api_base_url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("max_weeks")
    @classmethod
    def validate_max_weeks(cls, value: int) -> int:
        if not 1 <= value <= 8:
            raise ValueError(f"max_weeks must be between 1 and 8, got {value}")
        return value

    @model_validator(mode="after")
    def validate_durations(self) -> "AppConfig":
        if self.event_ttl_days <= 0:
            raise ValueError("event_ttl_days must be greater than zero")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be greater than zero")
        return self

    def get_data_file(self) -> Path:
        """Local JSON store used in mock mode."""
        return (self.data_file or Path.home() / ".commontime" / "events.json").expanduser()

    def get_session_file(self) -> Path:
        return (self.session_file or Path.home() / ".commontime" / "session.yaml").expanduser()

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        A missing file yields the defaults, since every setting has one.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            ValueError: If config is invalid
        """
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Fall back to the user's config directory
        config_path = Path.home() / ".commontime" / "config.yaml"

    return config_path
