"""Typed settings loader for the weather lookup core."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AnyHttpUrl, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_env: Literal["dev", "staging", "prod"] = Field(default="dev", alias="APP_ENV")

    openweather_api_key: str = Field(alias="OPENWEATHER_API_KEY", repr=False)
    openweather_base_url: AnyHttpUrl = Field(
        default="https://api.openweathermap.org",
        alias="OPENWEATHER_BASE_URL",
    )
    weather_timeout_seconds: float = Field(default=20.0, alias="WEATHER_TIMEOUT_SECONDS")
    weather_user_agent: str = Field(
        default="whetherornot/0.1 (+https://openweathermap.org)",
        alias="WEATHER_USER_AGENT",
    )
    default_country_code: str = Field(default="US", alias="DEFAULT_COUNTRY_CODE")

    # Fallback when the caller has no location of its own.
    default_lat: float = Field(default=46.8384, alias="DEFAULT_LAT")
    default_lon: float = Field(default=-92.1800, alias="DEFAULT_LON")
    default_location_name: str = Field(
        default="Duluth, MN (46.8384°N, 92.1800°W)",
        alias="DEFAULT_LOCATION_NAME",
    )

    database_url: str = Field(
        default="sqlite:///./data/whetherornot.db",
        alias="DATABASE_URL",
    )
    recent_locations_limit: int = Field(default=10, alias="RECENT_LOCATIONS_LIMIT")

    journal_enabled: bool = Field(default=True, alias="JOURNAL_ENABLED")
    journal_dir: Path = Field(default=Path("./data/journal"), alias="JOURNAL_DIR")
    raw_payload_dir: Path = Field(default=Path("./data/raw"), alias="RAW_PAYLOAD_DIR")
    journal_raw_payloads: bool = Field(default=False, alias="JOURNAL_RAW_PAYLOADS")

    max_print: int = Field(default=5, alias="MAX_PRINT")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
    )

    @field_validator("default_country_code", mode="before")
    @classmethod
    def normalize_country_code(cls, value: Any) -> Any:
        """Country codes are sent upper-case to the geocoder."""
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def validate_values(self) -> Settings:
        """Validate cross-field constraints."""
        if not self.openweather_api_key.strip():
            raise ValueError("OPENWEATHER_API_KEY must not be empty.")
        if self.weather_timeout_seconds <= 0:
            raise ValueError("WEATHER_TIMEOUT_SECONDS must be > 0.")
        if not self.weather_user_agent.strip():
            raise ValueError("WEATHER_USER_AGENT must not be empty.")
        if len(self.default_country_code) != 2 or not self.default_country_code.isalpha():
            raise ValueError("DEFAULT_COUNTRY_CODE must be a two-letter country code.")
        if not (-90 <= self.default_lat <= 90):
            raise ValueError("DEFAULT_LAT must be between -90 and 90.")
        if not (-180 <= self.default_lon <= 180):
            raise ValueError("DEFAULT_LON must be between -180 and 180.")
        if not self.database_url.strip():
            raise ValueError("DATABASE_URL must not be empty.")
        if self.recent_locations_limit <= 0:
            raise ValueError("RECENT_LOCATIONS_LIMIT must be > 0.")
        if self.max_print <= 0:
            raise ValueError("MAX_PRINT must be > 0.")
        return self

    @property
    def base_url(self) -> str:
        return str(self.openweather_base_url).rstrip("/")

    def safe_summary(self) -> dict[str, Any]:
        """Return config summary safe for journaling (no credentials)."""
        return {
            "app_env": self.app_env,
            "base_url": self.base_url,
            "weather_timeout_seconds": self.weather_timeout_seconds,
            "default_country_code": self.default_country_code,
            "default_location_name": self.default_location_name,
            "database_url": self.database_url,
            "recent_locations_limit": self.recent_locations_limit,
            "journal_enabled": self.journal_enabled,
            "journal_raw_payloads": self.journal_raw_payloads,
        }


def _sqlite_parent_dir(database_url: str) -> Path | None:
    prefix = "sqlite:///"
    if not database_url.startswith(prefix):
        return None
    path_part = database_url[len(prefix):]
    if not path_part or path_part == ":memory:":
        return None
    return Path(path_part).parent


def load_settings() -> Settings:
    """Load and validate settings, raising ConfigError on failure."""
    try:
        settings = Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed reading environment/.env: {exc}") from exc

    db_dir = _sqlite_parent_dir(settings.database_url)
    try:
        if db_dir is not None:
            db_dir.mkdir(parents=True, exist_ok=True)
        if settings.journal_enabled:
            settings.journal_dir.mkdir(parents=True, exist_ok=True)
            settings.raw_payload_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"Failed creating data directories: {exc}") from exc
    return settings
