"""Configuration models using Pydantic for validation."""

import os
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

API_KEY_ENV = "AMAP_API_KEY"


def _validate_http_url(v: str) -> str:
    try:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"URL must use http or https scheme, got '{parsed.scheme}'")
        if not parsed.netloc:
            raise ValueError("URL must have a valid host")
    except Exception as e:
        raise ValueError(f"Invalid URL '{v}': {e}")
    return v


class ProviderConfig(BaseModel):
    """Weather and reverse-geocoding provider endpoints."""

    api_key: str = ""
    weather_url: str = "https://restapi.amap.com/v3/weather/weatherInfo"
    geocode_url: str = "https://restapi.amap.com/v3/geocode/regeo"

    @field_validator("weather_url", "geocode_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate that URL is a valid HTTP/HTTPS URL."""
        return _validate_http_url(v)

    @model_validator(mode="after")
    def key_from_environment(self) -> "ProviderConfig":
        """Fall back to the environment when no key is configured."""
        if not self.api_key:
            self.api_key = os.environ.get(API_KEY_ENV, "")
        return self


class NetworkConfig(BaseModel):
    """Outbound request policy and network stability probing."""

    min_request_interval_seconds: float = Field(default=2.0, ge=0)
    max_concurrent_requests: int = Field(default=4, gt=0)
    request_timeout_seconds: float = Field(default=15.0, gt=0)
    resource_timeout_seconds: float = Field(default=30.0, gt=0)
    buffer_ttl_seconds: float = Field(default=300.0, gt=0)
    cleanup_interval_seconds: float = Field(default=300.0, gt=0)
    session_recycle_seconds: float = Field(default=3600.0, gt=0)
    probe_url: str = "https://www.baidu.com"
    required_stable_count: int = Field(default=2, gt=0)
    check_interval_seconds: float = Field(default=1.0, gt=0)

    @field_validator("probe_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate that URL is a valid HTTP/HTTPS URL."""
        return _validate_http_url(v)


class WeatherConfig(BaseModel):
    """Weather fetch policy."""

    default_city: str = Field(default="番禺区", min_length=1)
    retry_limit: int = Field(default=5, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    batch_concurrency: int = Field(default=3, gt=0)
    latitude: float | None = None
    longitude: float | None = None

    @field_validator("latitude")
    @classmethod
    def validate_latitude(cls, v: float | None) -> float | None:
        """Validate latitude is in valid range."""
        if v is not None and not -90 <= v <= 90:
            raise ValueError(f"Latitude must be between -90 and 90, got {v}")
        return v

    @field_validator("longitude")
    @classmethod
    def validate_longitude(cls, v: float | None) -> float | None:
        """Validate longitude is in valid range."""
        if v is not None and not -180 <= v <= 180:
            raise ValueError(f"Longitude must be between -180 and 180, got {v}")
        return v


class LocationConfig(BaseModel):
    """Device location request policy."""

    timeout_seconds: float = Field(default=30.0, gt=0)
    duplicate_window_seconds: float = Field(default=1.0, ge=0)
    authorization_polls: int = Field(default=3, gt=0)
    authorization_poll_seconds: float = Field(default=1.0, ge=0)


class Settings(BaseModel):
    """General application settings."""

    cache_dir: Path = Path(".cache")
    region_db_path: Path = Path("regions.db")
    region_dataset: Path | None = None  # None means the bundled CSV
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class Config(BaseModel):
    """Main configuration model."""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    weather: WeatherConfig = Field(default_factory=WeatherConfig)
    location: LocationConfig = Field(default_factory=LocationConfig)
    settings: Settings = Field(default_factory=Settings)

    @classmethod
    def load(cls, path: Path | str = "config.json") -> "Config":
        """Load configuration from a JSON file."""
        import json

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def load_or_default(cls, path: Path | str = "config.json") -> "Config":
        """Load configuration or return default if file doesn't exist."""
        try:
            return cls.load(path)
        except FileNotFoundError:
            return cls()
