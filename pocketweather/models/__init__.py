"""Data models for the weather client."""

from .card import WeatherCardEntry
from .config import Config, LocationConfig, NetworkConfig, ProviderConfig, Settings, WeatherConfig
from .result import (
    ERROR_MESSAGES,
    BatchResult,
    ErrorKind,
    FetchError,
    FetchResult,
    WeatherServiceError,
)
from .weather import CityWeatherBundle, Coordinate, CurrentConditions, DailyForecast

__all__ = [
    "BatchResult",
    "CityWeatherBundle",
    "Config",
    "Coordinate",
    "CurrentConditions",
    "DailyForecast",
    "ERROR_MESSAGES",
    "ErrorKind",
    "FetchError",
    "FetchResult",
    "LocationConfig",
    "NetworkConfig",
    "ProviderConfig",
    "Settings",
    "WeatherCardEntry",
    "WeatherConfig",
    "WeatherServiceError",
]
