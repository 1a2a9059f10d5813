"""Weather data models.

Field names follow the provider's JSON payloads so responses validate
directly into these models and bundles round-trip through the cache.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

WEEKDAY_NAMES = {
    "1": "星期一",
    "2": "星期二",
    "3": "星期三",
    "4": "星期四",
    "5": "星期五",
    "6": "星期六",
    "7": "星期日",
}


class ProviderRecord(BaseModel):
    """Flat record of string fields as returned by the provider.

    The provider encodes an absent value as an empty JSON array.
    """

    model_config = ConfigDict(frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def empty_array_as_blank(cls, v: Any) -> Any:
        if isinstance(v, list) and not v:
            return ""
        return v


class CurrentConditions(ProviderRecord):
    """Live weather report for one administrative region."""

    province: str = ""
    city: str = ""
    adcode: str = ""
    weather: str = ""
    temperature: str = ""
    winddirection: str = ""
    windpower: str = ""
    humidity: str = ""
    reporttime: str = ""  # yyyy-MM-dd HH:mm:ss
    temperature_float: str = ""
    humidity_float: str = ""

    def dew_point(self) -> str | None:
        """Approximate dew point, one decimal place."""
        try:
            temp = float(self.temperature)
            humidity = float(self.humidity)
        except ValueError:
            return None
        if humidity <= 1:
            return None
        return f"{temp - (1 - humidity / 100) / 0.05:.1f}"


class DailyForecast(ProviderRecord):
    """Forecast for a single day."""

    date: str = ""  # yyyy-MM-dd
    week: str = ""
    dayweather: str = ""
    nightweather: str = ""
    daytemp: str = ""
    nighttemp: str = ""
    daywind: str = ""
    nightwind: str = ""
    daypower: str = ""
    nightpower: str = ""
    daytemp_float: str = ""
    nighttemp_float: str = ""

    @property
    def weekday_name(self) -> str:
        return WEEKDAY_NAMES.get(self.week, self.week)


class CityWeatherBundle(BaseModel):
    """Merged current conditions and forecast for one city."""

    city_names: list[str] = Field(default_factory=list)
    current: list[CurrentConditions] = Field(default_factory=list)
    forecast: list[DailyForecast] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """A bundle is only usable when both halves are present."""
        return bool(self.current) and bool(self.forecast)

    @property
    def city(self) -> str:
        if self.city_names:
            return self.city_names[0]
        if self.current:
            return self.current[0].city
        return ""

    @property
    def live(self) -> CurrentConditions | None:
        return self.current[0] if self.current else None

    @property
    def today(self) -> DailyForecast | None:
        return self.forecast[0] if self.forecast else None


class ProviderEnvelope(BaseModel):
    """Status fields shared by every provider response."""

    status: str = ""
    count: str = ""
    info: str = ""
    infocode: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "1"


class LiveWeatherResponse(ProviderEnvelope):
    """Response of the current conditions request."""

    lives: list[CurrentConditions] = Field(default_factory=list)


class ForecastData(BaseModel):
    """Forecast block for one region."""

    city: str = ""
    adcode: str = ""
    province: str = ""
    reporttime: str = ""
    casts: list[DailyForecast] = Field(default_factory=list)


class ForecastWeatherResponse(ProviderEnvelope):
    """Response of the forecast request."""

    forecasts: list[ForecastData] = Field(default_factory=list)

    @property
    def casts(self) -> list[DailyForecast]:
        """Daily forecasts of the first region, ordered by date."""
        if not self.forecasts:
            return []
        return sorted(self.forecasts[0].casts, key=lambda cast: cast.date)


class AddressComponent(ProviderRecord):
    """Administrative units of a reverse-geocoded coordinate."""

    country: str = ""
    province: str = ""
    city: str = ""
    district: str = ""
    township: str = ""
    adcode: str = ""
    citycode: str = ""

    @field_validator("city", "township", mode="before")
    @classmethod
    def first_of_list(cls, v: Any) -> Any:
        if isinstance(v, list):
            return v[0] if v else ""
        return v

    @property
    def region_name(self) -> str:
        """Most specific non-empty unit usable as a region lookup key."""
        return self.district or self.province


class Regeocode(BaseModel):
    """Reverse geocoding result."""

    address_component: AddressComponent | None = Field(default=None, alias="addressComponent")
    formatted_address: str = ""

    @field_validator("formatted_address", mode="before")
    @classmethod
    def empty_array_as_blank(cls, v: Any) -> Any:
        if isinstance(v, list) and not v:
            return ""
        return v


class RegeoResponse(ProviderEnvelope):
    """Response of the reverse geocoding request."""

    regeocode: Regeocode | None = None

    @property
    def ok(self) -> bool:
        return self.status == "1" and self.infocode == "10000"


class Coordinate(BaseModel):
    """A WGS-84 position."""

    model_config = ConfigDict(frozen=True)

    longitude: float = Field(ge=-180, le=180)
    latitude: float = Field(ge=-90, le=90)

    @property
    def cache_key(self) -> str:
        """Canonical "longitude,latitude" string, also the provider's format."""
        return f"{self.longitude:.6f},{self.latitude:.6f}"
