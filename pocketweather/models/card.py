"""Pinned city card model."""

import uuid

from pydantic import BaseModel, Field

from .weather import CityWeatherBundle, CurrentConditions, DailyForecast


class WeatherCardEntry(BaseModel):
    """A city the user pinned to the home screen.

    ``id`` identifies the card for its whole lifetime; ``adcode`` is the
    business key, one card per region.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    adcode: str
    city: str
    city_name: str = ""
    temperature: str = ""
    weather_condition: str = ""
    high_temperature: str | None = None
    low_temperature: str | None = None
    current_weather: list[CurrentConditions] = Field(default_factory=list)
    future_weather: list[DailyForecast] = Field(default_factory=list)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WeatherCardEntry):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def from_bundle(cls, bundle: CityWeatherBundle, adcode: str) -> "WeatherCardEntry":
        """Build a card from a freshly fetched bundle."""
        live = bundle.live
        today = bundle.today
        return cls(
            adcode=adcode,
            city=bundle.city,
            city_name=live.city if live else bundle.city,
            temperature=live.temperature if live else "",
            weather_condition=live.weather if live else "",
            high_temperature=today.daytemp if today else None,
            low_temperature=today.nighttemp if today else None,
            current_weather=list(bundle.current),
            future_weather=list(bundle.forecast),
        )
