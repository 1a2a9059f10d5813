"""Tests for weather, card and result models."""

import pytest
from pydantic import ValidationError

from pocketweather.models.card import WeatherCardEntry
from pocketweather.models.result import ErrorKind, FetchError, FetchResult, WeatherServiceError
from pocketweather.models.weather import (
    CityWeatherBundle,
    Coordinate,
    CurrentConditions,
    DailyForecast,
    ForecastWeatherResponse,
    RegeoResponse,
)


class TestCurrentConditions:
    """Tests for CurrentConditions model."""

    def test_parses_provider_record(self, live_payload):
        """Test decoding a provider live record."""
        live = CurrentConditions.model_validate(live_payload["lives"][0])
        assert live.city == "番禺区"
        assert live.temperature == "28"
        assert live.reporttime == "2026-10-16 14:00:00"

    def test_is_immutable(self, live_payload):
        """Test records cannot be modified."""
        live = CurrentConditions.model_validate(live_payload["lives"][0])
        with pytest.raises(ValidationError):
            live.temperature = "0"

    def test_empty_array_means_blank(self):
        """Test the provider's [] placeholder becomes an empty string."""
        live = CurrentConditions.model_validate({"city": "番禺区", "windpower": []})
        assert live.windpower == ""

    def test_dew_point(self):
        """Test the simplified dew point."""
        live = CurrentConditions(temperature="28", humidity="80")
        assert live.dew_point() == "24.0"

    def test_dew_point_needs_humidity(self):
        """Test dew point is unavailable for tiny or missing humidity."""
        assert CurrentConditions(temperature="28", humidity="1").dew_point() is None
        assert CurrentConditions(temperature="", humidity="50").dew_point() is None


class TestDailyForecast:
    """Tests for DailyForecast model."""

    @pytest.mark.parametrize(
        "week,expected",
        [("1", "星期一"), ("5", "星期五"), ("7", "星期日"), ("9", "9")],
    )
    def test_weekday_name(self, week, expected):
        """Test weekday names for provider week numbers."""
        assert DailyForecast(week=week).weekday_name == expected


class TestForecastWeatherResponse:
    """Tests for forecast response helpers."""

    def test_casts_sorted_by_date(self, forecast_payload):
        """Test casts come back in ascending date order."""
        forecast_payload["forecasts"][0]["casts"].reverse()
        forecast = ForecastWeatherResponse.model_validate(forecast_payload)
        assert [cast.date for cast in forecast.casts] == ["2026-10-16", "2026-10-17"]

    def test_casts_empty_without_forecasts(self):
        """Test an empty forecast list yields no casts."""
        forecast = ForecastWeatherResponse(status="1", forecasts=[])
        assert forecast.casts == []


class TestRegeoResponse:
    """Tests for reverse geocoding response decoding."""

    def test_region_name_prefers_district(self, regeo_payload):
        """Test district is used when present."""
        response = RegeoResponse.model_validate(regeo_payload)
        assert response.ok
        assert response.regeocode.address_component.region_name == "番禺区"

    def test_region_name_falls_back_to_province(self, regeo_payload):
        """Test province is used when district is an empty array."""
        regeo_payload["regeocode"]["addressComponent"]["district"] = []
        regeo_payload["regeocode"]["addressComponent"]["city"] = []
        response = RegeoResponse.model_validate(regeo_payload)
        component = response.regeocode.address_component
        assert component.city == ""
        assert component.region_name == "广东省"

    def test_not_ok_on_bad_infocode(self, regeo_payload):
        """Test infocode other than 10000 is a failure."""
        regeo_payload["infocode"] = "10001"
        assert not RegeoResponse.model_validate(regeo_payload).ok


class TestCityWeatherBundle:
    """Tests for CityWeatherBundle model."""

    def test_valid_bundle(self, bundle):
        """Test a complete bundle is valid."""
        assert bundle.is_valid
        assert bundle.city == "番禺区"
        assert bundle.live.weather == "多云"
        assert bundle.today.date == "2026-10-16"

    def test_missing_forecast_is_invalid(self, bundle):
        """Test a bundle without forecast is invalid."""
        partial = CityWeatherBundle(city_names=["番禺区"], current=bundle.current)
        assert not partial.is_valid
        assert partial.today is None

    def test_missing_current_is_invalid(self, bundle):
        """Test a bundle without current conditions is invalid."""
        partial = CityWeatherBundle(city_names=["番禺区"], forecast=bundle.forecast)
        assert not partial.is_valid
        assert partial.live is None

    def test_json_round_trip(self, bundle):
        """Test a bundle survives serialization unchanged."""
        restored = CityWeatherBundle.model_validate(bundle.model_dump(mode="json"))
        assert restored == bundle


class TestCoordinate:
    """Tests for Coordinate model."""

    def test_cache_key(self):
        """Test the canonical longitude,latitude key."""
        coordinate = Coordinate(longitude=113.384129, latitude=22.937244)
        assert coordinate.cache_key == "113.384129,22.937244"

    def test_rejects_out_of_range(self):
        """Test invalid coordinates are rejected."""
        with pytest.raises(ValidationError):
            Coordinate(longitude=200, latitude=0)


class TestWeatherCardEntry:
    """Tests for WeatherCardEntry model."""

    def test_generates_unique_ids(self):
        """Test each card gets its own id."""
        first = WeatherCardEntry(adcode="440113", city="番禺区")
        second = WeatherCardEntry(adcode="440113", city="番禺区")
        assert first.id != second.id
        assert first != second

    def test_equality_by_id(self):
        """Test cards with the same id are equal regardless of content."""
        first = WeatherCardEntry(id="card-1", adcode="440113", city="番禺区")
        second = WeatherCardEntry(id="card-1", adcode="440106", city="天河区", temperature="30")
        assert first == second
        assert len({first, second}) == 1

    def test_from_bundle(self, bundle):
        """Test building a card from a bundle."""
        card = WeatherCardEntry.from_bundle(bundle, adcode="440113")
        assert card.adcode == "440113"
        assert card.city == "番禺区"
        assert card.temperature == "28"
        assert card.weather_condition == "多云"
        assert card.high_temperature == "30"
        assert card.low_temperature == "23"
        assert len(card.future_weather) == 2


class TestFetchResults:
    """Tests for result and error models."""

    def test_service_error_default_message(self):
        """Test service errors carry a default message."""
        error = WeatherServiceError(ErrorKind.CITY_NOT_FOUND)
        assert error.kind == ErrorKind.CITY_NOT_FOUND
        assert error.message == "City not found"

    def test_failure_result(self):
        """Test a failure result is not ok."""
        result = FetchResult.failure(ErrorKind.NETWORK_ERROR, "boom", city="番禺区")
        assert not result.ok
        assert result.error.kind == ErrorKind.NETWORK_ERROR
        assert result.city == "番禺区"

    def test_api_error_display_message(self):
        """Test api errors show the provider's message."""
        error = FetchError(kind=ErrorKind.API_ERROR, message="INVALID_USER_KEY")
        assert error.display_message == "Weather service error: INVALID_USER_KEY"

    def test_multiple_errors_display_message(self):
        """Test nested errors are listed per city."""
        error = FetchError(
            kind=ErrorKind.MULTIPLE_ERRORS,
            errors={"B": FetchError(kind=ErrorKind.CITY_NOT_FOUND)},
        )
        assert error.display_message == "Several cities failed: B: City not found"
