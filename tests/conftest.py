"""Pytest configuration and fixtures."""

import copy
import json
import tempfile
from pathlib import Path

import httpx
import pytest

from pocketweather.models.config import NetworkConfig, ProviderConfig
from pocketweather.models.weather import (
    CityWeatherBundle,
    ForecastWeatherResponse,
    LiveWeatherResponse,
)

LIVE_PAYLOAD = {
    "status": "1",
    "count": "1",
    "info": "OK",
    "infocode": "10000",
    "lives": [
        {
            "province": "广东",
            "city": "番禺区",
            "adcode": "440113",
            "weather": "多云",
            "temperature": "28",
            "winddirection": "东南",
            "windpower": "≤3",
            "humidity": "76",
            "reporttime": "2026-10-16 14:00:00",
            "temperature_float": "28.0",
            "humidity_float": "76.0",
        }
    ],
}

FORECAST_PAYLOAD = {
    "status": "1",
    "count": "1",
    "info": "OK",
    "infocode": "10000",
    "forecasts": [
        {
            "city": "番禺区",
            "adcode": "440113",
            "province": "广东",
            "reporttime": "2026-10-16 14:00:00",
            "casts": [
                {
                    "date": "2026-10-16",
                    "week": "5",
                    "dayweather": "多云",
                    "nightweather": "晴",
                    "daytemp": "30",
                    "nighttemp": "23",
                    "daywind": "东南",
                    "nightwind": "东南",
                    "daypower": "1-3",
                    "nightpower": "1-3",
                    "daytemp_float": "30.0",
                    "nighttemp_float": "23.0",
                },
                {
                    "date": "2026-10-17",
                    "week": "6",
                    "dayweather": "小雨",
                    "nightweather": "阴",
                    "daytemp": "27",
                    "nighttemp": "22",
                    "daywind": "北",
                    "nightwind": "北",
                    "daypower": "1-3",
                    "nightpower": "1-3",
                    "daytemp_float": "27.0",
                    "nighttemp_float": "22.0",
                },
            ],
        }
    ],
}

REGEO_PAYLOAD = {
    "status": "1",
    "info": "OK",
    "infocode": "10000",
    "regeocode": {
        "formatted_address": "广东省广州市番禺区市桥街道",
        "addressComponent": {
            "country": "中国",
            "province": "广东省",
            "city": "广州市",
            "citycode": "020",
            "district": "番禺区",
            "adcode": "440113",
            "township": "市桥街道",
            "towncode": [],
            "streetNumber": {"street": [], "number": []},
        },
    },
}

REGION_ROWS = [
    "中文名,adcode,citycode",
    "中华人民共和国,100000,\\N",
    "北京市,110000,010",
    "北京大学城,110999,010",
    "上海北京路,310999,021",
    "广州市,440100,020",
    "番禺区,440113,020",
    "天河区,440106,020",
]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def live_payload():
    """Current conditions response."""
    return copy.deepcopy(LIVE_PAYLOAD)


@pytest.fixture
def forecast_payload():
    """Forecast response."""
    return copy.deepcopy(FORECAST_PAYLOAD)


@pytest.fixture
def regeo_payload():
    """Reverse geocoding response."""
    return copy.deepcopy(REGEO_PAYLOAD)


@pytest.fixture
def region_csv(temp_dir):
    """Small region dataset on disk."""
    path = temp_dir / "regions.csv"
    path.write_text("\n".join(REGION_ROWS) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def provider_config():
    """Provider config with a test key."""
    return ProviderConfig(
        api_key="test-key",
        weather_url="https://weather.example.com/v3/weather/weatherInfo",
        geocode_url="https://weather.example.com/v3/geocode/regeo",
    )


@pytest.fixture
def network_config():
    """Network config without spacing so tests can repeat URLs."""
    return NetworkConfig(min_request_interval_seconds=0)


def json_response(payload, status_code=200):
    """Build an httpx response carrying a JSON payload."""
    return httpx.Response(
        status_code,
        content=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
        headers={"Content-Type": "application/json"},
    )


def weather_handler(live, forecast, calls=None):
    """Mock transport handler answering both weather requests."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if request.url.params.get("extensions") == "all":
            return json_response(forecast)
        return json_response(live)

    return handler


@pytest.fixture(name="json_response")
def json_response_fixture():
    """Factory for JSON responses."""
    return json_response


@pytest.fixture(name="weather_handler")
def weather_handler_fixture():
    """Factory for weather mock transport handlers."""
    return weather_handler


@pytest.fixture
def bundle(live_payload, forecast_payload):
    """A complete bundle built from the sample payloads."""
    live = LiveWeatherResponse.model_validate(live_payload)
    forecast = ForecastWeatherResponse.model_validate(forecast_payload)
    return CityWeatherBundle(city_names=["番禺区"], current=live.lives, forecast=forecast.casts)
