"""Current conditions and forecast requests against the weather provider."""

import logging
from typing import TypeVar

from pydantic import ValidationError

from ..models.config import ProviderConfig
from ..models.result import ErrorKind, WeatherServiceError
from ..models.weather import ForecastWeatherResponse, LiveWeatherResponse, ProviderEnvelope
from .network import NetworkGateway

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=ProviderEnvelope)


class WeatherProvider:
    """Builds provider requests for an administrative code and decodes the replies."""

    def __init__(self, gateway: NetworkGateway, config: ProviderConfig | None = None):
        self.gateway = gateway
        self.config = config or ProviderConfig()

    async def fetch_current(self, adcode: str) -> LiveWeatherResponse:
        """Live conditions for a region."""
        return await self._fetch(adcode, "base", LiveWeatherResponse)

    async def fetch_forecast(self, adcode: str) -> ForecastWeatherResponse:
        """Multi-day forecast for a region."""
        return await self._fetch(adcode, "all", ForecastWeatherResponse)

    async def _fetch(self, adcode: str, extensions: str, model: type[ResponseT]) -> ResponseT:
        if not adcode.strip():
            raise WeatherServiceError(ErrorKind.INVALID_ADMINISTRATIVE_CODE)
        if not self.config.api_key:
            raise WeatherServiceError(ErrorKind.MISSING_CREDENTIALS)

        params = {"key": self.config.api_key, "city": adcode, "extensions": extensions}
        logger.debug(f"Requesting {model.__name__} for adcode {adcode}")
        response = await self.gateway.get(self.config.weather_url, params=params)

        if not response.is_success:
            logger.error(f"HTTP error from weather provider: {response.status_code}")
            raise WeatherServiceError(ErrorKind.NETWORK_ERROR, f"HTTP {response.status_code}")

        try:
            data = model.model_validate_json(response.content)
        except ValidationError as e:
            logger.error(f"Error parsing {model.__name__}: {e}")
            raise WeatherServiceError(ErrorKind.DATA_PARSING_ERROR, f"Parse error: {e}")

        if not data.ok:
            logger.error(f"Weather provider rejected request: {data.info} ({data.infocode})")
            raise WeatherServiceError(ErrorKind.API_ERROR, data.info or "API request failed")

        return data
