"""Reverse geocoding: coordinate to region name."""

import asyncio
import logging

from pydantic import ValidationError

from ..models.config import ProviderConfig
from ..models.result import ErrorKind, WeatherServiceError
from ..models.weather import Coordinate, RegeoResponse
from .cache import Cache
from .network import NetworkGateway

logger = logging.getLogger(__name__)

GEOCODE_CACHE_PREFIX = "Geocode"


def _http_error(status: int) -> WeatherServiceError:
    if status == 401:
        return WeatherServiceError(ErrorKind.API_ERROR, "Invalid API key")
    if status == 429:
        return WeatherServiceError(ErrorKind.API_ERROR, "Rate limit exceeded")
    if 500 <= status <= 599:
        return WeatherServiceError(ErrorKind.API_ERROR, "Server error")
    return WeatherServiceError(ErrorKind.API_ERROR, f"HTTP error: {status}")


class GeocodingService:
    """Resolves coordinates to region names, remembering every answer."""

    def __init__(
        self,
        gateway: NetworkGateway,
        config: ProviderConfig | None = None,
        store: Cache | None = None,
    ):
        self.gateway = gateway
        self.config = config or ProviderConfig()
        self.store = store
        self._names: dict[str, str] = {}
        if store is not None:
            head = f"{GEOCODE_CACHE_PREFIX}_"
            for key, name in store.get_all(head).items():
                self._names[key[len(head):]] = name

    def _remember(self, key: str, name: str) -> None:
        self._names[key] = name
        if self.store is not None:
            self.store.set(f"{GEOCODE_CACHE_PREFIX}_{key}", name)

    async def reverse_geocode(self, coordinate: Coordinate) -> str:
        """Most specific administrative unit (district, else province) at a coordinate.

        Raises:
            WeatherServiceError: ``missing_credentials``, ``api_error``,
                ``data_parsing_error``, ``location_not_found`` or a gateway error.
        """
        key = coordinate.cache_key
        cached = self._names.get(key)
        if cached is not None:
            logger.debug(f"Using cached region name for {key}: {cached}")
            return cached

        if not self.config.api_key:
            raise WeatherServiceError(ErrorKind.MISSING_CREDENTIALS)

        logger.info(f"Reverse geocoding {key}")
        params = {
            "key": self.config.api_key,
            "location": key,
            "output": "JSON",
            "extensions": "base",
        }
        response = await self.gateway.get(self.config.geocode_url, params=params)
        if response.status_code != 200:
            logger.error(f"Reverse geocoding HTTP error: {response.status_code}")
            raise _http_error(response.status_code)

        try:
            result = RegeoResponse.model_validate_json(response.content)
        except ValidationError as e:
            logger.error(f"Invalid reverse geocoding response: {e}")
            raise WeatherServiceError(ErrorKind.DATA_PARSING_ERROR, "Invalid geocoding response")

        if not result.ok:
            raise WeatherServiceError(ErrorKind.API_ERROR, result.info or "API request failed")

        component = result.regeocode.address_component if result.regeocode else None
        if component is None or not component.region_name:
            raise WeatherServiceError(ErrorKind.LOCATION_NOT_FOUND)

        name = component.region_name
        # Write behind; the caller does not wait for the cache
        asyncio.get_running_loop().call_soon(self._remember, key, name)
        logger.info(f"Resolved {key} to {name}")
        return name
