"""Wires the services together from a :class:`Config`."""

import logging
from pathlib import Path

from .models.config import Config
from .models.weather import Coordinate
from .services.cache import Cache, WeatherCache
from .services.cards import CardManager
from .services.coordinator import WeatherCoordinator
from .services.geocoding import GeocodingService
from .services.location import LocationProvider, StaticLocationBackend
from .services.network import NetworkGateway
from .services.network_monitor import NetworkStabilityMonitor, http_probe
from .services.region_lookup import RegionLookupService
from .services.weather_service import WeatherProvider

logger = logging.getLogger(__name__)


class WeatherApp:
    """Owns every long-lived component of the client."""

    def __init__(self, config: Config, coordinate: Coordinate | None = None):
        self.config = config
        settings = config.settings

        if coordinate is None and config.weather.latitude is not None and config.weather.longitude is not None:
            coordinate = Coordinate(
                longitude=config.weather.longitude, latitude=config.weather.latitude
            )

        self.store = Cache(cache_dir=settings.cache_dir)
        self.gateway = NetworkGateway(config.network)
        self.regions = RegionLookupService(
            db_path=Path(settings.region_db_path), dataset=settings.region_dataset
        )
        self.monitor = NetworkStabilityMonitor(
            http_probe(config.network.probe_url),
            required_stable_count=config.network.required_stable_count,
            interval=config.network.check_interval_seconds,
        )
        self.backend = StaticLocationBackend(coordinate)
        self.location = LocationProvider(
            self.backend,
            timeout=config.location.timeout_seconds,
            duplicate_window=config.location.duplicate_window_seconds,
            is_connected=lambda: self.monitor.is_connected,
        )
        self.backend.attach(self.location)
        self.cards = CardManager(self.store)

        self.coordinator = WeatherCoordinator(
            regions=self.regions,
            provider=WeatherProvider(self.gateway, config.provider),
            cache=WeatherCache(self.store),
            config=config.weather,
            location=self.location,
            geocoder=GeocodingService(self.gateway, config.provider, store=self.store),
            monitor=self.monitor,
            location_config=config.location,
        )

    async def start(self) -> None:
        """Prime the region table and start background maintenance."""
        self.regions.ensure_initialized()
        self.gateway.start()
        self.monitor.start()
        # Settle the stability state before the first fetch
        for _ in range(self.config.network.required_stable_count):
            await self.monitor.check()

    async def aclose(self) -> None:
        await self.coordinator.close()
        await self.monitor.stop()
        await self.gateway.aclose()
        self.regions.close()
        logger.debug("Weather app closed")

    async def __aenter__(self) -> "WeatherApp":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
