"""Services for locating the user, fetching weather and storing results."""

from .cache import Cache, WeatherCache
from .cards import CardManager
from .coordinator import FetchState, WeatherCoordinator
from .geocoding import GeocodingService
from .location import AuthorizationStatus, LocationFix, LocationProvider, StaticLocationBackend
from .network import NetworkGateway
from .network_monitor import NetworkStabilityMonitor
from .region_lookup import RegionLookupService, SeedReport
from .weather_service import WeatherProvider

__all__ = [
    "AuthorizationStatus",
    "Cache",
    "CardManager",
    "FetchState",
    "GeocodingService",
    "LocationFix",
    "LocationProvider",
    "NetworkGateway",
    "NetworkStabilityMonitor",
    "RegionLookupService",
    "SeedReport",
    "StaticLocationBackend",
    "WeatherCache",
    "WeatherCoordinator",
    "WeatherProvider",
]
