"""Weather fetch pipeline: location, region code, concurrent requests, cache, publication."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable

from ..models.config import LocationConfig, WeatherConfig
from ..models.result import BatchResult, ErrorKind, FetchError, FetchResult, WeatherServiceError
from ..models.weather import CityWeatherBundle
from .cache import WeatherCache
from .geocoding import GeocodingService
from .location import AuthorizationStatus, LocationProvider
from .network_monitor import NetworkStabilityMonitor
from .region_lookup import RegionLookupService
from .weather_service import WeatherProvider

logger = logging.getLogger(__name__)

Listener = Callable[["WeatherCoordinator"], None]
Sleep = Callable[[float], Awaitable[None]]


class FetchState(str, Enum):
    """Progress of the current single-flight fetch."""

    IDLE = "idle"
    RESOLVING = "resolving"
    REQUESTING = "requesting"
    MERGING = "merging"
    PUBLISHED = "published"
    FAILED = "failed"


class WeatherCoordinator:
    """Owns the published weather state and every fetch that feeds it.

    All state is mutated on the event loop that runs the coordinator. One
    interactive fetch is in flight at a time: starting another cancels the
    previous one, and a superseded fetch never touches shared state. Public
    operations return :class:`FetchResult` / :class:`BatchResult` and do not
    raise.
    """

    def __init__(
        self,
        regions: RegionLookupService,
        provider: WeatherProvider,
        cache: WeatherCache,
        config: WeatherConfig | None = None,
        location: LocationProvider | None = None,
        geocoder: GeocodingService | None = None,
        monitor: NetworkStabilityMonitor | None = None,
        location_config: LocationConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.regions = regions
        self.provider = provider
        self.cache = cache
        self.config = config or WeatherConfig()
        self.location = location
        self.geocoder = geocoder
        self.monitor = monitor
        self.location_config = location_config or LocationConfig()
        self._sleep = sleep

        self.active_bundle: CityWeatherBundle | None = None
        self.current_city: str | None = None
        self.bundles: dict[str, CityWeatherBundle] = cache.get_all()
        self.is_loading = False
        self.batch_loading = False
        self.last_error: FetchError | None = None
        self.status = FetchState.IDLE
        self.search_results: list[str] = []

        self._listeners: list[Listener] = []
        self._current_task: asyncio.Task | None = None
        self._generation = 0

        logger.debug(f"Warmed {len(self.bundles)} cached cities")

    # State publication

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"State listener failed: {e}")

    def _advance(self, generation: int | None, state: FetchState) -> None:
        if generation is None or generation != self._generation:
            return
        self.status = state
        self._notify()

    def _publish(self, city: str, bundle: CityWeatherBundle, store: bool) -> None:
        if store:
            self.cache.set(city, bundle)
        self.bundles[city] = bundle
        self.active_bundle = bundle
        self.current_city = city
        self.is_loading = False
        self.status = FetchState.PUBLISHED
        logger.info(f"Published weather for {city}")
        self._notify()

    def _fail(self, error: FetchError) -> None:
        logger.error(f"Weather fetch failed: {error.kind.value} {error.message}")
        self.last_error = error
        self.is_loading = False
        self.status = FetchState.FAILED
        self._notify()

    def _is_stable(self) -> bool:
        return self.monitor is None or self.monitor.is_stable

    # Single city

    async def fetch_weather(self, city: str | None = None) -> FetchResult:
        """Fetch and publish weather for a city, or for the device location when None."""
        if city is None:
            return await self.load_default_location()
        self.last_error = None
        return await self._fetch_and_publish(city)

    async def refresh(self, city: str) -> FetchResult:
        """Drop a city's cached bundle and fetch it again."""
        self.cache.remove(city)
        self.bundles.pop(city, None)
        return await self.fetch_weather(city)

    def _supersede(self) -> int:
        self._generation += 1
        if self._current_task is not None and not self._current_task.done():
            logger.debug("Cancelling previous weather fetch")
            self._current_task.cancel()
        self._current_task = None
        return self._generation

    async def _fetch_and_publish(self, city: str) -> FetchResult:
        city = city.strip()
        generation = self._supersede()

        if not city:
            result = FetchResult.failure(ErrorKind.LOCATION_NOT_FOUND, "Empty city name")
            self._fail(result.error)
            return result

        cached = self.cache.get(city)
        if cached is not None:
            logger.info(f"Using cached weather for {city}")
            self._publish(city, cached, store=False)
            return FetchResult(city=city, bundle=cached, from_cache=True)

        self.is_loading = True
        self._advance(generation, FetchState.RESOLVING)

        task = asyncio.create_task(self._fetch_with_retry(city, generation))
        self._current_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task.cancelled() or generation != self._generation:
            logger.debug(f"Fetch for {city} superseded")
            return FetchResult.failure(ErrorKind.CANCELLED, city=city)

        self._current_task = None
        result = self._task_result(task, city)
        if result.ok:
            self._publish(city, result.bundle, store=not result.from_cache)
        else:
            self._fail(result.error)
        return result

    @staticmethod
    def _task_result(task: asyncio.Task[FetchResult], city: str) -> FetchResult:
        if task.cancelled():
            return FetchResult.failure(ErrorKind.CANCELLED, city=city)
        error = task.exception()
        if error is None:
            return task.result()
        logger.error(f"Unexpected error fetching {city}: {error!r}")
        return FetchResult.failure(ErrorKind.NETWORK_ERROR, str(error), city=city)

    async def _fetch_with_retry(self, city: str, generation: int | None = None) -> FetchResult:
        """Remote fetch, retried while the network is unstable or the request is throttled."""
        last_result: FetchResult | None = None
        attempts = 0
        while True:
            if self._is_stable():
                last_result = await self._fetch_remote(city, generation)
                if last_result.error is None or last_result.error.kind != ErrorKind.THROTTLED:
                    return last_result
            else:
                logger.warning(f"Network unstable, holding request for {city}")

            if attempts >= self.config.retry_limit:
                break
            attempts += 1
            logger.info(f"Retrying {city} ({attempts}/{self.config.retry_limit})")
            await self._sleep(self.config.retry_delay_seconds)

            cached = self.cache.get(city)
            if cached is not None:
                return FetchResult(city=city, bundle=cached, from_cache=True)

        cached = self.cache.get(city)
        if cached is not None:
            logger.info(f"Retries exhausted, falling back to cached weather for {city}")
            return FetchResult(city=city, bundle=cached, from_cache=True)
        if last_result is not None:
            return last_result
        return FetchResult.failure(ErrorKind.NETWORK_UNAVAILABLE, city=city)

    async def _fetch_remote(self, city: str, generation: int | None) -> FetchResult:
        adcode = self.regions.get_adcode(city)
        if not adcode:
            logger.warning(f"No administrative code for {city}")
            return FetchResult.failure(
                ErrorKind.CITY_NOT_FOUND, f"No administrative code for {city}", city=city
            )

        self._advance(generation, FetchState.REQUESTING)
        live_task = asyncio.create_task(self.provider.fetch_current(adcode))
        forecast_task = asyncio.create_task(self.provider.fetch_forecast(adcode))
        try:
            live, forecast = await asyncio.gather(live_task, forecast_task)
        except WeatherServiceError as e:
            await self._discard(live_task, forecast_task)
            # Throttling stays distinct so the retry loop can wait it out
            kind = ErrorKind.THROTTLED if e.kind == ErrorKind.THROTTLED else ErrorKind.NETWORK_ERROR
            logger.warning(f"Weather request for {city} failed: {e}")
            return FetchResult.failure(kind, e.message, city=city)
        except asyncio.CancelledError:
            await self._discard(live_task, forecast_task)
            raise

        self._advance(generation, FetchState.MERGING)
        if not live.lives:
            return FetchResult.failure(
                ErrorKind.DATA_PARSING_ERROR, "No current conditions in response", city=city
            )
        casts = forecast.casts
        if not casts:
            return FetchResult.failure(
                ErrorKind.DATA_PARSING_ERROR, "No forecast in response", city=city
            )

        bundle = CityWeatherBundle(city_names=[city], current=list(live.lives), forecast=casts)
        return FetchResult(city=city, bundle=bundle)

    @staticmethod
    async def _discard(*tasks: asyncio.Task) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # Several cities

    async def _fetch_city(self, city: str) -> FetchResult:
        cached = self.cache.get(city)
        if cached is not None:
            return FetchResult(city=city, bundle=cached, from_cache=True)
        return await self._fetch_with_retry(city)

    async def fetch_many(self, cities: Iterable[str]) -> BatchResult:
        """Fetch several cities, a fixed number at a time.

        Each finished city immediately frees its slot for the next one.
        Successful cities are applied even when others fail. Progress is
        reported through ``batch_loading``; ``is_loading`` and ``status``
        belong to the single-flight fetch.
        """
        queue = iter(dict.fromkeys(city.strip() for city in cities if city.strip()))
        pending: dict[asyncio.Task[FetchResult], str] = {}
        results: dict[str, FetchResult] = {}

        def launch_next() -> None:
            city = next(queue, None)
            if city is not None:
                pending[asyncio.create_task(self._fetch_city(city))] = city

        self.last_error = None
        self.batch_loading = True
        self._notify()

        for _ in range(self.config.batch_concurrency):
            launch_next()

        try:
            while pending:
                done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    city = pending.pop(task)
                    results[city] = self._task_result(task, city)
                    launch_next()
        except asyncio.CancelledError:
            await self._discard(*pending)
            self.batch_loading = False
            raise

        bundles: dict[str, CityWeatherBundle] = {}
        failures: dict[str, FetchError] = {}
        for city, result in results.items():
            if result.ok:
                if not result.from_cache:
                    self.cache.set(city, result.bundle)
                self.bundles[city] = result.bundle
                bundles[city] = result.bundle
            else:
                failures[city] = result.error

        self.batch_loading = False
        if failures:
            error = FetchError(
                kind=ErrorKind.MULTIPLE_ERRORS,
                message=f"{len(failures)} of {len(results)} cities failed",
                errors=failures,
            )
            logger.error(f"Batch fetch failed: {error.message}")
            self.last_error = error
            self._notify()
            return BatchResult(bundles=bundles, error=error)

        logger.info(f"Fetched weather for {len(bundles)} cities")
        self._notify()
        return BatchResult(bundles=bundles)

    # Device location

    async def load_default_location(self) -> FetchResult:
        """Fetch weather for the device location, falling back to the default city.

        The location phase holds the single-flight slot, so a fetch started
        while the device is still locating supersedes it.
        """
        generation = self._supersede()
        self.last_error = None
        self.is_loading = True
        self._advance(generation, FetchState.RESOLVING)

        task = asyncio.create_task(self._resolve_current_city())
        self._current_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task.cancelled() or generation != self._generation:
            logger.debug("Location fetch superseded")
            return FetchResult.failure(ErrorKind.CANCELLED)

        self._current_task = None
        error = task.exception()
        if error is not None:
            logger.warning(f"Location lookup failed: {error}")
            if isinstance(error, WeatherServiceError):
                self.last_error = FetchError.from_exception(error)
            else:
                self.last_error = FetchError(
                    kind=ErrorKind.LOCATION_SERVICE_FAILED, message=str(error)
                )
            return await self._fetch_default_city()

        result = await self._fetch_and_publish(task.result())
        if result.ok or result.error.kind == ErrorKind.CANCELLED:
            return result
        return await self._fetch_default_city()

    async def _fetch_default_city(self) -> FetchResult:
        city = self.config.default_city
        logger.info(f"Loading default city {city}")
        return await self._fetch_and_publish(city)

    async def _resolve_current_city(self) -> str:
        if self.location is None or self.geocoder is None:
            raise WeatherServiceError(
                ErrorKind.LOCATION_SERVICE_FAILED, "Location services not configured"
            )

        status = self.location.authorization_status()
        if status == AuthorizationStatus.NOT_DETERMINED:
            await self._await_authorization()
        elif status in (AuthorizationStatus.DENIED, AuthorizationStatus.RESTRICTED):
            raise WeatherServiceError(ErrorKind.LOCATION_AUTHORIZATION_DENIED)
        elif status != AuthorizationStatus.AUTHORIZED:
            raise WeatherServiceError(ErrorKind.LOCATION_SERVICE_FAILED)

        fix = await self.location.current_location()
        return await self.geocoder.reverse_geocode(fix.coordinate)

    async def _await_authorization(self) -> None:
        polls = self.location_config.authorization_polls
        for attempt in range(1, polls + 1):
            self.location.request_authorization()
            await self._sleep(self.location_config.authorization_poll_seconds)
            status = self.location.authorization_status()
            if status == AuthorizationStatus.AUTHORIZED:
                return
            if status in (AuthorizationStatus.DENIED, AuthorizationStatus.RESTRICTED):
                raise WeatherServiceError(ErrorKind.LOCATION_AUTHORIZATION_DENIED)
            logger.debug(f"Authorization still undetermined ({attempt}/{polls})")
        raise WeatherServiceError(ErrorKind.LOCATION_AUTHORIZATION_TIMEOUT)

    # Search

    def search_regions(self, query: str) -> list[str]:
        """Region names matching a query, prefix matches first."""
        self.search_results = self.regions.search(query)
        self._notify()
        return self.search_results

    async def close(self) -> None:
        """Cancel the in-flight fetch, if any."""
        task = self._current_task
        self._supersede()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
