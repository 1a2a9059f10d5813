"""Device location access with authorization handling and a fix timeout."""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol

from pydantic import BaseModel, ConfigDict, Field

from ..models.result import ErrorKind, WeatherServiceError
from ..models.weather import Coordinate

logger = logging.getLogger(__name__)

LocationCallback = Callable[["LocationFix | None", "WeatherServiceError | None"], None]


class AuthorizationStatus(str, Enum):
    """Location permission state reported by the device."""

    AUTHORIZED = "authorized"
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    RESTRICTED = "restricted"
    UNKNOWN = "unknown"


class LocationFix(BaseModel):
    """A position reported by the device."""

    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    timestamp: datetime = Field(default_factory=datetime.now)


class LocationBackend(Protocol):
    """Platform location service.

    Results are reported back asynchronously through
    :meth:`LocationProvider.handle_location`, :meth:`LocationProvider.handle_error`
    and :meth:`LocationProvider.handle_authorization_change`.
    """

    def authorization_status(self) -> AuthorizationStatus: ...

    def request_authorization(self) -> None: ...

    def request_location(self) -> None: ...


class LocationProvider:
    """Single-shot location requests on top of a :class:`LocationBackend`."""

    def __init__(
        self,
        backend: LocationBackend,
        timeout: float = 30.0,
        duplicate_window: float = 1.0,
        is_connected: Callable[[], bool] | None = None,
    ):
        self.backend = backend
        self.timeout = timeout
        self.duplicate_window = duplicate_window
        self.is_connected = is_connected
        self.on_update: LocationCallback | None = None
        self._last_fix: LocationFix | None = None
        self._pending: set[asyncio.Future[LocationFix]] = set()

    def authorization_status(self) -> AuthorizationStatus:
        return self.backend.authorization_status()

    def request_authorization(self) -> None:
        self.backend.request_authorization()

    @property
    def last_fix(self) -> LocationFix | None:
        return self._last_fix

    def _emit(self, fix: LocationFix | None, error: WeatherServiceError | None) -> None:
        if self.on_update is not None:
            self.on_update(fix, error)

    def _settle(self, fix: LocationFix | None, error: WeatherServiceError | None) -> None:
        pending, self._pending = self._pending, set()
        for future in pending:
            if future.done():
                continue
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(fix)

    async def current_location(self) -> LocationFix:
        """Wait for the next location fix.

        Raises:
            WeatherServiceError: ``network_unavailable``,
                ``location_authorization_denied`` or ``location_service_failed``
                (including the timeout).
        """
        if self.is_connected is not None and not self.is_connected():
            error = WeatherServiceError(ErrorKind.NETWORK_UNAVAILABLE)
            self._emit(None, error)
            raise error

        status = self.backend.authorization_status()
        if status in (AuthorizationStatus.DENIED, AuthorizationStatus.RESTRICTED):
            error = WeatherServiceError(ErrorKind.LOCATION_AUTHORIZATION_DENIED)
            self._emit(None, error)
            raise error

        future: asyncio.Future[LocationFix] = asyncio.get_running_loop().create_future()
        self._pending.add(future)

        if status == AuthorizationStatus.AUTHORIZED:
            self.backend.request_location()
        elif status == AuthorizationStatus.NOT_DETERMINED:
            # The fix is requested once the user grants access
            self.backend.request_authorization()
        else:
            self._pending.discard(future)
            error = WeatherServiceError(ErrorKind.LOCATION_SERVICE_FAILED)
            self._emit(None, error)
            raise error

        try:
            return await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No location fix within {self.timeout}s")
            error = WeatherServiceError(ErrorKind.LOCATION_SERVICE_FAILED, "Location request timed out")
            self._emit(None, error)
            raise error
        finally:
            self._pending.discard(future)

    def handle_location(self, fix: LocationFix) -> None:
        """Backend callback: a new fix arrived."""
        last = self._last_fix
        if last is not None:
            gap = abs((fix.timestamp - last.timestamp).total_seconds())
            if gap < self.duplicate_window:
                logger.debug(f"Dropping duplicate fix {gap:.2f}s after the previous one")
                return

        self._last_fix = fix
        logger.debug(f"Location fix: {fix.coordinate.cache_key}")
        self._emit(fix, None)
        self._settle(fix, None)

    def handle_error(self, error: Exception) -> None:
        """Backend callback: the fix request failed."""
        if isinstance(error, WeatherServiceError):
            failure = error
        elif isinstance(error, PermissionError):
            failure = WeatherServiceError(ErrorKind.LOCATION_AUTHORIZATION_DENIED)
        else:
            failure = WeatherServiceError(ErrorKind.LOCATION_SERVICE_FAILED, str(error))
        logger.warning(f"Location request failed: {failure}")
        self._emit(None, failure)
        self._settle(None, failure)

    def handle_authorization_change(self, status: AuthorizationStatus) -> None:
        """Backend callback: the user changed the permission."""
        logger.debug(f"Location authorization changed: {status.value}")
        if status == AuthorizationStatus.AUTHORIZED and self._pending:
            self.backend.request_location()
        elif status in (AuthorizationStatus.DENIED, AuthorizationStatus.RESTRICTED):
            self.handle_error(WeatherServiceError(ErrorKind.LOCATION_AUTHORIZATION_DENIED))


class StaticLocationBackend:
    """Backend that always reports one configured coordinate."""

    def __init__(self, coordinate: Coordinate | None = None):
        self.coordinate = coordinate
        self.provider: LocationProvider | None = None

    def attach(self, provider: LocationProvider) -> None:
        self.provider = provider

    def authorization_status(self) -> AuthorizationStatus:
        if self.coordinate is None:
            return AuthorizationStatus.DENIED
        return AuthorizationStatus.AUTHORIZED

    def request_authorization(self) -> None:
        pass

    def request_location(self) -> None:
        if self.provider is None or self.coordinate is None:
            return
        provider = self.provider
        fix = LocationFix(coordinate=self.coordinate)
        asyncio.get_running_loop().call_soon(provider.handle_location, fix)
