"""Error taxonomy and operation results."""

from enum import Enum

from pydantic import BaseModel, Field

from .weather import CityWeatherBundle


class ErrorKind(str, Enum):
    """Kinds of failure surfaced to callers."""

    LOCATION_NOT_FOUND = "location_not_found"
    INVALID_ADMINISTRATIVE_CODE = "invalid_administrative_code"
    NETWORK_ERROR = "network_error"
    DATA_PARSING_ERROR = "data_parsing_error"
    CITY_NOT_FOUND = "city_not_found"
    LOCATION_AUTHORIZATION_DENIED = "location_authorization_denied"
    LOCATION_AUTHORIZATION_TIMEOUT = "location_authorization_timeout"
    LOCATION_SERVICE_FAILED = "location_service_failed"
    NETWORK_UNAVAILABLE = "network_unavailable"
    THROTTLED = "throttled"
    MULTIPLE_ERRORS = "multiple_errors"
    API_ERROR = "api_error"
    MISSING_CREDENTIALS = "missing_credentials"
    CANCELLED = "cancelled"


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.LOCATION_NOT_FOUND: "Location not found",
    ErrorKind.INVALID_ADMINISTRATIVE_CODE: "Invalid region code",
    ErrorKind.NETWORK_ERROR: "Network error, please check your connection",
    ErrorKind.DATA_PARSING_ERROR: "Weather data could not be read",
    ErrorKind.CITY_NOT_FOUND: "City not found",
    ErrorKind.LOCATION_AUTHORIZATION_DENIED: "Location permission denied",
    ErrorKind.LOCATION_AUTHORIZATION_TIMEOUT: "Location permission request timed out",
    ErrorKind.LOCATION_SERVICE_FAILED: "Location service failed",
    ErrorKind.NETWORK_UNAVAILABLE: "Network unavailable",
    ErrorKind.THROTTLED: "Too many requests, please try again later",
    ErrorKind.MULTIPLE_ERRORS: "Several cities failed",
    ErrorKind.API_ERROR: "Weather service error",
    ErrorKind.MISSING_CREDENTIALS: "API key missing",
    ErrorKind.CANCELLED: "Request superseded",
}


class WeatherServiceError(Exception):
    """Raised by services after translating provider and transport failures."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        self.kind = kind
        self.message = message or ERROR_MESSAGES[kind]
        super().__init__(f"{kind.value}: {self.message}")


class FetchError(BaseModel):
    """A typed failure returned from a coordinator operation."""

    kind: ErrorKind
    message: str = ""
    errors: dict[str, "FetchError"] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, error: WeatherServiceError) -> "FetchError":
        return cls(kind=error.kind, message=error.message)

    @property
    def display_message(self) -> str:
        """User-facing text for this error."""
        if self.kind == ErrorKind.MULTIPLE_ERRORS and self.errors:
            details = "; ".join(
                f"{city}: {error.display_message}" for city, error in self.errors.items()
            )
            return f"{ERROR_MESSAGES[self.kind]}: {details}"
        if self.kind == ErrorKind.API_ERROR and self.message:
            return f"{ERROR_MESSAGES[self.kind]}: {self.message}"
        return ERROR_MESSAGES[self.kind]


class FetchResult(BaseModel):
    """Outcome of a single-city fetch."""

    city: str | None = None
    bundle: CityWeatherBundle | None = None
    error: FetchError | None = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.bundle is not None

    @classmethod
    def failure(
        cls, kind: ErrorKind, message: str = "", city: str | None = None
    ) -> "FetchResult":
        return cls(city=city, error=FetchError(kind=kind, message=message))


class BatchResult(BaseModel):
    """Outcome of a multi-city fetch."""

    bundles: dict[str, CityWeatherBundle] = Field(default_factory=dict)
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
