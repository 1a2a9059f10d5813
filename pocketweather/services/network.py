"""Single entry point for outbound HTTP calls.

Identical URLs share one in-flight request, are refused when repeated
within the minimum spacing, and at most a fixed number of distinct requests
run at once.
"""

import asyncio
import logging
import time
from typing import Any, Callable

import httpx

from ..models.config import NetworkConfig
from ..models.result import ErrorKind, WeatherServiceError

logger = logging.getLogger(__name__)

USER_AGENT = "pocketweather/0.1"


class NetworkGateway:
    """Rate-limited, de-duplicating async HTTP gateway."""

    def __init__(
        self,
        config: NetworkConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or NetworkConfig()
        self._transport = transport
        self._clock = clock
        self._client = self._create_client()
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)
        self._in_flight: dict[str, asyncio.Task[httpx.Response]] = {}
        self._last_request: dict[str, float] = {}
        self._maintenance_task: asyncio.Task | None = None

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=httpx.Timeout(self.config.request_timeout_seconds),
            transport=self._transport,
        )

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """GET a URL, sharing an identical in-flight request if there is one.

        Raises:
            WeatherServiceError: ``throttled`` when the same URL completed less
                than the minimum interval ago, ``network_error`` on transport
                failure.
        """
        request_url = str(httpx.URL(url, params=params))

        async with self._lock:
            task = self._in_flight.get(request_url)
            if task is not None:
                logger.debug(f"Reusing in-flight request: {request_url}")
            else:
                last = self._last_request.get(request_url)
                if last is not None:
                    elapsed = self._clock() - last
                    if elapsed < self.config.min_request_interval_seconds:
                        wait = self.config.min_request_interval_seconds - elapsed
                        logger.debug(f"Throttled {request_url}, retry in {wait:.1f}s")
                        raise WeatherServiceError(
                            ErrorKind.THROTTLED, f"Request repeated too soon, retry in {wait:.1f}s"
                        )
                task = asyncio.create_task(self._perform(request_url))
                self._in_flight[request_url] = task

        # Shield so one caller giving up does not cancel the shared request
        return await asyncio.shield(task)

    async def _perform(self, request_url: str) -> httpx.Response:
        try:
            async with self._semaphore:
                logger.debug(f"Sending request: {request_url}")
                try:
                    response = await asyncio.wait_for(
                        self._client.get(request_url),
                        timeout=self.config.resource_timeout_seconds,
                    )
                except (httpx.TimeoutException, asyncio.TimeoutError):
                    logger.warning(f"Request timed out: {request_url}")
                    raise WeatherServiceError(ErrorKind.NETWORK_ERROR, "Request timeout")
                except httpx.HTTPError as e:
                    logger.warning(f"Request failed: {request_url}: {e}")
                    raise WeatherServiceError(ErrorKind.NETWORK_ERROR, f"Connection error: {e}")

            async with self._lock:
                self._last_request[request_url] = self._clock()
            return response
        finally:
            async with self._lock:
                self._in_flight.pop(request_url, None)

    async def purge_stale(self) -> int:
        """Drop request timestamps older than the bookkeeping TTL."""
        now = self._clock()
        async with self._lock:
            stale = [
                url
                for url, stamp in self._last_request.items()
                if now - stamp >= self.config.buffer_ttl_seconds
            ]
            for url in stale:
                del self._last_request[url]
        if stale:
            logger.debug(f"Purged {len(stale)} request timestamps")
        return len(stale)

    async def recycle_session(self) -> None:
        """Replace the underlying HTTP client."""
        old_client = self._client
        self._client = self._create_client()
        await old_client.aclose()
        logger.debug("HTTP session recycled")

    async def _maintenance_loop(self) -> None:
        cleanup_every = self.config.cleanup_interval_seconds
        recycle_every = self.config.session_recycle_seconds
        since_recycle = 0.0
        while True:
            await asyncio.sleep(cleanup_every)
            await self.purge_stale()
            since_recycle += cleanup_every
            if since_recycle >= recycle_every:
                since_recycle = 0.0
                await self.recycle_session()

    def start(self) -> None:
        """Start periodic bookkeeping purge and session recycling."""
        if self._maintenance_task is None or self._maintenance_task.done():
            self._maintenance_task = asyncio.create_task(self._maintenance_loop())

    async def cancel_all(self) -> None:
        """Cancel every in-flight request."""
        async with self._lock:
            tasks = list(self._in_flight.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def aclose(self) -> None:
        """Stop maintenance, cancel requests and close the client."""
        if self._maintenance_task is not None:
            self._maintenance_task.cancel()
            await asyncio.gather(self._maintenance_task, return_exceptions=True)
            self._maintenance_task = None
        await self.cancel_all()
        await self._client.aclose()

    async def __aenter__(self) -> "NetworkGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
