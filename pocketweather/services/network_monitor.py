"""Network stability tracking."""

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[bool]]


def http_probe(url: str, timeout: float = 5.0) -> Probe:
    """Probe that succeeds when the URL answers HTTP 200."""

    async def probe() -> bool:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.get(url)
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Network probe failed: {e}")
            return False

    return probe


class NetworkStabilityMonitor:
    """Trusts the network only after several consecutive good checks."""

    def __init__(
        self,
        probe: Probe,
        required_stable_count: int = 2,
        interval: float = 1.0,
    ):
        self.probe = probe
        self.required_stable_count = required_stable_count
        self.interval = interval
        self.stable_count = 0
        self.is_stable = False
        self.is_connected = False
        self._task: asyncio.Task | None = None

    def record(self, ok: bool) -> None:
        """Feed one connectivity observation into the state machine."""
        was_stable = self.is_stable
        self.is_connected = ok
        if ok:
            self.stable_count += 1
            if self.stable_count >= self.required_stable_count:
                self.is_stable = True
        else:
            self.stable_count = 0
            self.is_stable = False

        if self.is_stable != was_stable:
            logger.info("Network stable" if self.is_stable else "Network unstable")

    async def check(self) -> bool:
        """Run the probe once and record the outcome."""
        try:
            ok = await self.probe()
        except Exception as e:
            logger.warning(f"Network probe raised: {e}")
            ok = False
        self.record(ok)
        return self.is_stable

    async def run(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Begin periodic checks in the background."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
