"""
Transport capability used by every stage: one confirmed request/response,
or a best-effort beacon send that is never awaited.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import aiohttp

from pavlovia_session.exceptions import TransportError

log = logging.getLogger(__name__)

FormData = dict[str, str]


@dataclass(frozen=True)
class Delivery:
    """Result of a dispatch: the response body, or None for a beacon send."""

    confirmed: bool
    body: Optional[str] = None


class Transport(ABC):
    """
    Issues single network requests for the session stages.

    Subclasses implement `request`; those able to send during shutdown also
    override `send_beacon` and `supports_beacon`.
    """

    @abstractmethod
    async def request(
        self, method: str, url: str, data: Optional[FormData] = None
    ) -> str:
        """
        Sends one request and returns the response body.

        Raises:
            TransportError: If the request fails or the status is not 2xx/3xx.
        """

    @property
    def supports_beacon(self) -> bool:
        return False

    def send_beacon(self, url: str, data: FormData) -> bool:
        """Queues a fire-and-forget POST. Returns False if it was not queued."""
        return False

    async def dispatch(
        self,
        method: str,
        url: str,
        data: Optional[FormData] = None,
        *,
        sync: bool = False,
        beacon_url: Optional[str] = None,
    ) -> Delivery:
        """
        Sends a request either confirmed or through the beacon.

        With `sync`, the beacon is tried first and the call returns at once
        without a response. When no beacon is available the request is sent
        and awaited as usual.
        """
        if sync and self.supports_beacon:
            if self.send_beacon(beacon_url or url, dict(data or {})):
                return Delivery(confirmed=False)
            log.debug(f"Beacon refused for {url}, sending a confirmed request.")

        body = await self.request(method, url, data)
        return Delivery(confirmed=True, body=body)

    async def close(self) -> None:
        """Releases any resources held by the transport."""


class AiohttpTransport(Transport):
    """Transport backed by a lazily created aiohttp ClientSession."""

    def __init__(self, timeout: float = 30.0, user_agent: Optional[str] = None):
        self.timeout = timeout
        self.user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None
        self._pending_beacons: set[asyncio.Task] = set()

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            headers = {"User-Agent": self.user_agent} if self.user_agent else None
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def request(
        self, method: str, url: str, data: Optional[FormData] = None
    ) -> str:
        session = await self._initialize_session()
        try:
            async with session.request(method.upper(), url, data=data) as r:
                if r.status >= 400:
                    raise TransportError(
                        f'Failed sending to: "{url}". {r.reason} ({r.status})',
                        data=await r.text(),
                    )
                return await r.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f'Failed sending to: "{url}". {e}') from e

    @property
    def supports_beacon(self) -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def send_beacon(self, url: str, data: FormData) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False

        task = loop.create_task(self._deliver_beacon(url, data))
        self._pending_beacons.add(task)
        task.add_done_callback(self._pending_beacons.discard)
        return True

    async def _deliver_beacon(self, url: str, data: FormData) -> None:
        try:
            await self.request("POST", url, data)
            log.debug(f"Beacon delivered to {url}")
        except TransportError as e:
            log.debug(f"Beacon to {url} failed: {e}")

    async def close(self) -> None:
        """Lets queued beacons finish, then closes the aiohttp session."""
        if self._pending_beacons:
            await asyncio.gather(*self._pending_beacons, return_exceptions=True)
        if self._session and not self._session.closed:
            await self._session.close()
