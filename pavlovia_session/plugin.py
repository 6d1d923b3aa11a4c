"""
Host-runtime facade exposing the two capabilities an experiment runtime
needs: a csv logger that submits the serialized results, and a finish task.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

from pavlovia_session.api.transport import AiohttpTransport, Transport
from pavlovia_session.core.orchestrator import LifecycleOrchestrator
from pavlovia_session.models.settings import ClientSettings
from pavlovia_session.storage.download import DirectoryDownloadOffer, DownloadOffer
from pavlovia_session.utils.structured_logger import create_structured_logger

log = logging.getLogger(__name__)


class CsvLogger:
    """Logger settings handed to the host: results are posted as csv."""

    type = "csv"

    def __init__(self, orchestrator: LifecycleOrchestrator):
        self._orchestrator = orchestrator

    async def send(
        self,
        name: str,
        serialized: Union[str, bytes],
        settings: Any = None,
        ctx: Any = None,
    ) -> None:
        """Called by the host with the serialized results of the run."""
        log.debug(f"Received results from logger '{name}'")
        await self._orchestrator.finish(serialized)


class Pavlovia:
    """
    Creates the session lifecycle for one run.

    Instantiating it schedules `init` on the running event loop, as the
    host expects the session to be opening while the experiment starts.
    """

    def __init__(
        self,
        transport: Transport,
        download_offer: DownloadOffer,
        config_url: str = "config.json",
        page_url: Optional[str] = None,
        orchestrator: Optional[LifecycleOrchestrator] = None,
    ):
        self.transport = transport
        self.orchestrator = orchestrator or LifecycleOrchestrator(
            transport, download_offer, page_url=page_url
        )
        self.logger = CsvLogger(self.orchestrator)
        self.finish = {"type": "postCsv"}
        self.orchestrator.start(config_url)

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "Pavlovia":
        """Builds the default aiohttp transport and directory download from settings."""
        transport = AiohttpTransport(
            timeout=settings.request_timeout, user_agent=settings.user_agent
        )
        log_dir = Path(settings.log_dir) if settings.log_dir else None
        _, events = create_structured_logger(log_dir, enable_json=log_dir is not None)
        download_offer = DirectoryDownloadOffer(Path(settings.downloads_dir))
        orchestrator = LifecycleOrchestrator(
            transport,
            download_offer,
            page_url=settings.page_url or None,
            lifecycle_logger=events,
        )
        return cls(
            transport,
            download_offer,
            config_url=settings.config_url,
            orchestrator=orchestrator,
        )

    async def aclose(self) -> None:
        """Closes the transport, letting queued beacons finish first."""
        await self.transport.close()
        self.orchestrator.events.logger.close()

    async def __aenter__(self) -> "Pavlovia":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
