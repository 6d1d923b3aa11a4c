"""
Local download fallback: hands the results to the participant as a file
when they are not uploaded to the server.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles

log = logging.getLogger(__name__)


class DownloadOffer(ABC):
    """Capability that offers data to the user as a file download."""

    @abstractmethod
    async def offer(self, filename: str, data: str, mime_type: str) -> Optional[Path]:
        """Offers `data` under `filename`. Returns where it ended up, if known."""


class DirectoryDownloadOffer(DownloadOffer):
    """Writes offered files into a downloads directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    async def offer(self, filename: str, data: str, mime_type: str) -> Optional[Path]:
        await asyncio.to_thread(self.directory.mkdir, parents=True, exist_ok=True)
        destination = self.directory / Path(filename).name

        async with aiofiles.open(destination, "w", encoding="utf-8", newline="") as f:
            await f.write(data)

        log.debug(f"Offered '{destination.name}' ({mime_type}) in {self.directory}")
        return destination
