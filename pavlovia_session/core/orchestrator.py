"""
The lifecycle orchestrator: configure and open a session at startup, save the
results and close the session at the end of the experiment.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Union

from pavlovia_session.api.transport import Transport
from pavlovia_session.exceptions import NetworkError, PavloviaSessionError
from pavlovia_session.models.results import SaveResult
from pavlovia_session.models.session import SessionContext, SessionInfo, SessionState
from pavlovia_session.models.settings import DEFAULT_CONFIG_URL
from pavlovia_session.storage.config_loader import ConfigLoader
from pavlovia_session.storage.download import DownloadOffer
from pavlovia_session.utils.structured_logger import (
    LifecycleLogger,
    create_structured_logger,
)

from .payload_router import PayloadRouter
from .session_manager import SessionManager

log = logging.getLogger(__name__)


class LifecycleOrchestrator:
    """
    Sequences configuration, session open, results save and session close.

    Failures are logged and recorded in `errors`, never raised: a reporting
    failure must not interrupt the experiment. `init` and `finish` each run
    at most once, and `finish` waits for a pending `init`.
    """

    def __init__(
        self,
        transport: Transport,
        download_offer: DownloadOffer,
        page_url: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now,
        lifecycle_logger: Optional[LifecycleLogger] = None,
    ):
        self.page_url = page_url
        self.context = SessionContext()
        self.config_loader = ConfigLoader(transport)
        self.session_manager = SessionManager(self.context, transport)
        self.payload_router = PayloadRouter(
            self.context, transport, download_offer, clock=clock
        )
        self.events = lifecycle_logger or create_structured_logger()[1]

        self.errors: list[PavloviaSessionError] = []
        self.session_info: Optional[SessionInfo] = None
        self.save_result: Optional[SaveResult] = None
        self._init_task: Optional[asyncio.Task] = None
        self._finish_started = False

    @property
    def state(self) -> SessionState:
        return self.session_manager.state

    def start(self, config_url: str = DEFAULT_CONFIG_URL) -> asyncio.Task:
        """Schedules `init` on the running event loop and returns its task."""
        if self._init_task is None:
            self._init_task = asyncio.get_running_loop().create_task(
                self._run_init(config_url)
            )
        return self._init_task

    async def init(self, config_url: str = DEFAULT_CONFIG_URL) -> None:
        """
        Loads the configuration and opens a session.

        On failure the experiment carries on without session tracking.
        """
        if self._init_task is not None:
            log.warning("init | already run, ignoring.")
            return
        await self.start(config_url)

    async def _run_init(self, config_url: str) -> None:
        try:
            config, server_message = await self.config_loader.load(
                config_url, self.page_url
            )
            self.context.configure(config, server_message)
            self.events.config_loaded(
                experiment=config.experiment.fullpath,
                server_url=config.pavlovia.url,
                pilot=server_message.is_pilot,
            )

            self.session_info = await self.session_manager.open()
            self.events.session_opened(
                experiment=config.experiment.fullpath,
                token=self.session_info.token,
                status=self.session_info.status,
            )
        except PavloviaSessionError as e:
            self._record_failure("init", e)
        except Exception:
            log.exception("init | failed unexpectedly")

    async def finish(self, data: Union[str, bytes]) -> None:
        """
        Saves the results and closes the session as completed.

        An upload that fails in transit falls back to a local download, and
        the session is still closed.
        """
        if self._finish_started:
            log.warning("finish | already run, ignoring.")
            return
        self._finish_started = True

        if self._init_task is not None:
            # a cancelled init must not cancel finish
            await asyncio.wait({self._init_task})
            if self._init_task.cancelled():
                log.warning("finish | init was cancelled before completing.")

        if self.context.configuration is None:
            log.error("finish | failed: the plugin was never configured.")
            return

        try:
            await self._save(data)
        except PavloviaSessionError as e:
            self._record_failure("save", e)
        except Exception:
            log.exception("finish | save failed unexpectedly")

        if self.state is not SessionState.OPEN:
            log.debug(f"finish | no session to close ({self.state.value}).")
            return

        try:
            info = await self.session_manager.close(is_completed=True, sync=False)
            self.events.session_closed(
                experiment=self.context.configuration.experiment.fullpath,
                is_completed=True,
                confirmed=info is not None,
            )
        except PavloviaSessionError as e:
            self._record_failure("finish", e)
        except Exception:
            log.exception("finish | failed unexpectedly")

    async def _save(self, data: Union[str, bytes]) -> None:
        try:
            result = await self.payload_router.save(data)
        except NetworkError as e:
            self._record_failure("save", e)
            result = await self.payload_router.offer_download(
                self.payload_router.build_payload(data)
            )

        self.save_result = result
        self.events.results_saved(
            key=result.key,
            uploaded=result.uploaded,
            confirmed=result.confirmed,
            message=result.message,
        )

    def _record_failure(self, stage: str, error: PavloviaSessionError) -> None:
        self.errors.append(error)
        self.events.stage_failed(stage=stage, **error.as_dict())
