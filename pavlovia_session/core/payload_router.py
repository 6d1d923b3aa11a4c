"""
Routes the results payload either to the server or to a local download.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Union

from pavlovia_session.api import endpoints
from pavlovia_session.api.transport import Transport
from pavlovia_session.exceptions import NetworkError, ProtocolError, TransportError
from pavlovia_session.models.results import ResultsPayload, SaveResult
from pavlovia_session.models.session import SessionContext
from pavlovia_session.storage.download import DownloadOffer

from .session_manager import parse_json_response

log = logging.getLogger(__name__)

DOWNLOAD_MESSAGE = "offered the .csv file for download"


class PayloadRouter:
    """Decides, per save request, where the results go and builds their key."""

    def __init__(
        self,
        context: SessionContext,
        transport: Transport,
        download_offer: DownloadOffer,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._context = context
        self._transport = transport
        self._download_offer = download_offer
        self._clock = clock

    def build_payload(self, data: Union[str, bytes]) -> ResultsPayload:
        config = self._context.require_configuration()
        return ResultsPayload.build(config.experiment.name, data, self._clock())

    def skip_upload_reason(self) -> Optional[str]:
        """Returns why the payload cannot be uploaded, or None if it can."""
        config = self._context.require_configuration()
        server_message = self._context.server_message
        if not config.is_running:
            return f"experiment status is {config.experiment.status!r}, not RUNNING"
        if server_message is not None and server_message.is_pilot:
            return "this is a pilot run"
        if self._context.session is None or not self._context.session.is_open:
            return "no session is open"
        return None

    async def save(self, data: Union[str, bytes], sync: bool = False) -> SaveResult:
        """
        Saves the results.

        The payload is uploaded when the experiment is RUNNING, the run is not
        a pilot and a session is open. Otherwise it is offered as a download
        and the result says so.

        Raises:
            NetworkError: If the upload request fails.
        """
        payload = self.build_payload(data)
        reason = self.skip_upload_reason()
        if reason is None:
            return await self.upload(payload, sync=sync)

        log.info(f"Results not uploaded ({reason}).")
        return await self.offer_download(payload)

    async def upload(self, payload: ResultsPayload, sync: bool = False) -> SaveResult:
        config = self._context.require_configuration()
        session = self._context.session
        origin = "_uploadData"
        context = (
            "when uploading participant's results for experiment: "
            f"{config.experiment.fullpath}"
        )

        url = endpoints.results_url(config, session.token)
        form = {"key": payload.key, "value": payload.value}
        try:
            delivery = await self._transport.dispatch("POST", url, form, sync=sync)
        except TransportError as e:
            raise NetworkError(e, origin=origin, context=context) from e

        if not delivery.confirmed:
            return SaveResult(
                origin=origin,
                context=context,
                key=payload.key,
                uploaded=True,
                confirmed=False,
                message="results handed to the beacon",
            )

        # The server has taken the results; an unreadable answer is kept as is
        try:
            data = parse_json_response(
                delivery.body, origin, context, allow_empty=True
            )
        except ProtocolError:
            log.debug(f"Upload answer is not JSON: {delivery.body!r}")
            data = delivery.body
        log.debug(f"Uploaded '{payload.key}' ({len(payload.value)} chars)")
        return SaveResult(
            origin=origin,
            context=context,
            key=payload.key,
            uploaded=True,
            confirmed=True,
            message="results uploaded",
            data=data,
        )

    async def offer_download(self, payload: ResultsPayload) -> SaveResult:
        config = self._context.require_configuration()
        location = await self._download_offer.offer(
            payload.key, payload.value, payload.mime_type
        )
        return SaveResult(
            origin="_save",
            context=f"when saving results for experiment: {config.experiment.fullpath}",
            key=payload.key,
            uploaded=False,
            confirmed=True,
            message=DOWNLOAD_MESSAGE,
            location=location,
        )
