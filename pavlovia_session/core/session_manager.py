"""
Opens and closes the experiment session on pavlovia.org and owns the
session state.
"""

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from pavlovia_session.api import endpoints
from pavlovia_session.api.transport import Transport
from pavlovia_session.exceptions import (
    NetworkError,
    ProtocolError,
    SessionStateError,
    TransportError,
)
from pavlovia_session.models.config import ExperimentConfig
from pavlovia_session.models.session import (
    Session,
    SessionContext,
    SessionInfo,
    SessionState,
    SessionStatus,
)

log = logging.getLogger(__name__)

_REQUIRED_OPEN_FIELDS = ("token", "experiment")


def parse_json_response(
    body: Optional[str], origin: str, context: str, allow_empty: bool = False
) -> Any:
    """Parses a JSON response body, raising ProtocolError if it is not JSON."""
    if allow_empty and not (body or "").strip():
        return {}
    try:
        return json.loads(body or "")
    except json.JSONDecodeError as e:
        raise ProtocolError(
            f"unexpected answer from server: {e}",
            origin=origin,
            context=context,
            data=body,
        ) from e


class SessionManager:
    """
    Drives the session through UNINITIALIZED -> OPEN -> CLOSED.

    There is no transition back: a closed session is never reopened and a
    failed open leaves the manager uninitialized.
    """

    def __init__(self, context: SessionContext, transport: Transport):
        self._context = context
        self._transport = transport

    @property
    def session(self) -> Optional[Session]:
        return self._context.session

    @property
    def state(self) -> SessionState:
        return self._context.state

    async def open(self) -> SessionInfo:
        """
        Opens a new session for the configured experiment.

        A pilot token found in the server message is forwarded so the server
        can tell test runs apart.

        Returns:
            The session token and the status reported by the server.

        Raises:
            SessionStateError: If a session was already opened.
            NetworkError: If the request fails.
            ProtocolError: If the response lacks the token or experiment.
        """
        config = self._context.require_configuration()
        origin = "_openSession"
        context = f"when opening a session for experiment: {config.experiment.fullpath}"

        if self.state is not SessionState.UNINITIALIZED:
            raise SessionStateError(
                f"a session is already {self.state.value}", origin=origin, context=context
            )

        form = None
        server_message = self._context.server_message
        if server_message is not None and server_message.is_pilot:
            form = {"pilotToken": server_message.pilot_token or ""}

        try:
            body = await self._transport.request(
                "POST", endpoints.sessions_url(config), data=form
            )
        except TransportError as e:
            raise NetworkError(e, origin=origin, context=context) from e

        data = parse_json_response(body, origin, context)
        if not isinstance(data, dict):
            raise ProtocolError(
                "unexpected answer from server: not an object",
                origin=origin,
                context=context,
                data=data,
            )
        for field in _REQUIRED_OPEN_FIELDS:
            if field not in data:
                raise ProtocolError(
                    f"unexpected answer from server: no {field}",
                    origin=origin,
                    context=context,
                    data=data,
                )
        experiment = data["experiment"]
        if not isinstance(experiment, dict):
            raise ProtocolError(
                "unexpected answer from server: malformed experiment",
                origin=origin,
                context=context,
                data=data,
            )

        # Server-side experiment metadata supersedes the configuration file.
        # It is validated as a whole before the configuration is touched.
        try:
            updated = ExperimentConfig.model_validate(
                {
                    **config.experiment.model_dump(by_alias=True),
                    "status": experiment.get("status2"),
                    "saveFormat": experiment.get("saveFormat"),
                    "saveIncompleteResults": experiment.get("saveIncompleteResults"),
                    "license": experiment.get("license"),
                }
            )
        except ValidationError as e:
            raise ProtocolError(
                f"unexpected answer from server: {e}",
                origin=origin,
                context=context,
                data=data,
            ) from e

        config.experiment = updated
        config.run_mode = experiment.get("runMode")

        session = Session(token=str(data["token"]), status=SessionStatus.OPEN)
        self._context.attach_session(session)

        log.debug(
            f"Session opened for '{config.experiment.fullpath}' "
            f"(experiment status: {config.experiment.status})"
        )
        return SessionInfo(
            origin=origin,
            context=context,
            token=session.token,
            status=data.get("status"),
        )

    async def close(
        self, is_completed: bool = True, sync: bool = False
    ) -> Optional[SessionInfo]:
        """
        Closes the open session.

        Args:
            is_completed: Whether the participant completed the experiment.
            sync: Send through the beacon without waiting for a response.
                Meant for shutdown, when nothing else will run afterwards.

        Returns:
            The server's answer, or None when the beacon was used.

        Raises:
            SessionStateError: If no session is open.
            NetworkError: If the confirmed request fails; the session stays OPEN.
        """
        config = self._context.require_configuration()
        origin = "_closeSession"
        context = f"when closing the session for experiment: {config.experiment.fullpath}"

        session = self.session
        if session is None or not session.is_open:
            raise SessionStateError(
                f"no open session to close (state: {self.state.value})",
                origin=origin,
                context=context,
            )

        url = endpoints.session_url(config, session.token)
        form = {"isCompleted": "true" if is_completed else "false"}

        try:
            delivery = await self._transport.dispatch(
                "DELETE", url, form, sync=sync, beacon_url=f"{url}/delete"
            )
        except TransportError as e:
            raise NetworkError(e, origin=origin, context=context) from e

        if not delivery.confirmed:
            session.status = SessionStatus.CLOSED
            log.debug("Session close handed to beacon; marked CLOSED.")
            return None

        data = parse_json_response(delivery.body, origin, context, allow_empty=True)
        session.status = SessionStatus.CLOSED
        log.debug(f"Session closed (completed={is_completed}).")
        return SessionInfo(
            origin=origin,
            context=context,
            token=session.token,
            status=session.status,
            data=data,
        )
