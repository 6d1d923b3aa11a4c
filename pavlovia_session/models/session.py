"""
Models describing a session on the hosting service and the context object
that threads configuration and session state through each stage.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict

from pavlovia_session.exceptions import SessionStateError

if TYPE_CHECKING:
    from .config import Configuration, ServerMessage


class SessionStatus(str, Enum):
    """Status of an opened session. A session is never reopened."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class SessionState(Enum):
    """Lifecycle of the session as seen by the session manager."""

    UNINITIALIZED = "uninitialized"
    OPEN = "open"
    CLOSED = "closed"


class Session(BaseModel):
    """A server-tracked recording context identified by an opaque token."""

    model_config = ConfigDict(validate_assignment=True)

    token: str
    status: SessionStatus = SessionStatus.OPEN

    @property
    def is_open(self) -> bool:
        return self.status == SessionStatus.OPEN


@dataclass
class SessionInfo:
    """Outcome of an open or close call."""

    origin: str
    context: str
    token: str
    status: Any = None
    data: Any = None


@dataclass
class SessionContext:
    """
    Explicit per-run state: the configuration, the server message and the
    session. Each orchestrator owns exactly one, so independent runs never
    share state.
    """

    configuration: Optional["Configuration"] = None
    server_message: Optional["ServerMessage"] = None
    session: Optional[Session] = field(default=None)

    def configure(
        self, configuration: "Configuration", server_message: "ServerMessage"
    ) -> None:
        self.configuration = configuration
        self.server_message = server_message

    def require_configuration(self) -> "Configuration":
        if self.configuration is None:
            raise SessionStateError(
                "the configuration has not been loaded",
                origin="_context",
                context="when accessing the experiment configuration",
            )
        return self.configuration

    def attach_session(self, session: Session) -> None:
        self.session = session
        if self.configuration is not None:
            self.configuration.session = session

    @property
    def state(self) -> SessionState:
        if self.session is None:
            return SessionState.UNINITIALIZED
        if self.session.is_open:
            return SessionState.OPEN
        return SessionState.CLOSED
