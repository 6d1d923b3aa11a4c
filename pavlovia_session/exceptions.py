"""
Defines custom exceptions for the session lifecycle so that every stage can
report where and against which experiment a failure occurred.
"""

from typing import Any, Optional


class PavloviaSessionError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        error: The underlying cause (a message or another exception).
        origin: The stage that failed, e.g. '_openSession'.
        context: A human-readable description of what was being attempted.
        data: Any partial data received before the failure.
    """

    def __init__(
        self,
        error: Any,
        origin: Optional[str] = None,
        context: Optional[str] = None,
        data: Any = None,
    ):
        self.error = error
        self.origin = origin
        self.context = context
        self.data = data
        super().__init__(self._compose_message())

    def _compose_message(self) -> str:
        message = str(self.error)
        if self.context:
            message = f"{self.context}: {message}"
        if self.origin:
            message = f"[{self.origin}] {message}"
        return message

    def as_dict(self) -> dict[str, Any]:
        """Returns the {origin, context, error} triple used in log records."""
        return {"origin": self.origin, "context": self.context, "error": str(self.error)}


class TransportError(PavloviaSessionError):
    """Raised by a transport when a single request cannot be completed."""


class ConfigurationError(PavloviaSessionError):
    """Raised when the configuration cannot be fetched, parsed, or validated."""


class NetworkError(PavloviaSessionError):
    """Raised when opening, uploading to, or closing a session fails in transit."""


class ProtocolError(PavloviaSessionError):
    """Raised when a server response lacks fields the protocol requires."""


class SessionStateError(PavloviaSessionError):
    """Raised when an operation is not allowed in the current session state."""
