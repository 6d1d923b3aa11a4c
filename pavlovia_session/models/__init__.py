"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the
configuration, session and results structures used throughout the package.
"""

from .config import Configuration, ExperimentConfig, PavloviaConfig, ServerMessage
from .results import ResultsPayload, SaveResult
from .session import Session, SessionContext, SessionInfo, SessionState, SessionStatus
from .settings import ClientSettings

__all__ = [
    "ClientSettings",
    "Configuration",
    "ExperimentConfig",
    "PavloviaConfig",
    "ResultsPayload",
    "SaveResult",
    "ServerMessage",
    "Session",
    "SessionContext",
    "SessionInfo",
    "SessionState",
    "SessionStatus",
]
