"""
Core session engine.

The `LifecycleOrchestrator` sequences the stages; the `SessionManager` owns
the session and the `PayloadRouter` decides where the results go.
"""

from .orchestrator import LifecycleOrchestrator
from .payload_router import PayloadRouter
from .session_manager import SessionManager

__all__ = ["LifecycleOrchestrator", "PayloadRouter", "SessionManager"]
