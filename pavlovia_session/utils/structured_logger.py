"""
Structured logging system for the session lifecycle.
Provides key=value console records and optional JSON-lines files.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from pavlovia_session import __version__

LOG_PREFIX = f"pavlovia {__version__} |"


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable records.

    Usage:
        logger = StructuredLogger("pavlovia_session")
        logger.info("session_opened", experiment="u/exp1", token="abc")
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"pavlovia_session_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Run context (added to all log entries)
        self._run_context: dict[str, Any] = {
            "run_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_run_context(self, **kwargs) -> None:
        """Set run-level context that appears in all JSON records."""
        self._run_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        """Format message for console output."""
        parts = [LOG_PREFIX, event]
        for key, value in context.items():
            if key not in ("level", "timestamp"):
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        """Write structured log entry to JSON file."""
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._run_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, TypeError, ValueError) as e:
            # Fallback to stderr if JSON logging fails
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _emit(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def info(self, event: str, **context) -> None:
        """Log info event."""
        self._emit(logging.INFO, event, **context)

    def error(self, event: str, **context) -> None:
        """Log error event."""
        self._emit(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()


class LifecycleLogger:
    """Specialized logger for session lifecycle events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def config_loaded(self, experiment: str, server_url: str, pilot: bool):
        """Log the loaded configuration and tag later records with the experiment."""
        self.logger.set_run_context(experiment=experiment)
        self.logger.info(
            "config_loaded", experiment=experiment, server_url=server_url, pilot=pilot
        )

    def session_opened(self, experiment: str, token: str, status: Any):
        self.logger.info(
            "session_opened", experiment=experiment, token=token, status=status
        )

    def results_saved(self, key: str, uploaded: bool, confirmed: bool, message: str):
        """Log where the results went."""
        self.logger.info(
            "results_saved",
            key=key,
            uploaded=uploaded,
            confirmed=confirmed,
            message=message,
        )

    def session_closed(self, experiment: str, is_completed: bool, confirmed: bool):
        self.logger.info(
            "session_closed",
            experiment=experiment,
            is_completed=is_completed,
            confirmed=confirmed,
        )

    def stage_failed(self, stage: str, origin: str | None, context: str | None, error: str):
        """Log a failed lifecycle stage."""
        self.logger.error(
            "stage_failed", stage=stage, origin=origin, context=context, error=error
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, LifecycleLogger]:
    """
    Create the structured loggers.

    Returns:
        Tuple of (base_logger, lifecycle_logger)
    """
    base = StructuredLogger("pavlovia_session", log_dir=log_dir, enable_json=enable_json)
    return base, LifecycleLogger(base)
