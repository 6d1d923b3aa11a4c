"""
Data structures for the results payload and the outcome of saving it.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

CSV_MIME_TYPE = "text/csv"


def format_results_timestamp(when: datetime) -> str:
    """Formats a local time as YYYY-MM-DD_HHhMM.SS.mmm."""
    millis = when.microsecond // 1000
    return when.strftime("%Y-%m-%d_%Hh%M.%S.") + f"{millis:03d}"


def build_results_key(experiment_name: str, when: datetime) -> str:
    return f"{experiment_name}_SESSION_{format_results_timestamp(when)}.csv"


@dataclass(frozen=True)
class ResultsPayload:
    """A serialized results blob and the key it is stored under."""

    key: str
    value: str
    mime_type: str = CSV_MIME_TYPE

    @classmethod
    def build(
        cls, experiment_name: str, data: Union[str, bytes], when: datetime
    ) -> "ResultsPayload":
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return cls(key=build_results_key(experiment_name, when), value=data)


@dataclass
class SaveResult:
    """
    Outcome of a save request.

    `uploaded` is False when the payload was offered as a local download
    instead; `confirmed` is False when the upload was handed to the beacon
    and no response will ever be seen.
    """

    origin: str
    context: str
    key: str
    uploaded: bool
    confirmed: bool
    message: str = ""
    data: Any = None
    location: Optional[Path] = None
