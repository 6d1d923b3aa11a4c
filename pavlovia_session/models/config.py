"""
Pydantic models for the experiment configuration document and the
server message carried in the page URL.
"""

from collections.abc import Iterator, Mapping
from typing import Any, Optional
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .session import Session

# Query-string keys starting with this prefix are addressed to the plugin
SERVER_MESSAGE_PREFIX = "__"
PILOT_TOKEN_KEY = "__pilotToken"

EXPERIMENT_RUNNING = "RUNNING"


class ExperimentConfig(BaseModel):
    """The 'experiment' block of the configuration."""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        validate_assignment=True,
        coerce_numbers_to_str=True,
    )

    # Only presence is required; an empty name still yields a results key
    name: str
    fullpath: str
    status: Optional[str] = None
    save_format: Any = Field(default=None, alias="saveFormat")
    save_incomplete_results: Optional[bool] = Field(
        default=None, alias="saveIncompleteResults"
    )
    license: Any = None


class PavloviaConfig(BaseModel):
    """The 'pavlovia' block of the configuration."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    url: str = Field(alias="URL")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class Configuration(BaseModel):
    """
    A validated experiment configuration.

    Created once per run by the configuration loader. The session opened for
    this experiment is attached to it once available.
    """

    model_config = ConfigDict(
        extra="allow", populate_by_name=True, validate_assignment=True
    )

    experiment: ExperimentConfig
    pavlovia: PavloviaConfig
    run_mode: Any = Field(default=None, alias="runMode")
    session: Optional[Session] = None

    @property
    def is_running(self) -> bool:
        return self.experiment.status == EXPERIMENT_RUNNING


class ServerMessage(Mapping[str, str]):
    """
    Read-only view of the reserved query-string parameters of the page URL.

    Only keys starting with a double underscore are kept, matched
    case-sensitively. A repeated key keeps its last value.
    """

    def __init__(self, params: Optional[Mapping[str, str]] = None):
        self._params: dict[str, str] = dict(params or {})

    @classmethod
    def from_url(cls, page_url: Optional[str]) -> "ServerMessage":
        if not page_url:
            return cls()
        query = urlsplit(page_url).query
        return cls.from_query(query)

    @classmethod
    def from_query(cls, query: str) -> "ServerMessage":
        params = {
            key: value
            for key, value in parse_qsl(query.lstrip("?"), keep_blank_values=True)
            if key.startswith(SERVER_MESSAGE_PREFIX)
        }
        return cls(params)

    def __getitem__(self, key: str) -> str:
        return self._params[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def __repr__(self) -> str:
        return f"ServerMessage({self._params!r})"

    @property
    def pilot_token(self) -> Optional[str]:
        return self._params.get(PILOT_TOKEN_KEY)

    @property
    def is_pilot(self) -> bool:
        """A run is a pilot as soon as the pilot token key is present."""
        return PILOT_TOKEN_KEY in self._params
