"""
Shared fixtures: an in-memory transport that records requests and a
download offer that keeps offered files in memory.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytest

from pavlovia_session.api.transport import Transport
from pavlovia_session.exceptions import TransportError
from pavlovia_session.models.config import Configuration, ServerMessage
from pavlovia_session.models.session import SessionContext
from pavlovia_session.storage.download import DownloadOffer

SERVER = "https://pavlovia.org"
SESSIONS_URL = f"{SERVER}/api/v2/experiments/u%2Fexp1/sessions"


class FakeTransport(Transport):
    """Answers requests from a route table and records every call."""

    def __init__(self, beacon: bool = False):
        self.routes: dict[tuple[str, str], object] = {}
        self.requests: list[tuple[str, str, Optional[dict]]] = []
        self.beacons: list[tuple[str, dict]] = []
        self.beacon = beacon
        self.closed = False

    def add(self, method: str, url: str, response: object) -> None:
        """Registers a response: a str/dict body, or an exception to raise."""
        self.routes[(method.upper(), url)] = response

    async def request(self, method, url, data=None):
        self.requests.append((method.upper(), url, data))
        response = self.routes.get((method.upper(), url))
        if response is None:
            raise TransportError(f'Failed sending to: "{url}". Not Found (404)')
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response

    @property
    def supports_beacon(self):
        return self.beacon

    def send_beacon(self, url, data):
        self.beacons.append((url, data))
        return True

    async def close(self):
        self.closed = True


class MemoryDownloadOffer(DownloadOffer):
    def __init__(self):
        self.offers: list[tuple[str, str, str]] = []

    async def offer(self, filename, data, mime_type):
        self.offers.append((filename, data, mime_type))
        return Path("downloads") / filename


def open_response(status2="RUNNING", token="tok123"):
    return {
        "token": token,
        "status": "OPEN",
        "experiment": {
            "status2": status2,
            "saveFormat": "CSV",
            "saveIncompleteResults": True,
            "license": "CC-BY-4.0",
            "runMode": "RUN",
        },
    }


@pytest.fixture
def config_document():
    return {
        "experiment": {"name": "exp1", "fullpath": "u/exp1", "status": "RUNNING"},
        "pavlovia": {"URL": SERVER},
    }


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def download_offer():
    return MemoryDownloadOffer()


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 1, 1, 12, 0, 0, 0)


@pytest.fixture
def context(config_document):
    ctx = SessionContext()
    ctx.configure(Configuration.model_validate(config_document), ServerMessage())
    return ctx


@pytest.fixture
def pilot_context(config_document):
    ctx = SessionContext()
    ctx.configure(
        Configuration.model_validate(config_document),
        ServerMessage.from_query("__pilotToken=p1"),
    )
    return ctx
