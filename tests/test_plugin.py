from unittest.mock import MagicMock

import pytest

from conftest import SESSIONS_URL, open_response

from pavlovia_session.core.orchestrator import LifecycleOrchestrator
from pavlovia_session.models.session import SessionState
from pavlovia_session.models.settings import ClientSettings
from pavlovia_session.plugin import Pavlovia

CONFIG = "https://run.pavlovia.org/u/exp1/config.json"
SESSION_URL = f"{SESSIONS_URL}/tok123"


@pytest.mark.asyncio
async def test_plugin_exposes_logger_and_finish_task(
    transport, download_offer, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response())
    transport.add("POST", f"{SESSION_URL}/results", {})
    transport.add("DELETE", SESSION_URL, {})
    orchestrator = LifecycleOrchestrator(
        transport,
        download_offer,
        page_url="https://run.pavlovia.org/u/exp1/index.html",
        lifecycle_logger=MagicMock(),
    )

    pavlovia = Pavlovia(transport, download_offer, orchestrator=orchestrator)
    assert pavlovia.logger.type == "csv"
    assert pavlovia.finish == {"type": "postCsv"}

    await pavlovia.logger.send("iat", "a,b\n1,2", settings={}, ctx=None)
    await pavlovia.aclose()

    assert orchestrator.state is SessionState.CLOSED
    assert orchestrator.save_result.uploaded
    assert transport.closed


@pytest.mark.asyncio
async def test_plugin_from_settings_builds_aiohttp_stack(tmp_path):
    settings = ClientSettings(
        config_url=str(tmp_path / "missing.json"),
        downloads_dir=str(tmp_path / "downloads"),
    )

    async with Pavlovia.from_settings(settings) as pavlovia:
        await pavlovia.logger.send("iat", "a,b")

    # init failed on the missing config, so finish had nothing to act on
    assert pavlovia.orchestrator.state is SessionState.UNINITIALIZED
    assert len(pavlovia.orchestrator.errors) == 1
