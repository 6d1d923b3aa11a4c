import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import SESSIONS_URL, open_response

from pavlovia_session.core.orchestrator import LifecycleOrchestrator
from pavlovia_session.exceptions import (
    ConfigurationError,
    NetworkError,
    ProtocolError,
    TransportError,
)
from pavlovia_session.models.session import SessionState

PAGE = "https://run.pavlovia.org/u/exp1/index.html"
CONFIG = "https://run.pavlovia.org/u/exp1/config.json"
SESSION_URL = f"{SESSIONS_URL}/tok123"
RESULTS_URL = f"{SESSION_URL}/results"
KEY = "exp1_SESSION_2024-01-01_12h00.00.000.csv"


def _orchestrator(transport, download_offer, fixed_clock, page_url=PAGE):
    return LifecycleOrchestrator(
        transport,
        download_offer,
        page_url=page_url,
        clock=fixed_clock,
        lifecycle_logger=MagicMock(),
    )


@pytest.mark.asyncio
async def test_full_lifecycle_uploads_and_closes(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response())
    transport.add("POST", RESULTS_URL, {})
    transport.add("DELETE", SESSION_URL, {})
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    await orchestrator.init()
    assert orchestrator.state is SessionState.OPEN

    await orchestrator.finish("a,b\n1,2")

    assert transport.requests == [
        ("GET", CONFIG, None),
        ("POST", SESSIONS_URL, None),
        ("POST", RESULTS_URL, {"key": KEY, "value": "a,b\n1,2"}),
        ("DELETE", SESSION_URL, {"isCompleted": "true"}),
    ]
    assert orchestrator.state is SessionState.CLOSED
    assert orchestrator.save_result.uploaded
    assert orchestrator.errors == []
    assert download_offer.offers == []


@pytest.mark.asyncio
async def test_init_failure_is_logged_not_raised(
    transport, download_offer, fixed_clock
):
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    await orchestrator.init()

    assert orchestrator.state is SessionState.UNINITIALIZED
    assert len(orchestrator.errors) == 1
    assert isinstance(orchestrator.errors[0], ConfigurationError)
    orchestrator.events.stage_failed.assert_called_once_with(
        stage="init", **orchestrator.errors[0].as_dict()
    )

    # finish without a configuration does nothing and raises nothing
    await orchestrator.finish("x")
    assert download_offer.offers == []


@pytest.mark.asyncio
async def test_failed_open_falls_back_to_download_without_close(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, {"status": "OPEN"})
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    await orchestrator.init()
    await orchestrator.finish("a,b")

    assert isinstance(orchestrator.errors[0], ProtocolError)
    assert download_offer.offers == [(KEY, "a,b", "text/csv")]
    assert all(method != "DELETE" for method, _, _ in transport.requests)


@pytest.mark.asyncio
async def test_upload_failure_offers_download_and_still_closes(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response())
    transport.add("POST", RESULTS_URL, TransportError("reset by peer"))
    transport.add("DELETE", SESSION_URL, {})
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    await orchestrator.init()
    await orchestrator.finish("a,b")

    assert [type(e) for e in orchestrator.errors] == [NetworkError]
    assert not orchestrator.save_result.uploaded
    assert download_offer.offers == [(KEY, "a,b", "text/csv")]
    assert orchestrator.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_plain_text_upload_answer_still_closes(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response())
    transport.add("POST", RESULTS_URL, "OK")
    transport.add("DELETE", SESSION_URL, {})
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    await orchestrator.init()
    await orchestrator.finish("a,b")

    assert [method for method, _, _ in transport.requests] == [
        "GET",
        "POST",
        "POST",
        "DELETE",
    ]
    assert orchestrator.state is SessionState.CLOSED
    assert orchestrator.save_result.uploaded
    assert orchestrator.save_result.data == "OK"
    assert orchestrator.errors == []
    assert download_offer.offers == []


@pytest.mark.asyncio
async def test_pilot_run_downloads_and_closes(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response())
    transport.add("DELETE", SESSION_URL, {})
    orchestrator = _orchestrator(
        transport, download_offer, fixed_clock, page_url=f"{PAGE}?__pilotToken=p1"
    )

    await orchestrator.init()
    await orchestrator.finish("a,b")

    assert transport.requests[1] == ("POST", SESSIONS_URL, {"pilotToken": "p1"})
    assert not orchestrator.save_result.uploaded
    assert orchestrator.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_close_failure_is_swallowed(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response())
    transport.add("POST", RESULTS_URL, {})
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    await orchestrator.init()
    await orchestrator.finish("a,b")

    assert [type(e) for e in orchestrator.errors] == [NetworkError]
    assert orchestrator.state is SessionState.OPEN


@pytest.mark.asyncio
async def test_finish_waits_for_scheduled_init(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response())
    transport.add("POST", RESULTS_URL, {})
    transport.add("DELETE", SESSION_URL, {})
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    task = orchestrator.start()
    await orchestrator.finish("a,b")

    assert task.done()
    assert [method for method, _, _ in transport.requests] == [
        "GET",
        "POST",
        "POST",
        "DELETE",
    ]


@pytest.mark.asyncio
async def test_finish_waits_for_concurrent_direct_init(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response())
    transport.add("POST", RESULTS_URL, {})
    transport.add("DELETE", SESSION_URL, {})
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    await asyncio.gather(orchestrator.init(), orchestrator.finish("a,b"))

    assert orchestrator.state is SessionState.CLOSED
    assert orchestrator.save_result.uploaded


@pytest.mark.asyncio
async def test_cancelled_init_does_not_escape_finish(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    task = orchestrator.start()
    task.cancel()
    await orchestrator.finish("a,b")

    assert task.cancelled()
    assert orchestrator.state is SessionState.UNINITIALIZED
    assert download_offer.offers == []


@pytest.mark.asyncio
async def test_init_and_finish_run_once(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response())
    transport.add("POST", RESULTS_URL, {})
    transport.add("DELETE", SESSION_URL, {})
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)

    await orchestrator.init()
    await orchestrator.init()
    await orchestrator.finish("a,b")
    await orchestrator.finish("a,b")

    assert len(transport.requests) == 4


@pytest.mark.asyncio
async def test_unexpected_error_never_escapes(
    transport, download_offer, fixed_clock, config_document
):
    transport.add("GET", CONFIG, config_document)
    transport.add("POST", SESSIONS_URL, open_response(status2="PILOTING"))
    orchestrator = _orchestrator(transport, download_offer, fixed_clock)
    download_offer.offer = MagicMock(side_effect=OSError("disk full"))

    await orchestrator.init()
    await orchestrator.finish("a,b")

    assert orchestrator.save_result is None
    assert orchestrator.state is SessionState.OPEN
