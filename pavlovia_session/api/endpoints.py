"""
URL builders for the pavlovia.org v2 session API.
"""

from urllib.parse import quote

from pavlovia_session.models.config import Configuration

# Characters left unescaped, matching a browser's encodeURIComponent
_URI_COMPONENT_SAFE = "!*'()"


def experiment_url(config: Configuration) -> str:
    base = config.pavlovia.url.rstrip("/")
    fullpath = quote(config.experiment.fullpath, safe=_URI_COMPONENT_SAFE)
    return f"{base}/api/v2/experiments/{fullpath}"


def sessions_url(config: Configuration) -> str:
    return f"{experiment_url(config)}/sessions"


def session_url(config: Configuration, token: str) -> str:
    return f"{sessions_url(config)}/{token}"


def results_url(config: Configuration, token: str) -> str:
    return f"{session_url(config, token)}/results"
