"""
Fetches and validates the experiment configuration document and extracts the
server message from the page URL.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urljoin, urlsplit

import aiofiles
from pydantic import ValidationError

from pavlovia_session.api.transport import Transport
from pavlovia_session.exceptions import ConfigurationError, TransportError
from pavlovia_session.models.config import Configuration, ServerMessage
from pavlovia_session.models.settings import DEFAULT_CONFIG_URL

log = logging.getLogger(__name__)

_REMOTE_SCHEMES = ("http", "https")


def resolve_config_url(config_url: str, page_url: Optional[str] = None) -> str:
    """Resolves a possibly relative configuration URL against the page URL."""
    if page_url:
        return urljoin(page_url, config_url)
    return config_url


def describe_validation_error(error: ValidationError) -> str:
    """
    Turns the first pydantic error into a message naming the missing field
    and its block, e.g. 'missing fullpath in experiment block in configuration'.
    """
    first = error.errors()[0]
    loc = [str(part) for part in first["loc"]]
    if first["type"] == "missing":
        if len(loc) == 1:
            return f"missing {loc[0]} block in configuration"
        return f"missing {loc[-1]} in {loc[0]} block in configuration"
    where = ".".join(loc) or "root"
    return f"invalid {where} in configuration: {first['msg']}"


class ConfigLoader:
    """Loads the configuration document written when the experiment was activated."""

    def __init__(self, transport: Transport):
        self._transport = transport

    async def load(
        self, config_url: str = DEFAULT_CONFIG_URL, page_url: Optional[str] = None
    ) -> tuple[Configuration, ServerMessage]:
        """
        Fetches, parses and validates the configuration.

        Args:
            config_url: Location of the configuration, relative to the page URL.
            page_url: URL of the page hosting the experiment, if any.

        Returns:
            The validated configuration and the server message of the page.

        Raises:
            ConfigurationError: If the document cannot be fetched, is not JSON,
            or lacks a required field.
        """
        origin = "_configure"
        context = "when configuring the plugin"

        document = await self._get_configuration(config_url, page_url)

        try:
            config = Configuration.model_validate(document)
        except ValidationError as e:
            raise ConfigurationError(
                describe_validation_error(e), origin=origin, context=context
            ) from e

        server_message = ServerMessage.from_url(page_url)
        if server_message:
            log.debug(f"Server message parameters: {sorted(server_message)}")

        log.debug(
            f"Configured experiment '{config.experiment.fullpath}' "
            f"against {config.pavlovia.url}"
        )
        return config, server_message

    async def _get_configuration(
        self, config_url: str, page_url: Optional[str]
    ) -> dict[str, Any]:
        url = resolve_config_url(config_url, page_url)
        origin = "_getConfiguration"
        context = f"when reading the configuration file: {url}"

        try:
            text = await self._read_document(url)
        except (TransportError, OSError) as e:
            raise ConfigurationError(e, origin=origin, context=context) from e

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"configuration is not valid JSON: {e}", origin=origin, context=context
            ) from e

        if not isinstance(document, dict):
            raise ConfigurationError(
                "configuration must be a JSON object", origin=origin, context=context
            )
        return document

    async def _read_document(self, url: str) -> str:
        parts = urlsplit(url)
        if parts.scheme in _REMOTE_SCHEMES:
            return await self._transport.request("GET", url)

        path = Path(unquote(parts.path)) if parts.scheme == "file" else Path(url)
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()
