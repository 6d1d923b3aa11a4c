"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import aiofiles
import typer
from rich.console import Console
from rich.logging import RichHandler

from pavlovia_session import __version__
from pavlovia_session.api.transport import AiohttpTransport
from pavlovia_session.models.settings import ClientSettings
from pavlovia_session.plugin import Pavlovia
from pavlovia_session.storage.config_loader import ConfigLoader
from pavlovia_session.storage.settings_manager import SettingsManager

from .formatters import print_experiment_config, print_run_summary, print_settings

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("pavlovia_session")

app = typer.Typer(
    name="pavlovia-session",
    help=(
        "Record experiment results on pavlovia.org: open a session, upload the"
        " results and close the session."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_settings_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "pavlovia-session"


SETTINGS_FILE = get_settings_dir() / "settings.ini"


def _load_settings(settings_file: Optional[Path], **cli_options) -> ClientSettings:
    return SettingsManager(settings_file or SETTINGS_FILE).load_settings(cli_options)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """pavlovia.org session client"""
    if version:
        console.print(
            f"[bold]pavlovia-session[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("pavlovia_session").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def run(
    results_file: Path = typer.Argument(  # noqa: B008
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="CSV file holding the serialized results of the run.",
    ),
    config_url: Optional[str] = typer.Option(
        None, "--config", "-c", help="Location of config.json (default: config.json)."
    ),
    page_url: Optional[str] = typer.Option(
        None,
        "--page-url",
        help="URL of the experiment page; its __ parameters are server messages.",
    ),
    downloads_dir: Optional[str] = typer.Option(
        None, "--downloads-dir", "-d", help="Where results are offered for download."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Request timeout in seconds."
    ),
    settings_file: Optional[Path] = typer.Option(  # noqa: B008
        None, "--settings", help="Path to an INI settings file."
    ),
):
    """Open a session, submit the results file and close the session."""
    settings = _load_settings(
        settings_file,
        config_url=config_url,
        page_url=page_url,
        downloads_dir=downloads_dir,
        request_timeout=timeout,
    )

    async def _run_async():
        async with aiofiles.open(results_file, "r", encoding="utf-8") as f:
            serialized = await f.read()

        async with Pavlovia.from_settings(settings) as pavlovia:
            await pavlovia.logger.send(results_file.stem, serialized)
            orchestrator = pavlovia.orchestrator

        print_run_summary(orchestrator.state, orchestrator.save_result, orchestrator.errors)
        if orchestrator.save_result is None:
            raise typer.Exit(code=1)

    asyncio.run(_run_async())


@app.command("show-config")
def show_config(
    config_url: Optional[str] = typer.Option(
        None, "--config", "-c", help="Location of config.json (default: config.json)."
    ),
    page_url: Optional[str] = typer.Option(None, "--page-url", help="Experiment page URL."),
    settings_file: Optional[Path] = typer.Option(  # noqa: B008
        None, "--settings", help="Path to an INI settings file."
    ),
):
    """Validate the experiment configuration and display it."""
    settings = _load_settings(settings_file, config_url=config_url, page_url=page_url)
    print_settings(settings)

    async def _show_async():
        transport = AiohttpTransport(
            timeout=settings.request_timeout, user_agent=settings.user_agent
        )
        try:
            return await ConfigLoader(transport).load(
                settings.config_url, settings.page_url or None
            )
        finally:
            await transport.close()

    config, server_message = asyncio.run(_show_async())
    print_experiment_config(config, server_message)
