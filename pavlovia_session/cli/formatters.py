"""
Functions for formatting and displaying data in the console using Rich.
"""

from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pavlovia_session.exceptions import PavloviaSessionError
from pavlovia_session.models.config import Configuration, ServerMessage
from pavlovia_session.models.results import SaveResult
from pavlovia_session.models.session import SessionState
from pavlovia_session.models.settings import ClientSettings


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check that config.json exists next to the experiment page.",
            "• It must define experiment.name, experiment.fullpath and pavlovia.URL.",
            "• Re-activate the experiment on pavlovia.org to regenerate it.",
        ],
        "NetworkError": [
            "• A network connection issue occurred.",
            "• The pavlovia.org server might be temporarily unavailable.",
            "• Results that were not uploaded are offered as a local download.",
        ],
        "ProtocolError": [
            "• The server answered with an unexpected response.",
            "• Check that pavlovia.URL points at a pavlovia server.",
        ],
        "SessionStateError": [
            "• A session can be opened and closed only once per run.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if isinstance(error, PavloviaSessionError) and error.data is not None:
        content.add_row()
        content.add_row(Text(f"Server data: {error.data}", style="dim"))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_settings(settings: ClientSettings):
    """Displays the current client settings."""
    console = Console()
    content = ""
    for key in sorted(ClientSettings.get_ini_keys()):
        content += f"{key} = {escape(str(getattr(settings, key)))}\n"

    source = settings.settings_path or "defaults"
    console.print(
        Panel(
            content.strip(),
            title=f"Settings ([dim]{escape(source)}[/dim])",
            border_style="cyan",
        )
    )


def print_experiment_config(config: Configuration, server_message: ServerMessage):
    """Displays a summary of the loaded experiment configuration."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Experiment:", escape(config.experiment.name))
    table.add_row("Full Path:", escape(config.experiment.fullpath))
    table.add_row("Server:", escape(config.pavlovia.url))
    table.add_row("Status:", escape(str(config.experiment.status or "unknown")))
    table.add_row(
        "Pilot Run:",
        "[yellow]✓ Yes[/yellow]" if server_message.is_pilot else "✗ No",
    )
    if server_message:
        table.add_row(
            "Server Message:", f"[dim]{escape(', '.join(sorted(server_message)))}[/dim]"
        )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Configuration[/bold green]",
            border_style="green",
        )
    )


def print_run_summary(
    state: SessionState,
    save_result: Optional[SaveResult],
    errors: list[Any],
):
    """Displays where the results went and the final session state."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Session:", state.value.upper())
    if save_result is None:
        table.add_row("Results:", "[red]✗ Not saved[/red]")
    elif save_result.uploaded:
        table.add_row("Results:", f"[green]✓ Uploaded[/green] {escape(save_result.key)}")
    else:
        location = save_result.location or save_result.key
        table.add_row("Results:", f"[yellow]↓ Downloaded[/yellow] {escape(str(location))}")
    table.add_row("Errors:", str(len(errors)))

    ok = save_result is not None and not errors
    console.print(
        Panel(
            table,
            title="[bold green]Run Complete[/bold green]"
            if ok
            else "[bold yellow]Run Complete With Issues[/bold yellow]",
            border_style="green" if ok else "yellow",
        )
    )
