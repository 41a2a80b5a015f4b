"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from asset_refresher.models.config import RefreshConfig
from asset_refresher.utils.formatting import format_size, format_timestamp


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `asset-refresher init <URL> <ASSET_PATH>` to create a config.",
            "• Use `asset-refresher validate` to see which setting is rejected.",
        ],
        "NetworkUnavailableError": [
            "• Check your internet connection.",
            "• Re-run with --watch to download as soon as the network returns.",
        ],
        "TransferFailedError": [
            "• The download URL may be unreachable or return an error.",
            "• Verify `download_url` in the configuration file.",
        ],
        "PromotionFailedError": [
            "• Check that the asset directory is writable.",
            "• Make sure no other process holds the asset file open.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The origin server might be temporarily unavailable.",
        ],
        "TimeoutError": [
            "• The server took too long to answer.",
            "• Increase `request_timeout` in the configuration file.",
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

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the raw configuration file contents."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: RefreshConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Download URL:", config.download_url)
    table.add_row("Asset Path:", f"[dim]{config.asset_path}[/dim]")
    table.add_row("Preload Path:", f"[dim]{config.preload_path or '-'}[/dim]")
    table.add_row("Probe URL:", config.effective_probe_url)
    table.add_row("Poll Interval:", f"{config.poll_interval:g}s")
    table.add_row("Request Timeout:", f"{config.request_timeout:g}s")
    table.add_row("Max Attempts:", str(config.max_attempts))
    table.add_row("Cleanup Delay:", f"{config.cleanup_delay:g}s")
    table.add_row(
        "Event Log:", f"[dim]{config.log_dir}[/dim]" if config.log_dir else "✗ Disabled"
    )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_asset_status(config: RefreshConfig):
    """Shows whether the canonical and preloaded copies exist on disk."""
    console = Console()
    table = Table(header_style="bold magenta", padding=(0, 2))
    table.add_column("Copy")
    table.add_column("Path", style="dim")
    table.add_column("Present")
    table.add_column("Size", justify="right")
    table.add_column("Modified")

    rows = [("Canonical", config.asset_path)]
    if config.preload_path:
        rows.append(("Preload", config.preload_path))

    for label, raw_path in rows:
        path = Path(raw_path)
        if path.is_file():
            stat = path.stat()
            table.add_row(
                label,
                str(path),
                "[green]✓[/green]",
                format_size(stat.st_size),
                format_timestamp(stat.st_mtime),
            )
        else:
            table.add_row(label, str(path), "[red]✗[/red]", "-", "-")

    console.print(Panel(table, title="[bold cyan]Asset Status[/bold cyan]", expand=False))
