"""
Defines the command-line host for the refresh coordinator using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from asset_refresher import __version__
from asset_refresher.core.coordinator import RefreshCoordinator
from asset_refresher.exceptions import (
    AssetRefresherError,
    NetworkUnavailableError,
    TransferFailedError,
)
from asset_refresher.media.downloader import Downloader
from asset_refresher.media.jobs import DownloadJobSubmitter
from asset_refresher.models.config import RefreshConfig
from asset_refresher.models.state import CoordinatorState
from asset_refresher.network.monitor import NetworkMonitor
from asset_refresher.network.revalidation import RevalidationChecker
from asset_refresher.storage.config_manager import ConfigManager
from asset_refresher.utils.structured_logger import create_structured_logger

from .formatters import (
    format_error_with_suggestions,
    print_asset_status,
    print_config,
    print_validation_table,
)

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
log = logging.getLogger("asset_refresher")

app = typer.Typer(
    name="asset-refresher",
    help=(
        "Keeps a single remote asset downloaded and fresh. Use 'asset-refresher"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "asset-refresher"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


class ConsoleResultListener:
    """Prints coordinator outcomes to the console."""

    def __init__(self):
        self.downloads = 0
        self.errors = 0

    def on_file_downloaded(self, path: str) -> None:
        self.downloads += 1
        console.print(f"[bold green]✓ Asset ready:[/bold green] {path}")

    def on_error(self) -> None:
        self.errors += 1
        console.print(
            "[yellow]⚠️  Asset not available yet and there is no network "
            "connection.[/yellow]"
        )


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
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Asset Refresher CLI"""
    if version:
        console.print(
            f"[bold]asset-refresher[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("asset_refresher").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]asset-refresher init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        print_config(CONFIG_FILE, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    download_url: str = typer.Argument(..., help="URL the asset is fetched from."),
    asset_path: Path = typer.Argument(  # noqa: B008
        ..., help="Where the asset must live locally."
    ),
    preload_path: Path | None = typer.Option(  # noqa: B008
        None,
        "--preload",
        help="A read-only preinstalled copy that counts as already present.",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Create the configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        "download_url": download_url,
        "asset_path": str(asset_path.expanduser().absolute()),
    }
    if preload_path:
        settings["preload_path"] = str(preload_path.expanduser().absolute())

    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except AssetRefresherError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Fetch the asset with: [cyan]asset-refresher run[/cyan]")


async def _run_coordinator(
    config: RefreshConfig, watch: bool, recheck_interval: float | None
) -> tuple[ConsoleResultListener, bool, CoordinatorState]:
    listener = ConsoleResultListener()
    base_logger, refresh_logger = create_structured_logger(
        Path(config.log_dir) if config.log_dir else None
    )
    base_logger.set_session_context(download_url=config.download_url)

    monitor = NetworkMonitor(
        probe_url=config.effective_probe_url,
        poll_interval=config.poll_interval,
        probe_timeout=min(config.request_timeout, 10.0),
    )
    submitter = DownloadJobSubmitter(
        Downloader(
            max_attempts=config.max_attempts, request_timeout=config.request_timeout
        )
    )
    checker = RevalidationChecker(request_timeout=config.request_timeout)
    coordinator = RefreshCoordinator.from_config(
        config, submitter, monitor, checker, listener, event_logger=refresh_logger
    )

    try:
        await monitor.start()
        await coordinator.start()
        if not watch:
            if listener.errors:
                raise NetworkUnavailableError(
                    "The asset is missing and no network is available. "
                    "Use --watch to wait for connectivity."
                )
            await coordinator.wait_until_parked()
            return listener, coordinator.asset_exists(), coordinator.state

        console.print("[dim]Watching for updates. Press Ctrl+C to stop.[/dim]")
        while True:
            if recheck_interval:
                await asyncio.sleep(recheck_interval)
                coordinator.request_update_check()
            else:
                await asyncio.sleep(3600)
    finally:
        await coordinator.stop()
        await monitor.stop()
        await checker.close()
        await submitter.close()
        base_logger.close()


@app.command(name="run")
def run_command(
    watch: bool = typer.Option(
        False,
        "--watch",
        "-w",
        help="Keep running after the asset is in place instead of exiting.",
    ),
    recheck_interval: float | None = typer.Option(
        None,
        "--recheck-interval",
        help="With --watch, revalidate the asset every N seconds.",
        min=1.0,
    ),
    log_dir: Path | None = typer.Option(  # noqa: B008
        None, "--log-dir", help="Write a JSON-lines event log to this directory."
    ),
):
    """Make sure the asset is present and current."""
    cli_options = {}
    if log_dir is not None:
        cli_options["log_dir"] = str(log_dir)

    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    except AssetRefresherError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    listener, present, state = asyncio.run(
        _run_coordinator(config, watch, recheck_interval)
    )

    if state is CoordinatorState.AWAITING_NETWORK_FOR_UPDATE_CHECK:
        console.print(
            "[yellow]⚠️  No network connection. Kept the existing asset without "
            "checking for updates.[/yellow]"
        )
    elif listener.downloads == 0 and present:
        console.print("[green]✓ Asset is up to date.[/green]")
    elif not present:
        raise TransferFailedError(
            f"The asset could not be downloaded from {config.download_url}."
        )


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_validation_table(config)
    except AssetRefresherError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def status():
    """Show which copies of the asset are on disk."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
    except AssetRefresherError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    print_asset_status(config)
