"""notesync developer CLI.

Commands:
    notesync watch           Stream push events and show cache invalidations
    notesync health          Probe the backend's /health endpoint
    notesync config show     Display the effective configuration
    notesync config validate Check a YAML config file
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from notesync import __version__
from notesync.cache import QueryCache
from notesync.core.config import SyncConfig
from notesync.core.logging import configure_logging, get_logger
from notesync.events import ConnectionState, EventStreamConnection, HttpxSSETransportFactory
from notesync.exceptions import ConfigError
from notesync.health import HealthProbe, HealthState, HealthStatus
from notesync.sync import DEFAULT_RULES, CacheSyncBinder
from notesync.transport.platform import resolve_api_base

console = Console()

_logger = get_logger("cli")

app = typer.Typer(
    name="notesync",
    help="Resilient sync client for the notes backend",
    add_completion=False,
)
config_app = typer.Typer(
    name="config",
    help="Inspect notesync configuration.",
    invoke_without_command=True,
)
app.add_typer(config_app)


@dataclass
class CliState:
    config_file: Path | None = None
    log_level: str | None = None
    log_format: str | None = None
    configured: bool = False


_state = CliState()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"notesync v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    config_file: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="YAML configuration file",
            envvar="NOTESYNC_CONFIG",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="NOTESYNC_LOG_LEVEL",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option("--log-format", help="Log format: json or console"),
    ] = None,
) -> None:
    """notesync - resilient sync client for the notes backend."""
    _state.config_file = config_file
    _state.log_level = log_level.upper() if log_level else None
    _state.log_format = log_format


def load_config(path: Path | None = None) -> SyncConfig:
    """Config from ``path`` (or defaults), with environment overrides applied.

    Also configures logging once: CLI options win over the file's
    ``logging`` section.
    """
    path = path or _state.config_file
    try:
        config = SyncConfig.from_yaml(path) if path else SyncConfig()
        config = config.with_env_overrides()
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None
    _configure_logging(config)
    return config


def _configure_logging(config: SyncConfig) -> None:
    if _state.configured:
        return
    try:
        configure_logging(
            level=_state.log_level or config.logging.level,
            format=_state.log_format or config.logging.format,
            file_path=config.logging.file_path,
        )
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None
    _state.configured = True


# ─── health ───────────────────────────────────────────────────────────


def _print_health(state: HealthState) -> None:
    style = {
        HealthStatus.HEALTHY: "green",
        HealthStatus.UNHEALTHY: "red",
        HealthStatus.UNKNOWN: "yellow",
    }[state.status]
    line = f"[{style}]{state.status.value}[/{style}]"
    if state.latency_ms is not None:
        line += f" [dim]({state.latency_ms} ms)[/dim]"
    if state.error:
        line += f" {escape(state.error)}"
    console.print(line)


@app.command()
def health(
    watch: bool = typer.Option(False, "--watch", "-w", help="Keep polling"),
    interval: float = typer.Option(30.0, "--interval", help="Seconds between polls"),
    timeout: float = typer.Option(5.0, "--timeout", help="Per-check timeout in seconds"),
) -> None:
    """Check whether the backend is reachable.

    Exits with status 1 when the backend is unhealthy.

    Examples:
        notesync health
        notesync health --watch --interval 10
    """
    config = load_config()
    probe = HealthProbe(config.transport, timeout_seconds=timeout)
    console.print(f"Backend: [bold]{probe.base_url}[/bold]")

    if watch:
        try:
            asyncio.run(probe.poll(_print_health, interval_seconds=interval))
        except KeyboardInterrupt:
            pass
        return

    state = asyncio.run(probe.check())
    _print_health(state)
    if state.status is HealthStatus.UNHEALTHY:
        raise typer.Exit(1)


# ─── watch ────────────────────────────────────────────────────────────


def _format_payload(payload: Any, limit: int = 120) -> str:
    text = json.dumps(payload, ensure_ascii=False, default=str)
    return text if len(text) <= limit else text[: limit - 3] + "..."


async def _watch(config: SyncConfig, endpoint: str, max_events: int | None) -> int:
    cache = QueryCache()
    for rule in DEFAULT_RULES.values():
        for key in (*rule.invalidate, rule.set_key):
            if key:
                cache.set(key, None)
    done = asyncio.Event()
    received = 0

    connection = EventStreamConnection(
        HttpxSSETransportFactory(read_timeout_seconds=config.stream.read_timeout_seconds),
        reconnect=config.stream.reconnect,
    )

    def on_state(state: ConnectionState) -> None:
        style = "green" if state is ConnectionState.CONNECTED else "yellow"
        console.print(f"[{style}]● {state.value}[/{style}]")

    def printer(event_type: str):
        def handle(payload: Any) -> None:
            nonlocal received
            received += 1
            stale = ", ".join("/".join(map(str, k)) for k in cache.stale_keys())
            for key in cache.stale_keys():
                cache.set(key, None)
            console.print(
                f"[cyan]{event_type}[/cyan] {escape(_format_payload(payload))}"
                + (f" [dim]stale: {stale}[/dim]" if stale else "")
            )
            if max_events is not None and received >= max_events:
                done.set()

        return handle

    async with connection:
        connection.add_state_listener(on_state)
        # Bound before the printers so each event is applied before it is shown
        CacheSyncBinder(connection, cache).bind()
        for event_type in DEFAULT_RULES:
            connection.on(event_type, printer(event_type))
        await connection.connect(endpoint)
        await done.wait()
    return received


@app.command()
def watch(
    endpoint: str | None = typer.Option(
        None, "--endpoint", "-e", help="Event stream URL (default: <api base><stream path>)"
    ),
    count: int | None = typer.Option(
        None, "--count", "-n", min=1, help="Exit after this many events"
    ),
) -> None:
    """Stream server-push events and show which cache keys they invalidate.

    Reconnects with backoff until interrupted.

    Examples:
        notesync watch
        notesync watch --count 5
    """
    config = load_config()
    url = endpoint or resolve_api_base(config.transport) + config.stream.path
    console.print(f"Watching [bold]{url}[/bold] (Ctrl-C to stop)")
    try:
        received = asyncio.run(_watch(config, url, count))
    except KeyboardInterrupt:
        console.print("\n[dim]stopped[/dim]")
        return
    _logger.debug("watch_finished", events=received)


# ─── config ───────────────────────────────────────────────────────────


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(_flatten(value, full_key))
        else:
            flat[full_key] = value
    return flat


@config_app.callback(invoke_without_command=True)
def config_callback(ctx: typer.Context) -> None:
    """Inspect notesync configuration."""
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


@config_app.command()
def show() -> None:
    """Display the effective configuration as a table."""
    config = load_config()
    source = str(_state.config_file) if _state.config_file else "(defaults)"
    console.print(f"\nnotesync configuration [dim]{source}[/dim]\n")

    table = Table(show_header=True, header_style="bold cyan", padding=(0, 1))
    table.add_column("Key", style="white", min_width=30)
    table.add_column("Value", style="green")
    for key, value in _flatten(config.model_dump(mode="json")).items():
        table.add_row(key, "-" if value is None else str(value))
    table.add_row("[dim]resolved api base[/dim]", resolve_api_base(config.transport))
    console.print(table)


@config_app.command()
def validate(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML config file"),
) -> None:
    """Check that a config file loads and validates."""
    load_config(path)
    console.print(f"[green]✓[/green] {path} is valid")


__all__ = ["app", "load_config"]
