from __future__ import annotations

import asyncio
import importlib.metadata as md
import logging
import signal
from logging.handlers import RotatingFileHandler
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import RideTrackConfig, load_config, load_config_or_default, resolve_config_path
from .core.errors import CorruptData, RideTrackError, StoreUnavailable
from .core.events import Event, EventBus, EventType
from .domain.models import TripSummary
from .infrastructure.gps.gpsd_client import (
    AsyncGPSClient,
    LocationProvider,
    ReplayLocationProvider,
    SimulatedLocationProvider,
)
from .infrastructure.storage.blob_store import MemoryBlobStore, SqliteBlobStore
from .infrastructure.storage.ride_log import RideLogStore
from .tools.formatting import format_distance, format_duration, format_speed, route_region
from .tools.sample_io import load_samples
from .tracking.recorder import RideRecorder
from .tracking.trip import TripTracker

# Typer application: tests import this
app = typer.Typer(no_args_is_help=True, add_completion=False, help="RideTrack CLI")
rides_app = typer.Typer(no_args_is_help=True, help="Browse and manage saved rides")
app.add_typer(rides_app, name="rides")
console = Console()

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Config file (default: resolved by priority)")


def _configure_logging(cfg: RideTrackConfig) -> None:
    root = logging.getLogger()
    root.setLevel(cfg.logging.level)
    if not root.handlers:
        logging.basicConfig(level=cfg.logging.level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    log_file = cfg.log_file.resolve()
    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler) and Path(handler.baseFilename) == log_file:
            return
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=cfg.logging.max_bytes, backupCount=cfg.logging.backup_count, encoding="utf-8"
        )
    except OSError as exc:
        console.print(f"[yellow]File logging disabled: {exc}[/yellow]")
        return
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)


def _load(config: Path | None) -> RideTrackConfig:
    try:
        cfg = load_config_or_default(config)
    except (OSError, ValueError) as exc:
        console.print(f"Config error: {exc}")
        raise typer.Exit(code=1) from exc
    _configure_logging(cfg)
    return cfg


def _open_log(cfg: RideTrackConfig) -> RideLogStore:
    return RideLogStore(
        SqliteBlobStore(cfg.store.db_path),
        key=cfg.store.key,
        timeout=cfg.store.timeout_secs,
    )


def _run_store(coro):
    try:
        return asyncio.run(coro)
    except (StoreUnavailable, CorruptData) as exc:
        console.print(f"[red]Ride log error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _print_summary(summary: TripSummary) -> None:
    table = Table(title=f"Ride {summary.id}", show_header=False)
    table.add_row("Max Speed", format_speed(summary.max_speed_kmh))
    table.add_row("Average Speed", format_speed(summary.avg_speed_kmh))
    table.add_row("Total Distance", format_distance(summary.total_distance_km))
    table.add_row("Time Taken", format_duration(summary.duration_seconds))
    table.add_row("Points", str(len(summary.route)))
    region = route_region(summary.route)
    if region is not None:
        table.add_row("Start", f"{summary.route[0].latitude:.6f}, {summary.route[0].longitude:.6f}")
        table.add_row("End", f"{summary.route[-1].latitude:.6f}, {summary.route[-1].longitude:.6f}")
        table.add_row(
            "Map Region",
            f"{region.latitude:.6f}, {region.longitude:.6f} "
            f"(span {region.latitude_delta:.4f} x {region.longitude_delta:.4f})",
        )
    console.print(table)


@app.command()
def version() -> None:
    """Print version information."""
    try:
        console.print(f"ridetrack {md.version('ridetrack')}")
    except md.PackageNotFoundError:
        from . import __version__

        console.print(f"ridetrack {__version__}")
    raise typer.Exit(code=0)


@app.command(name="config-validate")
def config_validate(path: Path = typer.Argument(Path("configs/ridetrack.yml"))) -> None:
    """Validate and show resolved configuration."""
    resolved = resolve_config_path(path)
    console.print(f"Using config: {resolved}")
    try:
        cfg = load_config(resolved)
    except (OSError, ValueError) as exc:
        console.print(f"Config validation failed: {exc}")
        raise typer.Exit(code=1) from exc
    console.print("Config OK.")
    console.print(f"- min distance: {cfg.tracking.min_distance_km} km")
    console.print(f"- min speed: {cfg.tracking.min_speed_kmh} km/h")
    console.print(f"- ride log: {cfg.store.db_path} (key: {cfg.store.key})")
    console.print(f"- log file: {cfg.log_file}")


@app.command(name="config-which")
def config_which(config: Path | None = CONFIG_OPTION) -> None:
    """Print resolved config path by priority rules."""
    console.print(str(resolve_config_path(config)))


async def _record(
    cfg: RideTrackConfig,
    provider: LocationProvider,
    store: RideLogStore,
    duration: float | None = None,
    live: bool = False,
) -> tuple[TripSummary, int]:
    bus = EventBus()
    if live:
        async def _show(event: Event) -> None:
            state = event.data
            console.print(
                f"{format_speed(state['current_speed_kmh'])} - "
                f"{format_distance(state['total_distance_km'])} traveled"
            )

        bus.subscribe(EventType.SAMPLE_ACCEPTED, _show)
    await bus.start()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    if duration is not None:
        loop.call_later(duration, stop_event.set)
    try:
        loop.add_signal_handler(signal.SIGINT, stop_event.set)
    except (NotImplementedError, RuntimeError):
        pass  # Windows / non-main thread

    recorder = RideRecorder(TripTracker(cfg.tracking), store, bus)
    try:
        summary = await recorder.record(provider.stream_samples(), stop_event)
    finally:
        await provider.stop()
        await bus.stop()
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
    return summary, len(recorder.pending)


def _warn_duplicate_id(store: RideLogStore, summary: TripSummary) -> None:
    rides = _run_store(store.list_all())
    copies = sum(1 for ride in rides if ride.id == summary.id)
    if copies > 1:
        console.print(
            f"[yellow]Warning: the ride log now holds {copies} rides with id {summary.id}. "
            "'rides show' returns the first and 'rides delete' removes all of them.[/yellow]"
        )


def _report(summary: TripSummary, pending: int, saved_to: str | None) -> None:
    _print_summary(summary)
    if saved_to is None:
        console.print("Ride not saved (--no-save).")
    elif pending:
        console.print(f"[red]Ride {summary.id} could not be saved to {saved_to}.[/red]")
        raise typer.Exit(code=1)
    else:
        console.print(f"Ride {summary.id} saved to {saved_to}.")


@app.command()
def replay(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV or JSON-lines samples"),
    config: Path | None = CONFIG_OPTION,
    save: bool = typer.Option(True, "--save/--no-save", help="Append the ride to the ride log"),
) -> None:
    """
    Run recorded samples through the tracker and print the ride summary.

    The ride id is the last sample's timestamp, so saving the same file twice
    stores two rides with one id.
    """
    cfg = _load(config)
    try:
        samples, stats = load_samples(file)
    except (OSError, ValueError) as exc:
        console.print(f"Cannot read samples: {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"Loaded {stats.rows_parsed} samples ({stats.rows_skipped} skipped)")

    store = _open_log(cfg) if save else RideLogStore(MemoryBlobStore())
    summary, pending = _run_store(_record(cfg, ReplayLocationProvider(samples), store))
    _report(summary, pending, str(cfg.store.db_path) if save else None)
    if save and not pending:
        _warn_duplicate_id(store, summary)


@app.command()
def track(
    config: Path | None = CONFIG_OPTION,
    simulate: bool = typer.Option(False, "--simulate", help="Use a simulated receiver instead of gpsd"),
    duration: float | None = typer.Option(None, "--duration", min=0.0, help="Stop after SECONDS"),
    save: bool = typer.Option(True, "--save/--no-save", help="Append the ride to the ride log"),
) -> None:
    """Track a live ride until Ctrl-C (or --duration) and save it."""
    cfg = _load(config)
    provider: LocationProvider
    if simulate:
        provider = SimulatedLocationProvider()
    else:
        provider = AsyncGPSClient(cfg.provider)
    console.print("Tracking... press Ctrl-C to stop.")

    store = _open_log(cfg) if save else RideLogStore(MemoryBlobStore())
    summary, pending = _run_store(_record(cfg, provider, store, duration=duration, live=True))
    _report(summary, pending, str(cfg.store.db_path) if save else None)


@rides_app.command("list")
def rides_list(config: Path | None = CONFIG_OPTION) -> None:
    """List saved rides in completion order."""
    cfg = _load(config)
    rides = _run_store(_open_log(cfg).list_all())
    if not rides:
        console.print("No rides saved yet.")
        return

    table = Table(title="Ride Logs")
    table.add_column("ID", no_wrap=True)
    table.add_column("Distance", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Max Speed", justify="right")
    table.add_column("Avg Speed", justify="right")
    for ride in rides:
        table.add_row(
            ride.id,
            format_distance(ride.total_distance_km),
            format_duration(ride.duration_seconds),
            format_speed(ride.max_speed_kmh),
            format_speed(ride.avg_speed_kmh),
        )
    console.print(table)


@rides_app.command("show")
def rides_show(ride_id: str = typer.Argument(...), config: Path | None = CONFIG_OPTION) -> None:
    """Show one saved ride."""
    cfg = _load(config)
    ride = _run_store(_open_log(cfg).find_by_id(ride_id))
    if ride is None:
        console.print(f"Ride {ride_id} not found.")
        raise typer.Exit(code=1)
    _print_summary(ride)


@rides_app.command("delete")
def rides_delete(ride_id: str = typer.Argument(...), config: Path | None = CONFIG_OPTION) -> None:
    """Delete a saved ride. Deleting a missing ride is not an error."""
    cfg = _load(config)
    removed = _run_store(_open_log(cfg).delete_by_id(ride_id))
    console.print("Deleted." if removed else f"Ride {ride_id} not found, nothing deleted.")


def main() -> None:  # pragma: no cover - console script
    try:
        app()
    except RideTrackError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc


cli = typer.main.get_command(app)
