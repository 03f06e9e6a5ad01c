from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import typer

from ..errors import ConfigError, ScaleLinkError
from ..logging_setup import configure_logging
from .client import Dgt4Client
from .config import StationConfig, load_config
from .registers import LIVE_PAGE
from .station import ScaleStation

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path("station/config.json")

app = typer.Typer(add_completion=False, help="DGT4 load-cell station utilities.")


def _load(config_path: Path, override: Optional[list[str]] = None) -> StationConfig:
    try:
        return load_config(config_path, override or None)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _fail(message: str) -> None:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def log_status(station: ScaleStation) -> None:
    snapshot = station.snapshot
    devices = " ".join(
        f"{name}={snapshot.device_weight(name):.2f}{'' if station.is_connected(name) else '(offline)'}"
        for name in station.device_names
    )
    groups = " ".join(f"{name}={value:.2f}" for name, value in snapshot.groups.items())
    logger.info("total=%.2f %s %s samples=%d", snapshot.total, devices, groups, len(station.recorder))


@app.command()
def run(
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to station config."),
    override: Optional[list[str]] = typer.Option(
        None,
        "--set",
        help="Override config keys, e.g. --set median_window=7 --set recording.interval_ms=500",
    ),
    record: bool = typer.Option(False, "--record", help="Record samples while running."),
    duration: float = typer.Option(0.0, "--duration", help="Stop after N seconds (0=until Ctrl+C)."),
    status_every: float = typer.Option(5.0, "--status-every", help="Log station status every N seconds."),
):
    """Connect every configured device and poll until stopped."""

    cfg = _load(config_path, override)
    if not cfg.devices:
        raise typer.BadParameter("Config does not define any devices", param_hint="--config")
    interval_sec = max(status_every, 0.5)
    with ScaleStation(cfg) as station:
        results = station.connect_all()
        if not any(results.values()):
            _fail("No device could be connected")
        if record:
            station.start_recording()
        started = time.monotonic()
        next_log = started + interval_sec
        try:
            while duration <= 0 or time.monotonic() - started < duration:
                time.sleep(0.1)
                if time.monotonic() >= next_log:
                    log_status(station)
                    next_log = time.monotonic() + interval_sec
        except KeyboardInterrupt:
            logger.info("Stopping station (Ctrl+C)")
        finally:
            station.stop_recording()
            log_status(station)
        if record and station.samples():
            summary = station.analyze()
            window = summary.window
            typer.echo(
                f"Stable window {window.start}..{window.end} ({window.length} samples), "
                f"average total {summary.average:.2f}"
            )


@app.command()
def zero(
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to station config."),
    device: str = typer.Option(..., "--device", "-d", help="Device name from the config."),
):
    """Send the zero command to one device."""

    cfg = _load(config_path)
    with ScaleStation(cfg) as station:
        if device not in station.device_names:
            raise typer.BadParameter(f"Unknown device '{device}'", param_hint="--device")
        session = station.session(device)
        try:
            session.connect(cfg.timeout_ms / 1000.0)
            session.zero()
        except ScaleLinkError as exc:
            _fail(f"Zero failed on {device}: {exc}")
    typer.echo(f"Zero sent to {device}")


@app.command()
def probe(
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to station config."),
    device: str = typer.Option(..., "--device", "-d", help="Device name from the config."),
):
    """Read and print one decoded live frame."""

    cfg = _load(config_path)
    try:
        target = cfg.device(device)
    except KeyError as exc:
        raise typer.BadParameter(f"Unknown device '{device}'", param_hint="--device") from exc
    client = Dgt4Client()
    try:
        client.connect(target.host, target.port, cfg.timeout_ms / 1000.0)
        client.change_page(target.unit_id, LIVE_PAGE)
        frame = client.read_live(target.unit_id)
    except ScaleLinkError as exc:
        _fail(f"Probe failed on {device}: {exc}")
        return
    finally:
        client.close()
    typer.echo(f"Device: {device} ({target.host}:{target.port} unit {target.unit_id})")
    typer.echo(f"Gross: {frame.gross}")
    typer.echo(f"Net: {frame.net}")
    typer.echo(f"Status: input=0x{frame.input_status:04X} command=0x{frame.command_status:04X} output=0x{frame.output_status:04X}")
    typer.echo(f"Page: {frame.selected_page}")
    typer.echo("Signals: " + " ".join(f"CH{idx}={value}" for idx, value in enumerate(frame.signals, start=1)))


def main() -> None:
    configure_logging()
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
