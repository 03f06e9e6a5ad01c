"""Command line interface for offline session analysis."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from .demo import run_demo
from .logging_setup import configure_logging
from .pipeline import run_analysis
from .reporting import export_summary
from .stable_window import AnalysisConfig

app = typer.Typer(context_settings={"help_option_names": ["-h", "--help"]})


@app.command()
def analyze(
    input_path: Path = typer.Option(..., "--in", help="Recorded session CSV.", exists=True, readable=True),
    field: str = typer.Option("total", "--field", help="Column to locate the window on (total, device:X, group:Y)."),
    report_dir: Optional[Path] = typer.Option(None, "--report", help="Write summary.csv and window.csv here."),
    threshold: float = typer.Option(5.0, "--threshold", help="Active threshold in kg."),
    median_window: int = typer.Option(7, "--median-window", help="Smoothing window in samples."),
    min_stable: int = typer.Option(12, "--min-stable", help="Minimum plateau length in samples."),
) -> None:
    """Locate the stable window of a recording and print the averages."""

    params = AnalysisConfig(
        active_threshold=threshold,
        median_window=median_window,
        min_stable_samples=min_stable,
    )
    try:
        result = run_analysis(input_path, params, field=field)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    summary = result.summary
    window = summary.window
    typer.echo(f"Samples: {summary.sample_count}")
    typer.echo(f"Stable window: {window.start}..{window.end} ({window.length} samples) on {summary.field_name}")
    for name, average in summary.averages.items():
        typer.echo(f"{name}: {average:.2f}")
    if summary.last_active_rx:
        typer.echo("Last active rx: " + " | ".join(summary.last_active_rx.values()))

    if report_dir is not None:
        export_summary(result, report_dir)
        typer.echo(f"Report written to {report_dir}")


@app.command()
def demo(
    out_dir: Path = typer.Option(Path("demo_output"), "--out", help="Target directory for demo recording."),
) -> None:
    """Generate a synthetic recording and its summary."""

    result = run_demo(out_dir)
    typer.echo(f"Demo recording and summary written to {out_dir} (average total {result.summary.average:.2f})")


def run() -> None:
    configure_logging()
    app()


if __name__ == "__main__":  # pragma: no cover
    run()
