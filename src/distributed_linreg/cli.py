"""CLI entrypoint for distributed linear regression."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table as RichTable

from distributed_linreg.config import load_config
from distributed_linreg.dataset import read_csv_table, write_predictions
from distributed_linreg.estimator import LinearRegression
from distributed_linreg.exceptions import (
    DatasetError,
    DimensionMismatchError,
    EmptyDatasetError,
    InvalidConfigError,
    PersistenceError,
)
from distributed_linreg.linear_model import LinearRegressionModel
from distributed_linreg.persistence import load_model, save_model
from distributed_linreg.tracing import FitTraceCollector

app = typer.Typer(help="Fit and apply linear regression with partitioned gradient descent.")
console = Console()


def _vprint(enabled: bool, message: str) -> None:
    """Print verbose progress messages."""
    if enabled:
        console.print(f"[cyan]verbose:[/cyan] {escape(message)}")


def _configure_trace_streaming(trace: FitTraceCollector, enabled: bool) -> None:
    """Stream fit-level trace events in verbose mode; the rest stay in the trace files."""
    if not enabled:
        trace.set_live_sink(None)
        return

    def _sink(event: dict[str, Any]) -> None:
        if event.get("event_type") != "fit":
            return
        parts = [
            f"trace[{event.get('seq', '?')}]",
            f"{event.get('component', '')}.{event.get('action', '')}",
            f"status={event.get('status', '')}",
        ]
        for key in ("iteration", "rows", "duration_ms"):
            if event.get(key) != "":
                parts.append(f"{key}={event.get(key)}")
        if event.get("details"):
            parts.append(f"details={event['details']}")
        _vprint(True, " ".join(parts))

    trace.set_live_sink(_sink)


@app.command("fit")
def fit_cmd(
    data: Annotated[Path, typer.Option(help="CSV file with a header row.")],
    output: Annotated[Path, typer.Option(help="Directory to save the fitted model into.")],
    label: Annotated[str | None, typer.Option(help="Label column name.")] = None,
    features: Annotated[
        str | None,
        typer.Option(help="Comma-separated feature columns. Defaults to all but the label."),
    ] = None,
    max_iter: Annotated[int | None, typer.Option(help="Number of gradient steps.")] = None,
    step_size: Annotated[float | None, typer.Option(help="Gradient step size.")] = None,
    tol: Annotated[float | None, typer.Option(help="Gradient-norm tolerance.")] = None,
    partitions: Annotated[int | None, typer.Option(help="Number of row partitions.")] = None,
    workers: Annotated[int | None, typer.Option(help="Thread pool size.")] = None,
    seed: Annotated[int | None, typer.Option(help="Seed for weight initialization.")] = None,
    config: Annotated[Path | None, typer.Option(help="Optional YAML config path.")] = None,
    force: Annotated[bool, typer.Option(help="Overwrite an existing model directory.")] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose/--no-verbose", help="Enable detailed logs. Enabled by default."),
    ] = True,
) -> None:
    """Fit a model on a CSV file and save it."""
    trace = FitTraceCollector()
    _configure_trace_streaming(trace, verbose)
    try:
        _vprint(verbose, "Loading fit configuration (YAML + env + CLI overrides).")
        fit_config = load_config(
            config_path=config,
            overrides={
                "label_column": label,
                "feature_columns": features,
                "max_iter": max_iter,
                "step_size": step_size,
                "tol": tol,
                "num_partitions": partitions,
                "max_workers": workers,
                "seed": seed,
            },
        )
    except InvalidConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=3) from exc

    try:
        table = read_csv_table(data)
    except DatasetError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc
    _vprint(verbose, f"Read {table.values.shape[0]} rows with columns: {', '.join(table.columns)}")

    estimator = LinearRegression(
        fit_config,
        log=lambda message: _vprint(verbose, message),
        trace=trace,
    )
    try:
        model = estimator.fit_table(table)
    except DatasetError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc
    except (EmptyDatasetError, DimensionMismatchError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=4) from exc

    _report_trace(trace, verbose)
    try:
        save_model(model, output, overwrite=force)
        trace.write_json(output / "trace.json")
        trace.write_csv(output / "trace.csv")
    except (PersistenceError, OSError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=5) from exc
    _vprint(verbose, f"Trace artifacts written: {output / 'trace.json'}, {output / 'trace.csv'}")

    _print_model(model)
    console.print(f"[green]Model saved.[/green] {output}")


@app.command("predict")
def predict_cmd(
    model: Annotated[Path, typer.Option(help="Saved model directory.")],
    data: Annotated[Path, typer.Option(help="CSV file with the model's feature columns.")],
    output: Annotated[Path, typer.Option(help="CSV file to write predictions into.")],
    verbose: Annotated[
        bool,
        typer.Option("--verbose/--no-verbose", help="Enable detailed logs. Enabled by default."),
    ] = True,
) -> None:
    """Apply a saved model to a CSV file."""
    try:
        _vprint(verbose, f"Loading model: {model}")
        fitted = load_model(model)
    except PersistenceError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=5) from exc

    params = fitted.params
    try:
        table = read_csv_table(data)
        matrix = table.features(
            params.feature_columns, exclude=(params.label_column, params.prediction_column)
        )
    except DatasetError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc

    try:
        predictions = fitted.transform(matrix)
    except DimensionMismatchError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=4) from exc
    _vprint(verbose, f"Predicted {predictions.shape[0]} rows.")

    write_predictions(output, table, predictions, params.prediction_column)
    console.print(f"[green]Predictions written.[/green] {output}")


@app.command("inspect")
def inspect_cmd(
    model: Annotated[Path, typer.Option(help="Saved model directory.")],
) -> None:
    """Show a saved model's coefficients and fit params."""
    try:
        fitted = load_model(model)
    except PersistenceError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=5) from exc
    _print_model(fitted)
    for key, value in fitted.params.model_dump().items():
        console.print(f"{key}: {escape(str(value))}")


def _report_trace(trace: FitTraceCollector, verbose: bool) -> None:
    for index, stats in trace.partition_stats().items():
        _vprint(
            verbose,
            f"Partition {index}: {stats['rows']} rows, "
            f"{stats['mean_duration_ms']:.3f} ms per summary over {stats['summaries']} iterations.",
        )
    history = trace.gradient_history()
    if history:
        iteration, norm = history[-1]
        _vprint(verbose, f"Final gradient norm {norm:.6g} after iteration {iteration}.")


def _print_model(model: LinearRegressionModel) -> None:
    names = model.params.feature_columns
    if len(names) != model.num_features:
        names = [f"x{idx}" for idx in range(model.num_features)]
    table = RichTable(title=model.uid)
    table.add_column("term")
    table.add_column("coefficient", justify="right")
    for name, weight in zip(names, model.weights, strict=True):
        table.add_row(escape(name), f"{weight:.6g}")
    table.add_row("bias", f"{model.bias:.6g}")
    console.print(table)


def main() -> None:
    """Script entrypoint."""
    app()


if __name__ == "__main__":
    main()
