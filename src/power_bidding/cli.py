"""Command line interface for the bidding workflow client."""

from __future__ import annotations

import enum
import json
import logging
import subprocess
import sys
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, NoReturn

import typer

from power_bidding.api.client import ApiClient
from power_bidding.config import AppConfig, ConfigStore, build_config, merge_config
from power_bidding.errors import ConfigValidationError, WorkflowError
from power_bidding.export import bidding_schedule_rows, historical_rows, prediction_rows, write_csv
from power_bidding.workflow.controller import StageController, StageOutcome

app = typer.Typer(help="Power market price prediction and bid optimization client")
LOGGER = logging.getLogger(__name__)

def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    if quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

def _load_config(config_path: str | None, api_url: str | None = None) -> AppConfig:
    try:
        cfg = build_config(config_path=config_path)
        if api_url:
            cfg = merge_config(cfg, {"service": {"base_url": api_url}})
    except ConfigValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return cfg

def _apply_overrides(config: AppConfig, overrides: dict[str, Any]) -> AppConfig:
    try:
        return merge_config(config, overrides)
    except ConfigValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

def _emit(payload: Any, out_format: str) -> None:
    if out_format == "json":
        typer.echo(json.dumps(payload, indent=2, default=_json_default))
    else:
        if isinstance(payload, dict):
            for key, value in payload.items():
                typer.echo(f"{key}: {value}")
        else:
            typer.echo(str(payload))

def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, (tuple, set, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value)} is not JSON serializable")

def _fail(message: str) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)

def _require(outcome: StageOutcome[Any]) -> None:
    if not outcome.ok:
        _fail(f"{outcome.stage.value} failed ({outcome.state.value}): {outcome.error}")

def _stage_overrides(
    horizon_points: int | None,
    confidence_level: float | None,
    models: str | None,
    prediction_date: str | None,
    cost_generation: float | None,
    cost_upward: float | None,
    cost_downward: float | None,
) -> dict[str, Any]:
    """Collect only the options given on the command line."""
    prediction: dict[str, Any] = {}
    if horizon_points is not None:
        prediction["horizon_points"] = horizon_points
    if confidence_level is not None:
        prediction["confidence_level"] = confidence_level
    if models:
        prediction["models"] = [m.strip() for m in models.split(",") if m.strip()]
    if prediction_date:
        prediction["prediction_date"] = prediction_date

    optimization: dict[str, Any] = {}
    if cost_generation is not None:
        optimization["cost_generation"] = cost_generation
    if cost_upward is not None:
        optimization["cost_upward"] = cost_upward
    if cost_downward is not None:
        optimization["cost_downward"] = cost_downward

    overrides: dict[str, Any] = {}
    if prediction:
        overrides["prediction"] = prediction
    if optimization:
        overrides["optimization"] = optimization
    return overrides

def _new_run_dir(output_root: str) -> Path:
    run_dir = Path(output_root) / datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir

@app.command("status")
def status(
    config: str | None = typer.Option(None, help="Path to YAML config."),
    api_url: str | None = typer.Option(None, help="Override the service base URL."),
    out_format: str = typer.Option("text", "--format", help="text|json"),
    verbose: bool = typer.Option(False, "--verbose"),
    quiet: bool = typer.Option(False, "--quiet"),
) -> None:
    """Show the service's price database status."""
    _configure_logging(verbose, quiet)
    cfg = _load_config(config, api_url)

    with ApiClient.from_config(cfg.service) as client:
        result = client.get_status()
    if not result.ok:
        _fail(f"Status request failed: {result.error}")
    _emit(asdict(result.value), out_format)

@app.command("historical")
def historical(
    time_range: str = typer.Option("1d", help="1d|7d|30d|all"),
    include_predictions: bool = typer.Option(
        False,
        "--include-predictions",
        help="Include the index-aligned prediction series.",
    ),
    output_csv: str | None = typer.Option(None, help="Optional output path for the series CSV."),
    config: str | None = typer.Option(None, help="Path to YAML config."),
    api_url: str | None = typer.Option(None, help="Override the service base URL."),
    out_format: str = typer.Option("text", "--format", help="text|json"),
    verbose: bool = typer.Option(False, "--verbose"),
    quiet: bool = typer.Option(False, "--quiet"),
) -> None:
    """Fetch historical prices and optionally export them as CSV."""
    _configure_logging(verbose, quiet)
    cfg = _load_config(config, api_url)
    cfg = _apply_overrides(
        cfg,
        {"historical": {"time_range": time_range, "include_predictions": include_predictions}},
    )

    with ApiClient.from_config(cfg.service) as client:
        result = client.get_historical_prices(cfg.historical)
    if not result.ok:
        _fail(f"Historical prices request failed: {result.error}")

    series = result.value
    payload: dict[str, Any] = {
        "time_range": cfg.historical.time_range,
        "points": len(series.points),
        "count": series.statistics.count,
        "avg_price": series.statistics.avg_price,
        "volatility": series.statistics.volatility,
    }
    if series.accuracy is not None:
        payload["accuracy_mae"] = series.accuracy.mae
        payload["accuracy_r2"] = series.accuracy.r2
    if output_csv:
        payload["output_csv"] = str(write_csv(historical_rows(series), output_csv))
    _emit(payload, out_format)

@app.command("run-workflow")
def run_workflow(
    file: str = typer.Option(..., help="Dataset file (.xlsx, .xls or .csv)."),
    horizon_points: int | None = typer.Option(None, help="Prediction points (1-168)."),
    confidence_level: float | None = typer.Option(None, help="Confidence level (0.80-0.99)."),
    models: str | None = typer.Option(None, help="Comma-separated model ids."),
    prediction_date: str | None = typer.Option(None, help="Prediction date (YYYY-MM-DD)."),
    cost_generation: float | None = typer.Option(None, help="Generation cost per MWh."),
    cost_upward: float | None = typer.Option(None, help="Upward regulation cost per MWh."),
    cost_downward: float | None = typer.Option(None, help="Downward regulation cost per MWh."),
    output_root: str = typer.Option("runs", help="Base output directory."),
    config: str | None = typer.Option(None, help="Path to YAML config."),
    api_url: str | None = typer.Option(None, help="Override the service base URL."),
    out_format: str = typer.Option("text", "--format", help="text|json"),
    verbose: bool = typer.Option(False, "--verbose"),
    quiet: bool = typer.Option(False, "--quiet"),
) -> None:
    """Upload a dataset, predict prices, optimize the bid, and export the results."""
    _configure_logging(verbose, quiet)
    cfg = _load_config(config, api_url)
    store = ConfigStore(cfg)
    overrides = _stage_overrides(
        horizon_points,
        confidence_level,
        models,
        prediction_date,
        cost_generation,
        cost_upward,
        cost_downward,
    )
    if overrides:
        try:
            store.update(overrides)
        except ConfigValidationError as exc:
            raise typer.BadParameter(str(exc)) from exc

    with ApiClient.from_config(store.get().service) as client:
        controller = StageController(client, store)
        try:
            upload = controller.start_upload(file)
            _require(upload)
            if upload.warning:
                _fail("Dataset failed service validation; prediction is disabled for this upload.")
            _require(controller.run_prediction())
            _require(controller.run_optimization())
        except WorkflowError as exc:
            _fail(f"Workflow refused: {exc}")

    snapshot = controller.snapshot()
    run_dir = _new_run_dir(output_root)
    predictions_path = write_csv(prediction_rows(snapshot.prediction), run_dir / "predictions.csv")
    schedule_path = write_csv(
        bidding_schedule_rows(snapshot.prediction, snapshot.optimization),
        run_dir / "bidding_schedule.csv",
    )

    optimization = snapshot.optimization
    summary = {
        "run_dir": str(run_dir),
        "state": controller.current_state().value,
        "dataset_rows": snapshot.dataset.row_count,
        "prediction_points": len(snapshot.prediction.points),
        "average_price": snapshot.prediction.average_price,
        "mae": snapshot.prediction.metrics.mae,
        "r2": snapshot.prediction.metrics.r2,
        "optimal_price": optimization.optimal_price,
        "optimal_power": optimization.optimal_power,
        "expected_revenue": optimization.expected_revenue,
        "converged_points": optimization.convergence.converged_points,
        "total_points": optimization.convergence.total_points,
        "predictions_csv": str(predictions_path),
        "bidding_schedule_csv": str(schedule_path),
    }
    (run_dir / "summary.json").write_text(
        json.dumps(summary, indent=2, default=_json_default),
        encoding="utf-8",
    )
    _emit(summary, out_format)

@app.command("ui")
def launch_ui(
    port: int = typer.Option(8501, help="Port for Streamlit app."),
    server_headless: str = typer.Option(
        "true",
        help="Run Streamlit in headless mode (true|false).",
    ),
    streamlit_args: list[str] | None = typer.Argument(
        None,
        help="Additional args forwarded to Streamlit (e.g. --browser.gatherUsageStats false).",
    ),
) -> None:
    """Launch the bidding workflow Streamlit UI."""
    if server_headless.lower() not in {"true", "false"}:
        raise typer.BadParameter("--server-headless must be true or false.")
    repo_root = Path(__file__).resolve().parents[2]
    app_path = repo_root / "ui" / "streamlit_app.py"
    if not app_path.exists():
        raise typer.BadParameter(f"Streamlit app not found at: {app_path}")

    cmd = [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(app_path),
        "--server.port",
        str(port),
        "--server.headless",
        server_headless.lower(),
    ]
    cmd.extend(streamlit_args or [])
    raise typer.Exit(subprocess.call(cmd))

if __name__ == "__main__":
    app()
