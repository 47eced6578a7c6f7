import json
from datetime import datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

import power_bidding.cli as cli_mod
from power_bidding.api.client import ApiError, ApiErrorKind, ApiResult
from power_bidding.config import API_URL_ENV
from power_bidding.models import (
    DatasetSummary,
    HistoricalPoint,
    HistoricalSeries,
    HistoricalStatistics,
    PredictionMetrics,
)

from conftest import FakeApi


runner = CliRunner()


class FakeClient(FakeApi):
    instances: list["FakeClient"] = []

    def __init__(self) -> None:
        super().__init__()
        self.service = None
        self.closed = False

    @classmethod
    def from_config(cls, service):
        client = cls()
        client.service = service
        cls.instances.append(client)
        return client

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True


@pytest.fixture()
def fake_client(monkeypatch):
    monkeypatch.delenv(API_URL_ENV, raising=False)
    FakeClient.instances = []
    monkeypatch.setattr(cli_mod, "ApiClient", FakeClient)
    return FakeClient


@pytest.fixture()
def dataset_path(tmp_path: Path) -> Path:
    path = tmp_path / "prices.csv"
    path.write_text("time,realtime_price\n2025-01-01 00:15,450.5\n", encoding="utf-8")
    return path


def test_run_workflow_writes_exports_and_summary(fake_client, dataset_path, tmp_path):
    result = runner.invoke(
        cli_mod.app,
        [
            "run-workflow",
            "--file",
            str(dataset_path),
            "--horizon-points",
            "24",
            "--cost-generation",
            "400",
            "--output-root",
            str(tmp_path / "runs"),
            "--format",
            "json",
        ],
    )

    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert summary["state"] == "optimized"
    assert summary["dataset_rows"] == 500
    assert summary["prediction_points"] == 24
    assert summary["optimal_price"] == 410.0
    assert summary["expected_revenue"] == 34850.0

    run_dir = Path(summary["run_dir"])
    assert (run_dir / "summary.json").exists()
    predictions = (run_dir / "predictions.csv").read_text(encoding="utf-8").splitlines()
    assert len(predictions) == 25
    schedule = (run_dir / "bidding_schedule.csv").read_text(encoding="utf-8").splitlines()
    assert schedule[0] == "time,predicted_price,bid_price,bid_power"

    client = fake_client.instances[0]
    assert client.names() == ["upload", "predict", "optimize"]
    _, (sent_config, _) = client.calls[1]
    assert sent_config.horizon_points == 24
    assert client.closed


def test_run_workflow_stops_on_stage_failure(fake_client, dataset_path, tmp_path, monkeypatch):
    original = FakeClient.from_config.__func__

    def failing(cls, service):
        client = original(cls, service)
        client.predict_result = ApiResult.failure(ApiError(ApiErrorKind.HTTP_STATUS, "model crashed", 500))
        return client

    monkeypatch.setattr(FakeClient, "from_config", classmethod(failing))

    result = runner.invoke(
        cli_mod.app,
        ["run-workflow", "--file", str(dataset_path), "--output-root", str(tmp_path / "runs")],
    )

    assert result.exit_code == 1
    assert "model crashed" in result.output
    assert fake_client.instances[0].names() == ["upload", "predict"]
    assert not (tmp_path / "runs").exists()


def test_run_workflow_rejects_invalid_dataset(fake_client, dataset_path, tmp_path, monkeypatch):
    original = FakeClient.from_config.__func__

    def invalid(cls, service):
        client = original(cls, service)
        client.upload_result = ApiResult.success(
            DatasetSummary(row_count=3, column_count=1, size_kb=0.1, is_valid=False)
        )
        return client

    monkeypatch.setattr(FakeClient, "from_config", classmethod(invalid))

    result = runner.invoke(
        cli_mod.app,
        ["run-workflow", "--file", str(dataset_path), "--output-root", str(tmp_path / "runs")],
    )

    assert result.exit_code == 1
    assert "validation" in result.output
    assert fake_client.instances[0].names() == ["upload"]


def test_run_workflow_rejects_unsupported_file(fake_client, tmp_path):
    path = tmp_path / "prices.json"
    path.write_text("{}", encoding="utf-8")

    result = runner.invoke(cli_mod.app, ["run-workflow", "--file", str(path)])

    assert result.exit_code == 1
    assert "unsupported file type" in result.output
    assert fake_client.instances[0].calls == []


def test_run_workflow_rejects_out_of_range_horizon(fake_client, dataset_path):
    result = runner.invoke(
        cli_mod.app,
        ["run-workflow", "--file", str(dataset_path), "--horizon-points", "0"],
    )

    assert result.exit_code != 0
    assert fake_client.instances == []


def test_status_command_prints_database_summary(fake_client):
    result = runner.invoke(cli_mod.app, ["status", "--format", "json", "--api-url", "http://cli.local/"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["real_data_records"] == 2880
    assert payload["time_range_end"] == "2024-05-02T23:45:00"
    assert fake_client.instances[0].service.base_url == "http://cli.local"


def test_status_command_reports_failure(fake_client, monkeypatch):
    monkeypatch.setattr(
        FakeClient,
        "get_status",
        lambda self: ApiResult.failure(ApiError(ApiErrorKind.NETWORK, "connection refused")),
    )

    result = runner.invoke(cli_mod.app, ["status"])

    assert result.exit_code == 1
    assert "connection refused" in result.output


def test_historical_command_exports_csv(fake_client, tmp_path, monkeypatch):
    series = HistoricalSeries(
        points=(
            HistoricalPoint(time=datetime(2024, 5, 1, 0, 0), realtime_price=450.5),
            HistoricalPoint(time=datetime(2024, 5, 1, 0, 15), realtime_price=448.2),
        ),
        statistics=HistoricalStatistics(count=2, avg_price=449.35, volatility=1.6),
        accuracy=PredictionMetrics(mae=11.0, r2=0.8),
    )
    queries = []

    def historical(self, query=None):
        queries.append(query)
        return ApiResult.success(series)

    monkeypatch.setattr(FakeClient, "get_historical_prices", historical)
    out_csv = tmp_path / "history.csv"

    result = runner.invoke(
        cli_mod.app,
        ["historical", "--time-range", "7d", "--output-csv", str(out_csv), "--format", "json"],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["points"] == 2
    assert payload["accuracy_r2"] == 0.8
    assert queries[0].time_range == "7d"
    assert len(out_csv.read_text(encoding="utf-8").splitlines()) == 3


def test_historical_command_rejects_unknown_range(fake_client):
    result = runner.invoke(cli_mod.app, ["historical", "--time-range", "90d"])
    assert result.exit_code != 0
