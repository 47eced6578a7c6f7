from datetime import datetime, timedelta
from typing import Any, Callable

import pytest

from power_bidding.api.client import ApiError, ApiErrorKind, ApiResult, UploadFile
from power_bidding.config import ConfigStore
from power_bidding.models import (
    ConvergenceStats,
    DatasetSummary,
    OptimizationResult,
    PredictionMetrics,
    PredictionPoint,
    PredictionResult,
    ServiceStatus,
)
from power_bidding.workflow.controller import StageController


START = datetime(2024, 5, 2, 0, 0)


def build_prediction(n_points: int = 24, mae: float = 12.3, r2: float = 0.87) -> PredictionResult:
    points = tuple(
        PredictionPoint(
            time=START + timedelta(minutes=15 * i),
            predicted_price=400.0 + i,
            confidence_lower=380.0 + i,
            confidence_upper=420.0 + i,
            models_used=("random_forest", "xgboost"),
        )
        for i in range(n_points)
    )
    return PredictionResult(points=points, metrics=PredictionMetrics(mae=mae, r2=r2))


def build_optimization() -> OptimizationResult:
    return OptimizationResult(
        optimal_price=410.0,
        optimal_power=85.0,
        expected_revenue=34850.0,
        convergence=ConvergenceStats(converged_points=24, total_points=24),
    )


class FakeApi:
    """In-memory stand-in for ApiClient; every result is configurable per test."""

    def __init__(self) -> None:
        self.upload_result: ApiResult[Any] = ApiResult.success(
            DatasetSummary(row_count=500, column_count=4, size_kb=32.5, is_valid=True)
        )
        self.predict_result: ApiResult[Any] = ApiResult.success(build_prediction())
        self.optimize_result: ApiResult[Any] = ApiResult.success(build_optimization())
        self.status_result: ApiResult[Any] = ApiResult.success(
            ServiceStatus(real_data_records=2880, time_range_end=datetime(2024, 5, 2, 23, 45))
        )
        self.historical_result: ApiResult[Any] = ApiResult.failure(
            ApiError(ApiErrorKind.NETWORK, "not configured")
        )
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.during_call: Callable[[str], None] | None = None

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.during_call is not None:
            self.during_call(name)

    def upload_dataset(self, upload):
        self._record("upload", upload)
        return self.upload_result

    def predict(self, config, dataset=None):
        self._record("predict", config, dataset)
        return self.predict_result

    def optimize(self, predictions, config):
        self._record("optimize", predictions, config)
        return self.optimize_result

    def get_status(self):
        self._record("status")
        return self.status_result

    def get_historical_prices(self, query=None):
        self._record("historical", query)
        return self.historical_result

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture()
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture()
def controller(fake_api: FakeApi) -> StageController:
    return StageController(fake_api, ConfigStore())


@pytest.fixture()
def dataset_file() -> UploadFile:
    return UploadFile(
        name="prices.csv",
        content=b"time,realtime_price\n2025-01-01 00:15,450.5\n2025-01-01 00:30,448.2\n",
    )


@pytest.fixture()
def predict_payload() -> Callable[..., dict[str, Any]]:
    def _build(n_points: int = 24, mae: float = 12.3, r2: float | None = 0.87) -> dict[str, Any]:
        metrics: dict[str, Any] = {"mae": mae}
        if r2 is not None:
            metrics["r2"] = r2
        return {
            "predictions": [
                {
                    "time": (START + timedelta(minutes=15 * i)).isoformat(),
                    "predicted_price": 400.0 + i,
                    "confidence_lower": 380.0 + i,
                    "confidence_upper": 420.0 + i,
                    "models_used": ["random_forest", "xgboost"],
                }
                for i in range(n_points)
            ],
            "metrics": metrics,
        }

    return _build
