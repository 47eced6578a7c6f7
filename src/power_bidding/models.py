"""Typed results produced by the remote analytics service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class DatasetSummary:
    """Summary of an uploaded dataset as validated by the service."""

    row_count: int
    column_count: int
    size_kb: float
    is_valid: bool
    time_columns: tuple[str, ...] = ()
    price_columns: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        """Wire ``data`` object echoed back to the predict endpoint."""
        return {"rows": self.row_count, "columns": self.column_count, "size": self.size_kb}


@dataclass(frozen=True)
class PredictionPoint:
    """One forecast interval."""

    time: datetime
    predicted_price: float
    confidence_lower: float
    confidence_upper: float
    models_used: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "time": self.time.isoformat(),
            "predicted_price": self.predicted_price,
            "confidence_lower": self.confidence_lower,
            "confidence_upper": self.confidence_upper,
            "models_used": list(self.models_used),
        }


@dataclass(frozen=True)
class PredictionMetrics:
    mae: float
    r2: float


@dataclass(frozen=True)
class EnsembleInfo:
    selected_models: tuple[str, ...] = ()
    weight_method: str | None = None
    model_weights: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class PredictionValidation:
    """Accuracy of a forecast against realised prices, when the service has them."""

    message: str | None = None
    mae: float | None = None
    rmse: float | None = None
    r2: float | None = None
    mape: float | None = None


@dataclass(frozen=True)
class PredictionResult:
    """Chronologically ordered forecast plus fit metrics."""

    points: tuple[PredictionPoint, ...]
    metrics: PredictionMetrics
    ensemble: EnsembleInfo | None = None
    validation: PredictionValidation | None = None

    @property
    def average_price(self) -> float | None:
        if not self.points:
            return None
        return sum(point.predicted_price for point in self.points) / len(self.points)


@dataclass(frozen=True)
class ConvergenceStats:
    converged_points: int
    total_points: int


@dataclass(frozen=True)
class AlgorithmInfo:
    name: str | None = None
    source: str | None = None
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class OptimizationResult:
    """Optimal bid for the forecast horizon."""

    optimal_price: float
    optimal_power: float
    expected_revenue: float
    convergence: ConvergenceStats
    method: str | None = None
    cost_params: dict[str, float] = field(default_factory=dict)
    algorithm: AlgorithmInfo | None = None


@dataclass(frozen=True)
class ServiceStatus:
    """Aggregate metadata about the service's price database."""

    real_data_records: int
    data_frequency: str | None = None
    data_source: str | None = None
    time_range_start: datetime | None = None
    time_range_end: datetime | None = None
    monthly_distribution: dict[str, int] = field(default_factory=dict)
    can_validate_accuracy: bool = False
    algorithms: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HistoricalPoint:
    time: datetime
    realtime_price: float
    dayahead_price: float | None = None
    system_load: float | None = None
    renewable_output: float | None = None


@dataclass(frozen=True)
class HistoricalStatistics:
    count: int
    avg_price: float
    volatility: float | None = None


@dataclass(frozen=True)
class HistoricalSeries:
    """Historical prices with an optional index-aligned prediction series."""

    points: tuple[HistoricalPoint, ...]
    statistics: HistoricalStatistics
    predictions: tuple[PredictionPoint, ...] = ()
    accuracy: PredictionMetrics | None = None
