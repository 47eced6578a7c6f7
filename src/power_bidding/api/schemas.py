"""Wire models for the analytics service's JSON responses.

Responses are parsed in pydantic strict mode: a missing or wrong-typed field
fails validation instead of being coerced or defaulted. Optional blocks that
the service may omit are declared ``None``-able explicitly.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from power_bidding.models import (
    AlgorithmInfo,
    ConvergenceStats,
    DatasetSummary,
    EnsembleInfo,
    HistoricalPoint,
    HistoricalSeries,
    HistoricalStatistics,
    OptimizationResult,
    PredictionMetrics,
    PredictionPoint,
    PredictionResult,
    PredictionValidation,
    ServiceStatus,
)


class _Wire(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)


# -----------------------------
# Upload
# -----------------------------
class UploadData(_Wire):
    rows: int
    columns: int
    size: float


class UploadValidation(_Wire):
    valid: bool
    time_columns: Optional[list[str]] = Field(None, alias="timeColumns")
    price_columns: Optional[list[str]] = Field(None, alias="priceColumns")


class UploadResponse(_Wire):
    data: UploadData
    validation: UploadValidation

    def to_domain(self) -> DatasetSummary:
        return DatasetSummary(
            row_count=self.data.rows,
            column_count=self.data.columns,
            size_kb=self.data.size,
            is_valid=self.validation.valid,
            time_columns=tuple(self.validation.time_columns or ()),
            price_columns=tuple(self.validation.price_columns or ()),
        )


# -----------------------------
# Predict
# -----------------------------
class PredictionPointWire(_Wire):
    time: datetime
    predicted_price: float
    confidence_lower: float
    confidence_upper: float
    models_used: list[str]

    def to_domain(self) -> PredictionPoint:
        return PredictionPoint(
            time=self.time,
            predicted_price=self.predicted_price,
            confidence_lower=self.confidence_lower,
            confidence_upper=self.confidence_upper,
            models_used=tuple(self.models_used),
        )


class MetricsWire(_Wire):
    mae: float
    r2: float

    def to_domain(self) -> PredictionMetrics:
        return PredictionMetrics(mae=self.mae, r2=self.r2)


class WeightCalculation(_Wire):
    description: Optional[str] = None


class EnsembleInfoWire(_Wire):
    selected_models: list[str] = Field(default_factory=list)
    weight_calculation: Optional[WeightCalculation] = None
    model_weights: dict[str, float] = Field(default_factory=dict)


class AccuracyMetricsWire(_Wire):
    mae: Optional[float] = None
    rmse: Optional[float] = None
    r2: Optional[float] = None
    mape: Optional[float] = None


class PredictionValidationWire(_Wire):
    validation_message: Optional[str] = None
    accuracy_metrics: Optional[AccuracyMetricsWire] = None


class PredictResponse(_Wire):
    predictions: list[PredictionPointWire]
    metrics: MetricsWire
    ensemble_info: Optional[EnsembleInfoWire] = None
    validation: Optional[PredictionValidationWire] = None

    def to_domain(self) -> PredictionResult:
        points = tuple(sorted((p.to_domain() for p in self.predictions), key=lambda p: p.time))
        ensemble = None
        if self.ensemble_info is not None:
            info = self.ensemble_info
            ensemble = EnsembleInfo(
                selected_models=tuple(info.selected_models),
                weight_method=info.weight_calculation.description if info.weight_calculation else None,
                model_weights=dict(info.model_weights),
            )
        validation = None
        if self.validation is not None:
            accuracy = self.validation.accuracy_metrics or AccuracyMetricsWire()
            validation = PredictionValidation(
                message=self.validation.validation_message,
                mae=accuracy.mae,
                rmse=accuracy.rmse,
                r2=accuracy.r2,
                mape=accuracy.mape,
            )
        return PredictionResult(
            points=points,
            metrics=self.metrics.to_domain(),
            ensemble=ensemble,
            validation=validation,
        )


# -----------------------------
# Optimize
# -----------------------------
class ConvergenceWire(_Wire):
    converged_points: int
    total_points: int


class OptimizationWire(_Wire):
    optimal_price: float
    optimal_power: float
    expected_revenue: float
    convergence_stats: ConvergenceWire
    optimization_method: Optional[str] = None
    cost_params: dict[str, float] = Field(default_factory=dict)


class AlgorithmInfoWire(_Wire):
    name: Optional[str] = None
    source: Optional[str] = None
    features: list[str] = Field(default_factory=list)


class OptimizeResponse(_Wire):
    optimization: OptimizationWire
    algorithm_info: Optional[AlgorithmInfoWire] = None

    def to_domain(self) -> OptimizationResult:
        opt = self.optimization
        algorithm = None
        if self.algorithm_info is not None:
            algorithm = AlgorithmInfo(
                name=self.algorithm_info.name,
                source=self.algorithm_info.source,
                features=tuple(self.algorithm_info.features),
            )
        return OptimizationResult(
            optimal_price=opt.optimal_price,
            optimal_power=opt.optimal_power,
            expected_revenue=opt.expected_revenue,
            convergence=ConvergenceStats(
                converged_points=opt.convergence_stats.converged_points,
                total_points=opt.convergence_stats.total_points,
            ),
            method=opt.optimization_method,
            cost_params=dict(opt.cost_params),
            algorithm=algorithm,
        )


# -----------------------------
# Service status
# -----------------------------
class TimeRangeWire(_Wire):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class DatabaseWire(_Wire):
    real_data_records: int = Field(alias="realDataRecords")
    data_frequency: Optional[str] = Field(None, alias="dataFrequency")
    data_source: Optional[str] = Field(None, alias="dataSource")
    monthly_distribution: dict[str, int] = Field(default_factory=dict, alias="monthlyDistribution")
    time_range: Optional[TimeRangeWire] = Field(None, alias="timeRange")


class StatusValidationWire(_Wire):
    can_validate_accuracy: bool = False


class StatusResponse(_Wire):
    database: DatabaseWire
    validation: Optional[StatusValidationWire] = None
    algorithms: dict[str, Any] = Field(default_factory=dict)

    def to_domain(self) -> ServiceStatus:
        db = self.database
        time_range = db.time_range or TimeRangeWire()
        return ServiceStatus(
            real_data_records=db.real_data_records,
            data_frequency=db.data_frequency,
            data_source=db.data_source,
            time_range_start=time_range.start,
            time_range_end=time_range.end,
            monthly_distribution=dict(db.monthly_distribution),
            can_validate_accuracy=self.validation.can_validate_accuracy if self.validation else False,
            algorithms=dict(self.algorithms),
        )


# -----------------------------
# Historical prices
# -----------------------------
class HistoricalPointWire(_Wire):
    time: datetime
    realtime_price: float
    dayahead_price: Optional[float] = None
    system_load: Optional[float] = None
    renewable_output: Optional[float] = None


class StatisticsWire(_Wire):
    count: int
    avg_price: float = Field(alias="avgPrice")
    volatility: Optional[float] = None


class HistoricalResponse(_Wire):
    data: list[HistoricalPointWire]
    statistics: StatisticsWire
    predictions: Optional[list[PredictionPointWire]] = None
    accuracy_metrics: Optional[MetricsWire] = None

    def to_domain(self) -> HistoricalSeries:
        return HistoricalSeries(
            points=tuple(
                HistoricalPoint(
                    time=p.time,
                    realtime_price=p.realtime_price,
                    dayahead_price=p.dayahead_price,
                    system_load=p.system_load,
                    renewable_output=p.renewable_output,
                )
                for p in self.data
            ),
            statistics=HistoricalStatistics(
                count=self.statistics.count,
                avg_price=self.statistics.avg_price,
                volatility=self.statistics.volatility,
            ),
            predictions=tuple(p.to_domain() for p in self.predictions or ()),
            accuracy=self.accuracy_metrics.to_domain() if self.accuracy_metrics else None,
        )
