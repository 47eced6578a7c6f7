"""Latest-successful-result storage for each workflow stage."""

from __future__ import annotations

from dataclasses import dataclass, replace

from power_bidding.models import (
    DatasetSummary,
    HistoricalSeries,
    OptimizationResult,
    PredictionResult,
    ServiceStatus,
)


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Immutable view of every cached result."""

    dataset: DatasetSummary | None = None
    prediction: PredictionResult | None = None
    optimization: OptimizationResult | None = None
    status: ServiceStatus | None = None
    historical: HistoricalSeries | None = None


class ResultCache:
    """Holds one snapshot and swaps it wholesale on every store."""

    def __init__(self) -> None:
        self._snapshot = WorkflowSnapshot()

    def snapshot(self) -> WorkflowSnapshot:
        return self._snapshot

    def begin_upload(self) -> None:
        """A new upload supersedes the dataset and everything derived from it."""
        self._snapshot = replace(self._snapshot, dataset=None, prediction=None, optimization=None)

    def store_dataset(self, dataset: DatasetSummary) -> None:
        self._snapshot = replace(self._snapshot, dataset=dataset, prediction=None, optimization=None)

    def store_prediction(self, prediction: PredictionResult) -> None:
        self._snapshot = replace(self._snapshot, prediction=prediction, optimization=None)

    def store_optimization(self, optimization: OptimizationResult) -> None:
        self._snapshot = replace(self._snapshot, optimization=optimization)

    def store_status(self, status: ServiceStatus) -> None:
        self._snapshot = replace(self._snapshot, status=status)

    def store_historical(self, historical: HistoricalSeries) -> None:
        self._snapshot = replace(self._snapshot, historical=historical)
