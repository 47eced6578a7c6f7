"""Stage controller sequencing Upload -> Predict -> Optimize.

The controller is the only writer of the workflow state and the result
cache. Each stage call snapshots its config, marks itself in flight, calls
the API client, and applies the returned value or error once the call
settles. Calls that arrive while another call is outstanding are refused
with :class:`BusyError`; calls made out of order are refused with
:class:`PreconditionError`. Neither refusal changes any state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

from power_bidding.api.client import ApiError, ApiResult, UploadFile
from power_bidding.config import (
    ConfigStore,
    HistoricalQuery,
    OptimizationConfig,
    PredictionConfig,
    merge_config,
)
from power_bidding.errors import BusyError, InvalidUploadError, PreconditionError
from power_bidding.models import (
    DatasetSummary,
    HistoricalSeries,
    OptimizationResult,
    PredictionPoint,
    PredictionResult,
    ServiceStatus,
)
from power_bidding.workflow.cache import ResultCache, WorkflowSnapshot
from power_bidding.workflow.states import (
    Stage,
    WorkflowState,
    can_enter,
    failed_state,
    in_flight_state,
    success_state,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

DATASET_NOT_READY = "dataset-not-ready"
PREDICTION_NOT_READY = "prediction-not-ready"
DATASET_INVALID_WARNING = "dataset-invalid"


class AnalyticsApi(Protocol):
    """Operations the controller needs from the API client."""

    def upload_dataset(self, upload: UploadFile) -> ApiResult[DatasetSummary]: ...

    def predict(
        self, config: PredictionConfig, dataset: DatasetSummary | None = None
    ) -> ApiResult[PredictionResult]: ...

    def optimize(
        self, predictions: tuple[PredictionPoint, ...], config: OptimizationConfig
    ) -> ApiResult[OptimizationResult]: ...

    def get_status(self) -> ApiResult[ServiceStatus]: ...

    def get_historical_prices(self, query: HistoricalQuery | None = None) -> ApiResult[HistoricalSeries]: ...


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    """Settled result of one stage call."""

    stage: Stage
    state: WorkflowState
    result: T | None = None
    error: ApiError | None = None
    warning: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StageController:
    """Finite-state controller for the upload, predict, and optimize stages."""

    def __init__(
        self,
        api: AnalyticsApi,
        config_store: ConfigStore | None = None,
        cache: ResultCache | None = None,
    ) -> None:
        self._api = api
        self._config = config_store if config_store is not None else ConfigStore()
        self._cache = cache if cache is not None else ResultCache()
        self._state = WorkflowState.IDLE
        self._in_flight: Stage | str | None = None

    @property
    def config_store(self) -> ConfigStore:
        return self._config

    # -----------------------------
    # Read accessors
    # -----------------------------
    def current_state(self) -> WorkflowState:
        return self._state

    def snapshot(self) -> WorkflowSnapshot:
        return self._cache.snapshot()

    def in_flight(self) -> Stage | str | None:
        return self._in_flight

    def can_predict(self) -> bool:
        dataset = self._cache.snapshot().dataset
        return (
            self._in_flight is None
            and can_enter(Stage.PREDICT, self._state)
            and dataset is not None
            and dataset.is_valid
        )

    def can_optimize(self) -> bool:
        return (
            self._in_flight is None
            and can_enter(Stage.OPTIMIZE, self._state)
            and self._cache.snapshot().prediction is not None
        )

    # -----------------------------
    # Stage operations
    # -----------------------------
    def start_upload(self, file: UploadFile | str | Path) -> StageOutcome[DatasetSummary]:
        self._ensure_not_busy()
        upload = self._prepare_upload(file)
        self._cache.begin_upload()
        outcome = self._run(
            Stage.UPLOAD,
            lambda: self._api.upload_dataset(upload),
            self._cache.store_dataset,
        )
        if outcome.ok and outcome.result is not None and not outcome.result.is_valid:
            LOGGER.warning("Dataset %s failed service validation; prediction stays disabled", upload.name)
            outcome = StageOutcome(
                stage=outcome.stage,
                state=outcome.state,
                result=outcome.result,
                warning=DATASET_INVALID_WARNING,
            )
        return outcome

    def run_prediction(
        self,
        config: PredictionConfig | Mapping[str, Any] | None = None,
    ) -> StageOutcome[PredictionResult]:
        self._ensure_not_busy()
        dataset = self._cache.snapshot().dataset
        if not can_enter(Stage.PREDICT, self._state) or dataset is None or not dataset.is_valid:
            raise PreconditionError(DATASET_NOT_READY, self._state)
        request_config = self._resolve_config("prediction", PredictionConfig, config)
        return self._run(
            Stage.PREDICT,
            lambda: self._api.predict(request_config, dataset),
            self._cache.store_prediction,
        )

    def run_optimization(
        self,
        config: OptimizationConfig | Mapping[str, Any] | None = None,
    ) -> StageOutcome[OptimizationResult]:
        self._ensure_not_busy()
        prediction = self._cache.snapshot().prediction
        if not can_enter(Stage.OPTIMIZE, self._state) or prediction is None:
            raise PreconditionError(PREDICTION_NOT_READY, self._state)
        request_config = self._resolve_config("optimization", OptimizationConfig, config)
        points = prediction.points
        return self._run(
            Stage.OPTIMIZE,
            lambda: self._api.optimize(points, request_config),
            self._cache.store_optimization,
        )

    # -----------------------------
    # Auxiliary reads (not gated by workflow state)
    # -----------------------------
    def refresh_status(self) -> ApiResult[ServiceStatus]:
        result = self._run_auxiliary("status", self._api.get_status)
        if result.ok and result.value is not None:
            self._cache.store_status(result.value)
            self._config.seed_prediction_date(result.value)
        return result

    def load_historical(
        self,
        query: HistoricalQuery | Mapping[str, Any] | None = None,
    ) -> ApiResult[HistoricalSeries]:
        self._ensure_not_busy()
        request_query = self._resolve_config("historical", HistoricalQuery, query)
        result = self._run_auxiliary("historical", lambda: self._api.get_historical_prices(request_query))
        if result.ok and result.value is not None:
            self._cache.store_historical(result.value)
        return result

    # -----------------------------
    # Internals
    # -----------------------------
    def _ensure_not_busy(self) -> None:
        if self._in_flight is not None:
            raise BusyError(self._in_flight)

    def _prepare_upload(self, file: UploadFile | str | Path) -> UploadFile:
        if isinstance(file, (str, Path)):
            path = Path(file)
            if not path.is_file():
                raise InvalidUploadError(f"file not found: {path}")
            try:
                upload = UploadFile.from_path(path)
            except OSError as exc:
                raise InvalidUploadError(f"cannot read {path}: {exc.strerror or exc}") from exc
        else:
            upload = file

        options = self._config.get().upload
        if upload.extension not in options.allowed_extensions:
            raise InvalidUploadError(
                f"unsupported file type '{upload.extension or upload.name}'; "
                f"expected one of {', '.join(options.allowed_extensions)}"
            )
        if not upload.content:
            raise InvalidUploadError(f"file is empty: {upload.name}")
        if upload.size_kb > options.max_file_mb * 1024:
            raise InvalidUploadError(
                f"file is {upload.size_kb / 1024:.1f} MB; limit is {options.max_file_mb} MB"
            )
        return upload

    def _resolve_config(
        self,
        section: str,
        model: type[M],
        config: M | Mapping[str, Any] | None,
    ) -> M:
        """Snapshot the section's config, applying a per-call partial override if given."""
        current = self._config.get()
        if config is None:
            resolved = getattr(current, section)
        elif isinstance(config, model):
            resolved = config
        elif isinstance(config, Mapping):
            resolved = getattr(merge_config(current, {section: dict(config)}), section)
        else:
            raise TypeError(f"{section} config must be {model.__name__} or a mapping, got {type(config).__name__}")
        return resolved.model_copy(deep=True)

    def _run(
        self,
        stage: Stage,
        call: Callable[[], ApiResult[T]],
        store: Callable[[T], None],
    ) -> StageOutcome[T]:
        self._in_flight = stage
        self._transition(stage, in_flight_state(stage))
        try:
            result = call()
        except Exception:
            LOGGER.exception("%s: API client raised instead of returning an error", stage.value)
            self._transition(stage, failed_state(stage))
            raise
        finally:
            self._in_flight = None

        if result.ok:
            store(result.value)  # type: ignore[arg-type]
            self._transition(stage, success_state(stage))
            return StageOutcome(stage=stage, state=self._state, result=result.value)

        self._transition(stage, failed_state(stage))
        return StageOutcome(stage=stage, state=self._state, error=result.error)

    def _run_auxiliary(self, label: str, call: Callable[[], ApiResult[T]]) -> ApiResult[T]:
        self._ensure_not_busy()
        self._in_flight = label
        try:
            return call()
        finally:
            self._in_flight = None

    def _transition(self, stage: Stage, new_state: WorkflowState) -> None:
        LOGGER.info("%s: %s -> %s", stage.value, self._state.name, new_state.name)
        self._state = new_state
