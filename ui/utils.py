"""UI helper utilities (pure logic, testable without Streamlit)."""

from __future__ import annotations

from typing import Any, Protocol

import pandas as pd

from power_bidding.api.client import UploadFile
from power_bidding.errors import BusyError, ConfigValidationError, InvalidUploadError, PreconditionError
from power_bidding.export import historical_rows, prediction_rows
from power_bidding.models import HistoricalSeries, PredictionResult, ServiceStatus
from power_bidding.workflow.controller import (
    DATASET_INVALID_WARNING,
    DATASET_NOT_READY,
    PREDICTION_NOT_READY,
    StageOutcome,
)
from power_bidding.workflow.states import Stage, WorkflowState


class UploadedFileLike(Protocol):
    name: str

    def getvalue(self) -> bytes: ...


STAGE_LABELS = {
    Stage.UPLOAD: "Upload",
    Stage.PREDICT: "Prediction",
    Stage.OPTIMIZE: "Bid optimization",
}

REJECTION_HINTS = {
    DATASET_NOT_READY: "Upload a dataset that passes validation before running the prediction.",
    PREDICTION_NOT_READY: "Run the price prediction before optimizing the bid.",
}



def upload_from_widget(uploaded: UploadedFileLike) -> UploadFile:
    """Convert a Streamlit ``UploadedFile`` into the client's upload payload."""
    return UploadFile(name=uploaded.name, content=uploaded.getvalue())



def describe_outcome(outcome: StageOutcome[Any]) -> tuple[str, str]:
    """Map a settled stage call to a (level, message) notice."""
    label = STAGE_LABELS[outcome.stage]
    if not outcome.ok:
        return "error", f"{label} failed: {outcome.error}"
    if outcome.warning == DATASET_INVALID_WARNING:
        return "warning", "Dataset uploaded but failed validation; check the time and price columns."
    return "success", f"{label} complete."



def describe_rejection(exc: Exception) -> str:
    """Human-readable reason for a refused call."""
    if isinstance(exc, PreconditionError):
        return REJECTION_HINTS.get(exc.reason, exc.reason)
    if isinstance(exc, BusyError):
        return "Another request is still running; wait for it to finish."
    if isinstance(exc, ConfigValidationError):
        return f"Invalid setting {exc.field}: {exc.reason}"
    if isinstance(exc, InvalidUploadError):
        return f"File rejected: {exc.reason}"
    return str(exc)



def state_label(state: WorkflowState) -> str:
    return state.value.replace("_", " ").title()



def prediction_summary(result: PredictionResult) -> dict[str, Any]:
    return {
        "points": len(result.points),
        "average_price": result.average_price,
        "r2": result.metrics.r2,
        "mae": result.metrics.mae,
    }



def predictions_frame(result: PredictionResult, limit: int | None = 100) -> pd.DataFrame:
    rows = prediction_rows(result)
    if limit is not None:
        rows = rows[:limit]
    frame = pd.DataFrame(rows, columns=list(rows[0].keys()) if rows else None)
    if not frame.empty:
        frame["models_used"] = frame["models_used"].map(", ".join)
    return frame



def historical_frame(series: HistoricalSeries, limit: int | None = 100) -> pd.DataFrame:
    rows = historical_rows(series)
    if limit is not None:
        rows = rows[:limit]
    return pd.DataFrame(rows)



def monthly_distribution_frame(status: ServiceStatus) -> pd.DataFrame:
    frame = pd.DataFrame(
        sorted(status.monthly_distribution.items()),
        columns=["month", "records"],
    )
    return frame
