from datetime import datetime

from power_bidding.api.client import ApiError, ApiErrorKind
from power_bidding.errors import BusyError, ConfigValidationError, InvalidUploadError, PreconditionError
from power_bidding.models import (
    HistoricalPoint,
    HistoricalSeries,
    HistoricalStatistics,
    ServiceStatus,
)
from power_bidding.workflow import (
    DATASET_INVALID_WARNING,
    PREDICTION_NOT_READY,
    Stage,
    StageOutcome,
    WorkflowState,
)
from ui.state import UIState
from ui.utils import (
    describe_outcome,
    describe_rejection,
    historical_frame,
    monthly_distribution_frame,
    prediction_summary,
    predictions_frame,
    state_label,
    upload_from_widget,
)

from conftest import build_prediction


class _Widget:
    name = "prices.xlsx"

    def getvalue(self) -> bytes:
        return b"workbook"


def test_upload_from_widget_copies_name_and_bytes() -> None:
    upload = upload_from_widget(_Widget())
    assert upload.name == "prices.xlsx"
    assert upload.content == b"workbook"


def test_describe_outcome_levels() -> None:
    ok = StageOutcome(stage=Stage.PREDICT, state=WorkflowState.PREDICTED)
    warned = StageOutcome(stage=Stage.UPLOAD, state=WorkflowState.UPLOADED, warning=DATASET_INVALID_WARNING)
    failed = StageOutcome(
        stage=Stage.OPTIMIZE,
        state=WorkflowState.OPTIMIZE_FAILED,
        error=ApiError(ApiErrorKind.TIMEOUT, "no answer"),
    )

    assert describe_outcome(ok) == ("success", "Prediction complete.")
    assert describe_outcome(warned)[0] == "warning"
    level, message = describe_outcome(failed)
    assert level == "error"
    assert "no answer" in message


def test_describe_rejection_messages() -> None:
    assert "prediction" in describe_rejection(PreconditionError(PREDICTION_NOT_READY)).lower()
    assert "still running" in describe_rejection(BusyError(Stage.UPLOAD))
    assert "prediction.horizon_points" in describe_rejection(
        ConfigValidationError("prediction.horizon_points", "too small")
    )
    assert "empty" in describe_rejection(InvalidUploadError("file is empty: a.csv"))


def test_state_label_is_readable() -> None:
    assert state_label(WorkflowState.PREDICT_FAILED) == "Predict Failed"


def test_prediction_frame_and_summary() -> None:
    result = build_prediction(n_points=150, mae=9.5, r2=0.91)

    frame = predictions_frame(result)
    summary = prediction_summary(result)

    assert len(frame) == 100
    assert frame["models_used"].iloc[0] == "random_forest, xgboost"
    assert summary["points"] == 150
    assert summary["r2"] == 0.91


def test_prediction_frame_handles_empty_result() -> None:
    assert predictions_frame(build_prediction(n_points=0)).empty


def test_historical_frame_respects_limit() -> None:
    points = tuple(
        HistoricalPoint(time=datetime(2024, 5, 1, hour), realtime_price=400.0 + hour) for hour in range(5)
    )
    series = HistoricalSeries(points=points, statistics=HistoricalStatistics(count=5, avg_price=402.0))

    frame = historical_frame(series, limit=3)

    assert len(frame) == 3
    assert frame["realtime_price"].tolist() == [400.0, 401.0, 402.0]


def test_monthly_distribution_frame_is_sorted() -> None:
    status = ServiceStatus(real_data_records=3, monthly_distribution={"2024-05": 1, "2024-04": 2})

    frame = monthly_distribution_frame(status)

    assert frame["month"].tolist() == ["2024-04", "2024-05"]
    assert frame["records"].tolist() == [2, 1]


def test_ui_state_drains_notices(controller) -> None:
    state = UIState(controller=controller)
    state.notify("info", "hello")

    assert [notice.message for notice in state.drain_notices()] == ["hello"]
    assert state.drain_notices() == []
