"""Power Bidding Streamlit UI."""

from __future__ import annotations

from typing import Any

import streamlit as st

from power_bidding.errors import ConfigValidationError, PowerBiddingError
from power_bidding.export import bidding_schedule_rows, historical_rows, prediction_rows, to_csv
from power_bidding.workflow.states import WorkflowState
try:
    from ui.state import UIState, new_ui_state
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
except ModuleNotFoundError:
    # Supports direct execution via: streamlit run ui/streamlit_app.py
    from state import UIState, new_ui_state  # type: ignore
    from utils import (  # type: ignore
        describe_outcome,
        describe_rejection,
        historical_frame,
        monthly_distribution_frame,
        prediction_summary,
        predictions_frame,
        state_label,
        upload_from_widget,
    )

STATE_KEY = "power_bidding_ui_state"
HORIZON_CHOICES = [96, 48, 24]
CONFIDENCE_CHOICES = [0.90, 0.95, 0.99]
TIME_RANGE_CHOICES = ["1d", "7d", "30d", "all"]


def _choice_index(options: list[Any], value: Any) -> int:
    return options.index(value) if value in options else 0


def get_state() -> UIState:
    if STATE_KEY not in st.session_state:
        st.session_state[STATE_KEY] = new_ui_state()
    return st.session_state[STATE_KEY]


def _apply_config(state: UIState, partial: dict[str, Any]) -> None:
    try:
        state.controller.config_store.update(partial)
    except ConfigValidationError as exc:
        st.sidebar.error(describe_rejection(exc))


def _invoke(state: UIState, action: Any) -> None:
    """Run a controller call and queue its notice; refusals never change state."""
    try:
        outcome = action()
    except PowerBiddingError as exc:
        state.notify("error", describe_rejection(exc))
        return
    level, message = describe_outcome(outcome)
    state.notify(level, message)


def _render_sidebar(state: UIState) -> None:
    st.sidebar.title("Power Bidding")
    cfg = state.controller.config_store.get()

    st.sidebar.subheader("Prediction")
    prediction_date = st.sidebar.date_input(
        "Prediction date",
        value=cfg.prediction.prediction_date,
        help="Defaults to the last day of service data once status is refreshed.",
    )
    horizon_points = st.sidebar.selectbox(
        "Prediction points",
        options=HORIZON_CHOICES,
        index=_choice_index(HORIZON_CHOICES, cfg.prediction.horizon_points),
        help="96 points cover one day at 15-minute resolution.",
    )
    confidence_level = st.sidebar.selectbox(
        "Confidence level",
        options=CONFIDENCE_CHOICES,
        index=_choice_index(CONFIDENCE_CHOICES, cfg.prediction.confidence_level),
        format_func=lambda v: f"{v:.0%}",
    )
    _apply_config(
        state,
        {
            "prediction": {
                "prediction_date": prediction_date,
                "horizon_points": int(horizon_points),
                "confidence_level": float(confidence_level),
            }
        },
    )

    st.sidebar.subheader("Historical prices")
    time_range = st.sidebar.selectbox(
        "Time range",
        options=TIME_RANGE_CHOICES,
        index=_choice_index(TIME_RANGE_CHOICES, cfg.historical.time_range),
    )
    include_predictions = st.sidebar.checkbox(
        "Show prediction comparison", value=cfg.historical.include_predictions
    )
    _apply_config(
        state,
        {"historical": {"time_range": time_range, "include_predictions": include_predictions}},
    )

    st.sidebar.subheader("Bid optimization")
    cost_generation = st.sidebar.number_input(
        "Generation cost (per MWh)", value=float(cfg.optimization.cost_generation)
    )
    cost_upward = st.sidebar.number_input("Upward cost (per MWh)", value=float(cfg.optimization.cost_upward))
    cost_downward = st.sidebar.number_input(
        "Downward cost (per MWh)", value=float(cfg.optimization.cost_downward)
    )
    _apply_config(
        state,
        {
            "optimization": {
                "cost_generation": cost_generation,
                "cost_upward": cost_upward,
                "cost_downward": cost_downward,
            }
        },
    )


def _render_status_tab(state: UIState) -> None:
    st.subheader("Database status")
    if st.button("Refresh status"):
        result = state.controller.refresh_status()
        if not result.ok:
            state.notify("error", f"Status request failed: {result.error}")

    status = state.controller.snapshot().status
    if status is None:
        st.info("Refresh to load the service's database status.")
        return
    cols = st.columns(3)
    cols[0].metric("Records", status.real_data_records)
    cols[1].metric("Frequency", status.data_frequency or "--")
    cols[2].metric("Accuracy validation", "Supported" if status.can_validate_accuracy else "Unavailable")
    if status.monthly_distribution:
        st.dataframe(monthly_distribution_frame(status), use_container_width=True)
    if status.algorithms:
        st.json(status.algorithms)


def _render_historical_tab(state: UIState) -> None:
    st.subheader("Historical prices")
    if st.button("Load historical prices"):
        result = state.controller.load_historical()
        if not result.ok:
            state.notify("error", f"Historical prices request failed: {result.error}")

    series = state.controller.snapshot().historical
    if series is None:
        st.info("Load historical prices to populate this view.")
        return
    cols = st.columns(3)
    cols[0].metric("Data points", series.statistics.count)
    cols[1].metric("Average price", f"{series.statistics.avg_price:.2f}")
    cols[2].metric("Volatility", "--" if series.statistics.volatility is None else f"{series.statistics.volatility:.2f}")
    if series.accuracy is not None:
        st.caption(f"Prediction accuracy: R² = {series.accuracy.r2}, MAE = {series.accuracy.mae}")
    st.dataframe(historical_frame(series), use_container_width=True)
    st.download_button(
        "Export CSV",
        data=to_csv(historical_rows(series)),
        file_name="historical_prices.csv",
        mime="text/csv",
    )


def _render_workflow_tab(state: UIState) -> None:
    controller = state.controller
    st.subheader("Dataset upload")
    uploaded = st.file_uploader("Dataset", type=["xlsx", "xls", "csv"])
    if uploaded is not None and st.button("Upload dataset"):
        state.uploaded_name = uploaded.name
        _invoke(state, lambda: controller.start_upload(upload_from_widget(uploaded)))

    snapshot = controller.snapshot()
    if snapshot.dataset is not None:
        dataset = snapshot.dataset
        cols = st.columns(4)
        cols[0].metric("Rows", dataset.row_count)
        cols[1].metric("Columns", dataset.column_count)
        cols[2].metric("Size (KB)", dataset.size_kb)
        cols[3].metric("Validation", "Passed" if dataset.is_valid else "Needs review")
        if dataset.time_columns:
            st.caption(f"Time columns: {', '.join(dataset.time_columns)}")
        if dataset.price_columns:
            st.caption(f"Price columns: {', '.join(dataset.price_columns)}")

    st.subheader("Price prediction")
    if st.button("Run prediction", disabled=not controller.can_predict()):
        _invoke(state, controller.run_prediction)

    prediction = controller.snapshot().prediction
    if prediction is not None:
        summary = prediction_summary(prediction)
        cols = st.columns(4)
        cols[0].metric("Points", summary["points"])
        cols[1].metric(
            "Average price",
            "--" if summary["average_price"] is None else f"{summary['average_price']:.2f}",
        )
        cols[2].metric("R²", f"{summary['r2']:.3f}")
        cols[3].metric("MAE", summary["mae"])
        if prediction.ensemble is not None:
            st.caption(f"Ensemble: {', '.join(prediction.ensemble.selected_models)}")
        if prediction.validation is not None and prediction.validation.message:
            st.caption(prediction.validation.message)
        st.dataframe(predictions_frame(prediction), use_container_width=True)
        st.download_button(
            "Download predictions",
            data=to_csv(prediction_rows(prediction)),
            file_name="predictions.csv",
            mime="text/csv",
        )

    st.subheader("Bid optimization")
    busy = controller.current_state() is WorkflowState.OPTIMIZING
    label = "Optimizing..." if busy else "Optimize bid"
    if st.button(label, disabled=not controller.can_optimize()):
        _invoke(state, controller.run_optimization)

    snapshot = controller.snapshot()
    if snapshot.optimization is not None and snapshot.prediction is not None:
        optimization = snapshot.optimization
        cols = st.columns(4)
        cols[0].metric("Optimal price", optimization.optimal_price)
        cols[1].metric("Optimal power (MW)", optimization.optimal_power)
        cols[2].metric("Expected revenue", optimization.expected_revenue)
        cols[3].metric(
            "Converged",
            f"{optimization.convergence.converged_points}/{optimization.convergence.total_points}",
        )
        if optimization.algorithm is not None and optimization.algorithm.name:
            st.caption(f"Algorithm: {optimization.algorithm.name}")
        st.warning("Actual revenue may differ as market conditions change.")
        st.download_button(
            "Download bidding schedule",
            data=to_csv(bidding_schedule_rows(snapshot.prediction, optimization)),
            file_name="bidding_schedule.csv",
            mime="text/csv",
        )


def _render_notices(state: UIState) -> None:
    for notice in state.drain_notices():
        getattr(st, notice.level, st.info)(notice.message)


def main() -> None:
    st.set_page_config(page_title="Power Bidding", layout="wide")
    st.title("Power Market Prediction & Bid Optimization")

    state = get_state()
    _render_sidebar(state)
    st.caption(f"Workflow state: {state_label(state.controller.current_state())}")

    tab_status, tab_historical, tab_workflow = st.tabs(
        ["Database status", "Historical prices", "Predict & Optimize"]
    )
    with tab_status:
        _render_status_tab(state)
    with tab_historical:
        _render_historical_tab(state)
    with tab_workflow:
        _render_workflow_tab(state)

    _render_notices(state)


if __name__ == "__main__":
    main()
