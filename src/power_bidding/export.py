"""CSV export of cached workflow results."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from power_bidding.errors import ExportShapeError
from power_bidding.models import HistoricalSeries, OptimizationResult, PredictionResult

LIST_SEPARATOR = ";"


def to_csv(rows: Sequence[Mapping[str, Any]]) -> str:
    """Render records as CSV text.

    The header is the first record's keys in iteration order. Every later
    record must carry the identical key sequence. A mismatch, or a first
    record with no keys at all, raises :class:`ExportShapeError` rather
    than being padded. Fields are quoted only when they contain a comma,
    quote, or newline.
    """
    if not rows:
        return ""
    header = list(rows[0].keys())
    if not header:
        raise ExportShapeError(0, header, header)
    table: list[list[str]] = []
    for index, row in enumerate(rows):
        keys = list(row.keys())
        if keys != header:
            raise ExportShapeError(index, header, keys)
        table.append([_stringify(row[key]) for key in header])

    frame = pd.DataFrame(table, columns=[str(key) for key in header], dtype=object)
    return frame.to_csv(index=False, lineterminator="\n")


def write_csv(rows: Sequence[Mapping[str, Any]], path: str | Path) -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(to_csv(rows), encoding="utf-8")
    return out_path


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return LIST_SEPARATOR.join(_stringify(item) for item in value)
    return str(value)


def prediction_rows(result: PredictionResult) -> list[dict[str, Any]]:
    return [
        {
            "time": point.time,
            "predicted_price": point.predicted_price,
            "confidence_lower": point.confidence_lower,
            "confidence_upper": point.confidence_upper,
            "models_used": point.models_used,
        }
        for point in result.points
    ]


def historical_rows(series: HistoricalSeries) -> list[dict[str, Any]]:
    """Historical rows, with the index-aligned predicted price when the series has predictions."""
    with_predictions = bool(series.predictions)
    rows: list[dict[str, Any]] = []
    for index, point in enumerate(series.points):
        row: dict[str, Any] = {
            "time": point.time,
            "realtime_price": point.realtime_price,
            "dayahead_price": point.dayahead_price,
            "system_load": point.system_load,
            "renewable_output": point.renewable_output,
        }
        if with_predictions:
            aligned = series.predictions[index] if index < len(series.predictions) else None
            row["predicted_price"] = aligned.predicted_price if aligned is not None else None
        rows.append(row)
    return rows


def bidding_schedule_rows(
    prediction: PredictionResult,
    optimization: OptimizationResult,
) -> list[dict[str, Any]]:
    """Per-interval bidding schedule applying the optimal bid over the forecast horizon."""
    return [
        {
            "time": point.time,
            "predicted_price": point.predicted_price,
            "bid_price": optimization.optimal_price,
            "bid_power": optimization.optimal_power,
        }
        for point in prediction.points
    ]
