"""Exception taxonomy for the bidding workflow client."""

from __future__ import annotations

from typing import Any


class PowerBiddingError(Exception):
    """Base exception for the bidding workflow client."""


class ConfigValidationError(PowerBiddingError, ValueError):
    """A configuration edit was rejected; the store is left unchanged."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class WorkflowError(PowerBiddingError):
    """A stage call was refused before any state change."""


class PreconditionError(WorkflowError):
    """A stage was invoked before the stage it depends on succeeded."""

    def __init__(self, reason: str, state: Any = None) -> None:
        message = reason if state is None else f"{reason} (state={state})"
        super().__init__(message)
        self.reason = reason
        self.state = state


class BusyError(WorkflowError):
    """A call was attempted while another call is still in flight."""

    def __init__(self, in_flight: Any) -> None:
        super().__init__(f"request already in flight: {in_flight}")
        self.in_flight = in_flight


class InvalidUploadError(WorkflowError):
    """The dataset file failed local checks and was not sent."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ExportShapeError(PowerBiddingError, ValueError):
    """A row handed to the CSV exporter does not match the header row."""

    def __init__(self, row_index: int, expected: list[str], actual: list[str]) -> None:
        super().__init__(
            f"row {row_index} keys {actual} do not match header {expected}"
        )
        self.row_index = row_index
        self.expected = expected
        self.actual = actual
