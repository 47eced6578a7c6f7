"""Workflow state machine, result cache, and stage controller."""

from power_bidding.workflow.cache import ResultCache, WorkflowSnapshot
from power_bidding.workflow.controller import (
    DATASET_INVALID_WARNING,
    DATASET_NOT_READY,
    PREDICTION_NOT_READY,
    StageController,
    StageOutcome,
)
from power_bidding.workflow.states import Stage, WorkflowState

__all__ = [
    "ResultCache",
    "WorkflowSnapshot",
    "StageController",
    "StageOutcome",
    "Stage",
    "WorkflowState",
    "DATASET_INVALID_WARNING",
    "DATASET_NOT_READY",
    "PREDICTION_NOT_READY",
]
