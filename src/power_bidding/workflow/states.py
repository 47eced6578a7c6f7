"""Workflow states, stages, and the transition rules between them."""

from __future__ import annotations

import enum


class Stage(str, enum.Enum):
    UPLOAD = "upload"
    PREDICT = "predict"
    OPTIMIZE = "optimize"


class WorkflowState(str, enum.Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    UPLOAD_FAILED = "upload_failed"
    UPLOADED = "uploaded"
    PREDICTING = "predicting"
    PREDICT_FAILED = "predict_failed"
    PREDICTED = "predicted"
    OPTIMIZING = "optimizing"
    OPTIMIZE_FAILED = "optimize_failed"
    OPTIMIZED = "optimized"

    @property
    def is_in_flight(self) -> bool:
        return self in IN_FLIGHT_STATES

    @property
    def is_failed(self) -> bool:
        return self in {
            WorkflowState.UPLOAD_FAILED,
            WorkflowState.PREDICT_FAILED,
            WorkflowState.OPTIMIZE_FAILED,
        }


IN_FLIGHT_STATES = frozenset(
    {WorkflowState.UPLOADING, WorkflowState.PREDICTING, WorkflowState.OPTIMIZING}
)

# (in flight, succeeded, failed) per stage.
STAGE_STATES: dict[Stage, tuple[WorkflowState, WorkflowState, WorkflowState]] = {
    Stage.UPLOAD: (WorkflowState.UPLOADING, WorkflowState.UPLOADED, WorkflowState.UPLOAD_FAILED),
    Stage.PREDICT: (WorkflowState.PREDICTING, WorkflowState.PREDICTED, WorkflowState.PREDICT_FAILED),
    Stage.OPTIMIZE: (WorkflowState.OPTIMIZING, WorkflowState.OPTIMIZED, WorkflowState.OPTIMIZE_FAILED),
}

# States from which each stage may be started.
STAGE_ENTRY_STATES: dict[Stage, frozenset[WorkflowState]] = {
    Stage.UPLOAD: frozenset(WorkflowState) - IN_FLIGHT_STATES,
    Stage.PREDICT: frozenset({WorkflowState.UPLOADED, WorkflowState.PREDICT_FAILED}),
    Stage.OPTIMIZE: frozenset({WorkflowState.PREDICTED, WorkflowState.OPTIMIZE_FAILED}),
}


def in_flight_state(stage: Stage) -> WorkflowState:
    return STAGE_STATES[stage][0]


def success_state(stage: Stage) -> WorkflowState:
    return STAGE_STATES[stage][1]


def failed_state(stage: Stage) -> WorkflowState:
    return STAGE_STATES[stage][2]


def can_enter(stage: Stage, state: WorkflowState) -> bool:
    """True if ``stage`` may be started while the workflow is in ``state``."""
    return state in STAGE_ENTRY_STATES[stage]
