"""Approval workflow of vacation requests.

Each of the four steps is edited on its own; completion, rejection and
progress are always derived from the current step values and never stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from .store import RecordStore, StoreError
from .taxonomy import STEP_PENDING, WORKFLOW_STEPS

logger = logging.getLogger(__name__)

VACATION_TABLE = "vacation_requests"

TERMINAL_VALUES = frozenset({"aprobado", "recibido", "listo"})

COMPLETE_VALUES: Dict[str, str] = {
    "step1_auth_manager": "aprobado",
    "step2_auth_rh": "aprobado",
    "step3_contract_signature": "recibido",
    "step4_congratulations_email": "listo",
}


class InvalidStepError(ValueError):
    """Unknown workflow step or a value outside the step's options."""


@dataclass(frozen=True)
class WorkflowSummary:
    steps: Dict[str, str]
    has_rejection: bool
    is_complete: bool
    total_progress: float
    progress_percent: float
    completed_steps: int

    @property
    def state(self) -> str:
        if self.has_rejection:
            return "rejected"
        if self.is_complete:
            return "complete"
        return "in_progress"

    @property
    def label(self) -> str:
        if self.has_rejection:
            return "Rechazado"
        if self.is_complete:
            return "Completado"
        return f"{self.completed_steps}/{len(self.steps)} pasos ({round(self.progress_percent)}%)"


def step_progress(value: Any) -> float:
    if value in TERMINAL_VALUES:
        return 1.0
    if value == "enviado":
        return 0.5
    return 0.0


def current_steps(record: Mapping[str, Any]) -> Dict[str, str]:
    return {step: record.get(step) or STEP_PENDING for step in WORKFLOW_STEPS}


def summarize_workflow(record: Mapping[str, Any]) -> WorkflowSummary:
    steps = current_steps(record)
    total = sum(step_progress(value) for value in steps.values())
    return WorkflowSummary(
        steps=steps,
        has_rejection=any(value == "rechazado" for value in steps.values()),
        is_complete=all(steps[step] == value for step, value in COMPLETE_VALUES.items()),
        total_progress=total,
        progress_percent=total / len(steps) * 100,
        # enviado adds to the percentage but is not a completed step
        completed_steps=sum(1 for value in steps.values() if value in TERMINAL_VALUES),
    )


def validate_step(step: str, value: str) -> None:
    options = WORKFLOW_STEPS.get(step)
    if options is None:
        raise InvalidStepError(f"Unknown workflow step: {step}")
    if value not in options:
        raise InvalidStepError(f"Invalid value {value!r} for {step}; expected one of {', '.join(options)}")


def apply_step_update(store: RecordStore, record_id: str, step: str, value: str) -> Dict[str, Any]:
    """Set one workflow step of a vacation request and return the stored row."""
    validate_step(step, value)
    try:
        row = store.update(VACATION_TABLE, record_id, {step: value})
    except StoreError:
        logger.warning("Workflow step %s of %s could not be set to %s", step, record_id, value)
        raise
    logger.info("Workflow step %s of %s set to %s", step, record_id, value)
    return row
