from __future__ import annotations

from jdb.models import SimulationStatus

from .errors import SlmInvalidTransitionError, SlmValidationError

ALLOWED_TRANSITIONS: dict[SimulationStatus, set[SimulationStatus]] = {
    "active": {"completed", "paused", "cancelled"},
    "paused": {"active", "completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def validate_status(status: str) -> SimulationStatus:
    if status not in ALLOWED_TRANSITIONS:
        raise SlmValidationError("status", status, "status must be one of: " + ", ".join(ALLOWED_TRANSITIONS))
    return status  # type: ignore[return-value]


def check_transition(current: SimulationStatus, next_status: SimulationStatus) -> None:
    if next_status not in ALLOWED_TRANSITIONS[current]:
        raise SlmInvalidTransitionError(current=current, target=next_status)
