from .errors import (
    SlmError,
    SlmInitialCheckpointError,
    SlmInvalidTransitionError,
    SlmNotFoundError,
    SlmValidationError,
    map_slm_error,
)
from .journal import JournalService
from .models import CheckpointOverview, ConditionDraft, HypothesisDraft, SimulationDetail
from .service import SimulationService
from .state_machine import ALLOWED_TRANSITIONS, check_transition

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CheckpointOverview",
    "ConditionDraft",
    "HypothesisDraft",
    "JournalService",
    "SimulationDetail",
    "SimulationService",
    "SlmError",
    "SlmInitialCheckpointError",
    "SlmInvalidTransitionError",
    "SlmNotFoundError",
    "SlmValidationError",
    "check_transition",
    "map_slm_error",
]
