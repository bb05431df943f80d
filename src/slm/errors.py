from __future__ import annotations


class SlmError(ValueError):
    def __init__(self, code: str, field: str, value: object, message: str) -> None:
        super().__init__(f"{code}: field={field}, value={value}")
        self.code = code
        self.field = field
        self.value = value
        self.message = message


class SlmValidationError(SlmError):
    def __init__(self, field: str, value: object, message: str) -> None:
        super().__init__("SLM_VALIDATION_FAILED", field, value, message)


class SlmNotFoundError(SlmError):
    def __init__(self, field: str, value: object, message: str) -> None:
        super().__init__("SLM_NOT_FOUND", field, value, message)


class SlmInvalidTransitionError(SlmError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            "SLM_INVALID_TRANSITION",
            "status",
            target,
            f"Cannot change status from {current} to {target}",
        )


class SlmInitialCheckpointError(SlmError):
    def __init__(self, checkpoint_id: str, message: str) -> None:
        super().__init__("SLM_INITIAL_CHECKPOINT_PROTECTED", "checkpointId", checkpoint_id, message)


def map_slm_error(error: SlmError) -> tuple[int, str]:
    if isinstance(error, SlmNotFoundError):
        return 404, error.message
    return 400, error.message
