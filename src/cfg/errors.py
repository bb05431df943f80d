from __future__ import annotations


class CfgValidationError(ValueError):
    def __init__(self, code: str, field: str, value: object) -> None:
        super().__init__(f"{code}: field={field}, value={value}")
        self.code = code
        self.field = field
        self.value = value


class CfgValueInvalidError(CfgValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("CFG_VALUE_INVALID", field, value)


class CfgChoiceInvalidError(CfgValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("CFG_CHOICE_INVALID", field, value)
