from __future__ import annotations


class PcrValidationError(ValueError):
    def __init__(self, code: str, field: str, value: object) -> None:
        super().__init__(f"{code}: field={field}, value={value}")
        self.code = code
        self.field = field
        self.value = value


class PcrSymbolRequiredError(PcrValidationError):
    def __init__(self, value: object) -> None:
        super().__init__("PCR_SYMBOL_REQUIRED", "symbol", value)


class PcrNoValidPricesError(PcrValidationError):
    def __init__(self, total: int) -> None:
        super().__init__("PCR_NO_VALID_PRICES", "prices", total)
