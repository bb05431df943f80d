from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class QpaErrorPayload:
    code: str
    message: str
    retryable: bool
    source: str = "QPA"
    details: dict[str, Any] | None = None


class QpaError(RuntimeError):
    def __init__(self, payload: QpaErrorPayload) -> None:
        super().__init__(f"{payload.code}: {payload.message}")
        self.payload = payload

    @property
    def code(self) -> str:
        return self.payload.code

    @property
    def retryable(self) -> bool:
        return self.payload.retryable


class QpaNoValidDataError(QpaError):
    def __init__(self, symbol: str, total: int) -> None:
        super().__init__(
            QpaErrorPayload(
                code="QPA_NO_VALID_DATA",
                message="No valid chart data found after filtering",
                retryable=False,
                details={"symbol": symbol, "total": total},
            )
        )


def make_qpa_error(code: str, message: str, retryable: bool, details: dict[str, Any] | None = None) -> QpaError:
    return QpaError(QpaErrorPayload(code=code, message=message, retryable=retryable, details=details))
