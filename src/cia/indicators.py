from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Literal, Sequence

GapMode = Literal["zero_fill", "skip"]

DEFAULT_PERIODS: tuple[int, ...] = (5, 10, 20, 30)
MA_QUANTUM = Decimal("0.001")
WIRE_SENTINEL = "-"


def _round(value: Decimal) -> Decimal:
    return value.quantize(MA_QUANTUM, rounding=ROUND_HALF_UP)


def moving_average(
    closes: Sequence[Decimal | None],
    period: int,
    gap_mode: GapMode = "zero_fill",
) -> list[Decimal | None]:
    """Trailing simple moving average; None until a full window is available.

    ``zero_fill`` counts a missing close as 0 and keeps ``period`` as the divisor.
    ``skip`` averages only the closes present in the window.
    """
    if period <= 0:
        raise ValueError(f"period must be positive: {period}")
    if gap_mode not in ("zero_fill", "skip"):
        raise ValueError(f"unknown gap mode: {gap_mode}")

    result: list[Decimal | None] = []
    for index in range(len(closes)):
        if index < period - 1:
            result.append(None)
            continue
        window = closes[index - period + 1 : index + 1]
        if gap_mode == "zero_fill":
            total = sum((value if value is not None else Decimal("0") for value in window), Decimal("0"))
            result.append(_round(total / period))
            continue
        present = [value for value in window if value is not None]
        if not present:
            result.append(None)
            continue
        result.append(_round(sum(present, Decimal("0")) / len(present)))
    return result


def compute_moving_averages(
    closes: Sequence[Decimal | None],
    periods: Sequence[int] = DEFAULT_PERIODS,
    gap_mode: GapMode = "zero_fill",
) -> dict[int, list[Decimal | None]]:
    return {period: moving_average(closes, period, gap_mode) for period in dict.fromkeys(periods)}


def to_wire(values: Sequence[Decimal | None]) -> list[float | str]:
    return [WIRE_SENTINEL if value is None else float(value) for value in values]
