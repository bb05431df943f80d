from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence

from jdb.models import Checkpoint, Condition, StockPrice

from .aligner import align_checkpoints
from .indicators import DEFAULT_PERIODS, GapMode, compute_moving_averages, to_wire
from .models import ChartBar
from .overlays import build_condition_overlays, buy_condition_rows


def _num(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def build_chart(
    symbol: str,
    prices: Sequence[StockPrice],
    checkpoints: Sequence[Checkpoint],
    conditions: Sequence[Condition],
    *,
    periods: Sequence[int] = DEFAULT_PERIODS,
    gap_mode: GapMode = "zero_fill",
) -> dict[str, Any]:
    """Chart-ready JSON: candles as [open, close, low, high], MA series with "-" gaps."""
    aligned = align_checkpoints([ChartBar.from_stock_price(price) for price in prices], checkpoints)
    closes = [row.bar.close for row in aligned]
    averages = compute_moving_averages(closes, periods, gap_mode)
    overlays = build_condition_overlays(conditions, len(aligned))

    markers = [
        {
            "date": row.bar.date.isoformat(),
            "checkpointId": row.checkpoint.checkpoint_id,
            "checkpointType": row.checkpoint.checkpoint_type,
            "note": row.checkpoint.note,
            "close": _num(row.bar.close),
        }
        for row in aligned
        if row.checkpoint is not None
    ]

    return {
        "symbol": symbol,
        "dates": [row.bar.date.isoformat() for row in aligned],
        "candles": [
            [_num(row.bar.open), _num(row.bar.close), _num(row.bar.low), _num(row.bar.high)] for row in aligned
        ],
        "volumes": [row.bar.volume for row in aligned],
        "movingAverages": {f"MA{period}": to_wire(values) for period, values in averages.items()},
        "points": [
            {
                "date": row.bar.date.isoformat(),
                "checkpointId": row.checkpoint.checkpoint_id if row.checkpoint else None,
                "checkpointType": row.checkpoint.checkpoint_type if row.checkpoint else None,
            }
            for row in aligned
        ],
        "checkpointMarkers": markers,
        "sellOverlays": [
            {
                "name": overlay.name,
                "conditionId": overlay.condition_id,
                "value": float(overlay.value),
                "data": [float(value) for value in overlay.data],
            }
            for overlay in overlays
        ],
        "buyConditions": buy_condition_rows(conditions),
    }
