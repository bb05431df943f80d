from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from jdb.models import Condition

from .models import ConditionOverlay

_LOGGER = logging.getLogger("invsim.cia.overlays")


def parse_condition_value(value: str) -> Decimal | None:
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def build_condition_overlays(conditions: Iterable[Condition], point_count: int) -> list[ConditionOverlay]:
    """One horizontal series per active sell-on-price condition, numbered by list position."""
    overlays: list[ConditionOverlay] = []
    for position, condition in enumerate(conditions, start=1):
        if not condition.is_active or condition.type != "sell" or condition.metric != "price":
            continue
        price = parse_condition_value(condition.value)
        if price is None:
            _LOGGER.debug(
                "Skipped non-numeric sell condition: condition_id=%s value=%r",
                condition.condition_id,
                condition.value,
            )
            continue
        overlays.append(
            ConditionOverlay(
                name=f"Sell condition {position}: {condition.value.strip()}",
                condition_id=condition.condition_id,
                value=price,
                data=[price] * point_count,
            )
        )
    return overlays


def buy_condition_rows(conditions: Iterable[Condition]) -> list[dict[str, Any]]:
    return [
        {
            "conditionId": condition.condition_id,
            "checkpointId": condition.checkpoint_id,
            "metric": condition.metric,
            "value": condition.value,
        }
        for condition in conditions
        if condition.is_active and condition.type == "buy"
    ]
