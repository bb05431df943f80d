from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from .errors import SlmValidationError
from .models import ConditionDraft, HypothesisDraft

CONDITION_TYPES = ("buy", "sell")
FACTOR_TYPES = ("positive", "negative")
USER_CHECKPOINT_TYPES = ("manual", "auto_buy", "auto_sell")
PRICE_IMPACT_RANGE = (-5, 5)
CONFIDENCE_RANGE = (1, 5)
RATING_RANGE = (1, 5)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def condition_value(value: Any) -> str:
    """Condition values are stored as text; JSON numbers keep their decimal form."""
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float, Decimal)):
        parsed = Decimal(str(value))
        return format(parsed, "f") if parsed.is_finite() else ""
    return _text(value)


def require_text(field: str, value: Any) -> str:
    text = _text(value)
    if not text:
        raise SlmValidationError(field, value, f"{field} is required")
    return text


def normalize_symbol(symbol: Any) -> str:
    return require_text("symbol", symbol).upper()


def parse_decimal(field: str, value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        raise SlmValidationError(field, value, f"{field} must be a number")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise SlmValidationError(field, value, f"{field} must be a number") from None
    if not parsed.is_finite():
        raise SlmValidationError(field, value, f"{field} must be a number")
    return parsed


def parse_positive_decimal(field: str, value: Any) -> Decimal:
    parsed = parse_decimal(field, value)
    if parsed <= 0:
        raise SlmValidationError(field, value, f"{field} must be greater than 0")
    return parsed


def parse_date(field: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _text(value)
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise SlmValidationError(field, value, f"{field} must be a YYYY-MM-DD date") from None


def validate_date_range(start_date: date, end_date: date) -> None:
    if start_date >= end_date:
        raise SlmValidationError("endDate", end_date.isoformat(), "End date must be after start date")


def parse_int_in_range(field: str, value: Any, bounds: tuple[int, int]) -> int:
    low, high = bounds
    if isinstance(value, bool):
        raise SlmValidationError(field, value, f"{field} must be an integer")
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise SlmValidationError(field, value, f"{field} must be an integer") from None
    if parsed < low or parsed > high:
        raise SlmValidationError(field, value, f"{field} must be between {low} and {high}")
    return parsed


def parse_condition(raw: dict[str, Any]) -> ConditionDraft:
    condition_type = require_text("type", raw.get("type"))
    if condition_type not in CONDITION_TYPES:
        raise SlmValidationError("type", condition_type, "type must be 'buy' or 'sell'")
    return ConditionDraft(
        type=condition_type,  # type: ignore[arg-type]
        metric=require_text("metric", raw.get("metric")),
        value=require_text("value", condition_value(raw.get("value"))),
    )


def filter_valid_conditions(raw_conditions: Iterable[dict[str, Any]]) -> list[ConditionDraft]:
    """Drop entries missing a type, metric or non-blank value."""
    drafts: list[ConditionDraft] = []
    for raw in raw_conditions:
        if not isinstance(raw, dict):
            continue
        if not (_text(raw.get("type")) and _text(raw.get("metric")) and condition_value(raw.get("value"))):
            continue
        drafts.append(parse_condition(raw))
    return drafts


def parse_hypothesis(raw: dict[str, Any]) -> HypothesisDraft:
    factor_type = require_text("factorType", raw.get("factorType"))
    if factor_type not in FACTOR_TYPES:
        raise SlmValidationError("factorType", factor_type, "factorType must be 'positive' or 'negative'")
    return HypothesisDraft(
        description=require_text("description", raw.get("description")),
        factor_type=factor_type,  # type: ignore[arg-type]
        price_impact=parse_int_in_range("priceImpact", raw.get("priceImpact"), PRICE_IMPACT_RANGE),
        confidence_level=parse_int_in_range("confidenceLevel", raw.get("confidenceLevel"), CONFIDENCE_RANGE),
    )


def parse_checkpoint_hypotheses(raw_hypotheses: Iterable[Any]) -> list[HypothesisDraft]:
    """Accept full hypothesis objects or bare descriptions; blank descriptions are dropped."""
    drafts: list[HypothesisDraft] = []
    for raw in raw_hypotheses:
        if isinstance(raw, str):
            if raw.strip():
                drafts.append(
                    HypothesisDraft(description=raw.strip(), factor_type="positive", price_impact=0, confidence_level=1)
                )
            continue
        if isinstance(raw, dict) and _text(raw.get("description")):
            drafts.append(parse_hypothesis(raw))
    return drafts


def validate_checkpoint_type(checkpoint_type: Any) -> str:
    text = require_text("checkpointType", checkpoint_type)
    if text not in USER_CHECKPOINT_TYPES:
        raise SlmValidationError(
            "checkpointType",
            text,
            "checkpointType must be one of: " + ", ".join(USER_CHECKPOINT_TYPES),
        )
    return text


def parse_rating(value: Any) -> int | None:
    if value is None:
        return None
    return parse_int_in_range("rating", value, RATING_RANGE)
