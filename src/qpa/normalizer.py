from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from .contracts import NormalizedSeries, PricePoint, RawChartPayload, RejectedBar
from .errors import QpaNoValidDataError

_LOGGER = logging.getLogger("invsim.qpa.normalizer")

MIN_YEAR = 2000
MAX_YEARS_AHEAD = 5
MAX_INTRADAY_MOVE = Decimal("0.9")
MAX_DAY_OVER_DAY_MOVE = Decimal("0.5")
STALE_WARNING_DAYS = 365


def to_price(value: Any) -> Decimal | None:
    """Positive finite Decimal, or None for null/NaN/non-numeric/non-positive input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite() or parsed <= 0:
        return None
    return parsed


def _to_volume(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return 0
    if not parsed.is_finite() or parsed < 0:
        return 0
    return int(parsed)


def _at(values: list[Any], index: int) -> Any:
    return values[index] if index < len(values) else None


def _to_datetime(timestamp: Any) -> datetime | None:
    if timestamp is None or isinstance(timestamp, bool):
        return None
    try:
        return datetime.fromtimestamp(float(timestamp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def check_candle(open_price: Decimal, high: Decimal, low: Decimal, close: Decimal) -> str | None:
    if high < max(open_price, close) or low > min(open_price, close):
        return "candle_inconsistent"
    if abs(close - open_price) / open_price > MAX_INTRADAY_MOVE:
        return "intraday_move_too_large"
    return None


def normalize_chart(
    payload: RawChartPayload,
    *,
    now_fn: Callable[[], datetime] | None = None,
) -> NormalizedSeries:
    now = (now_fn or (lambda: datetime.now(timezone.utc)))()
    max_year = now.year + MAX_YEARS_AHEAD
    symbol = payload.meta.symbol

    moments = [_to_datetime(timestamp) for timestamp in payload.timestamps]
    order = sorted(range(len(moments)), key=lambda index: (moments[index] is None, moments[index] or now))

    by_date: dict[date, PricePoint] = {}
    rejected: list[RejectedBar] = []
    previous_close: Decimal | None = None

    def _reject(index: int, reason: str) -> None:
        timestamp = payload.timestamps[index]
        rejected.append(RejectedBar(index=index, timestamp=timestamp, reason=reason))
        _LOGGER.warning("Rejected bar: symbol=%s index=%s timestamp=%s reason=%s", symbol, index, timestamp, reason)

    for index in order:
        moment = moments[index]
        if moment is None or moment.year < MIN_YEAR or moment.year > max_year:
            _reject(index, "date_out_of_range")
            continue

        open_price = to_price(_at(payload.opens, index))
        high = to_price(_at(payload.highs, index))
        low = to_price(_at(payload.lows, index))
        close = to_price(_at(payload.closes, index))
        if open_price is None or high is None or low is None or close is None:
            _reject(index, "price_missing_or_non_positive")
            continue

        candle_issue = check_candle(open_price, high, low, close)
        if candle_issue is not None:
            _reject(index, candle_issue)
            continue

        if previous_close is not None and abs(close - previous_close) / previous_close > MAX_DAY_OVER_DAY_MOVE:
            _reject(index, "day_over_day_move_too_large")
            continue

        point = PricePoint(
            date=moment.date(),
            timestamp=int(moment.timestamp()),
            open=open_price,
            high=high,
            low=low,
            close=close,
            volume=_to_volume(_at(payload.volumes, index)),
        )
        by_date[point.date] = point
        previous_close = close

    points = sorted(by_date.values(), key=lambda item: item.date)
    if not points:
        raise QpaNoValidDataError(symbol=symbol, total=len(payload.timestamps))

    age_days = (now.date() - points[-1].date).days
    if age_days > STALE_WARNING_DAYS:
        _LOGGER.warning("Latest bar is %s days old: symbol=%s date=%s", age_days, symbol, points[-1].date.isoformat())

    return NormalizedSeries(symbol=symbol, points=points, rejected=rejected, total=len(payload.timestamps))
