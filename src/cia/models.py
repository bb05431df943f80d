from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from jdb.models import Checkpoint, StockPrice


@dataclass(frozen=True)
class ChartBar:
    date: date
    timestamp: int | None
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal | None
    volume: int = 0

    @classmethod
    def from_stock_price(cls, price: StockPrice) -> "ChartBar":
        return cls(
            date=price.price_date,
            timestamp=None,
            open=price.open,
            high=price.high,
            low=price.low,
            close=price.close,
            volume=price.volume,
        )


@dataclass(frozen=True)
class AlignedBar:
    bar: ChartBar
    checkpoint: Checkpoint | None


@dataclass(frozen=True)
class ConditionOverlay:
    name: str
    condition_id: str
    value: Decimal
    data: list[Decimal]
