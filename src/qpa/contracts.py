from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Protocol

Mode = Literal["mock", "live"]


@dataclass(frozen=True)
class QuoteMeta:
    symbol: str
    long_name: str | None = None
    short_name: str | None = None
    sector: str | None = None
    industry: str | None = None
    currency: str | None = None
    exchange: str | None = None
    instrument_type: str | None = None
    regular_market_price: float | None = None
    previous_close: float | None = None
    regular_market_open: float | None = None
    day_high: float | None = None
    day_low: float | None = None
    regular_market_volume: int | None = None
    fifty_two_week_high: float | None = None
    fifty_two_week_low: float | None = None
    market_cap: float | None = None
    market_time: datetime | None = None
    market_state: str | None = None
    timezone: str | None = None
    gmtoffset: int | None = None

    @property
    def display_name(self) -> str | None:
        return self.long_name or self.short_name


@dataclass(frozen=True)
class RawChartPayload:
    """Parallel arrays as the quote source delivers them; any element may be None."""

    meta: QuoteMeta
    timestamps: list[Any] = field(default_factory=list)
    opens: list[Any] = field(default_factory=list)
    highs: list[Any] = field(default_factory=list)
    lows: list[Any] = field(default_factory=list)
    closes: list[Any] = field(default_factory=list)
    volumes: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class PricePoint:
    date: date
    timestamp: int | None
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int = 0


@dataclass(frozen=True)
class RejectedBar:
    index: int
    timestamp: Any
    reason: str


@dataclass(frozen=True)
class NormalizedSeries:
    symbol: str
    points: list[PricePoint]
    rejected: list[RejectedBar]
    total: int


class QuoteSource(Protocol):
    def fetch_chart(self, symbol: str) -> RawChartPayload:
        ...
