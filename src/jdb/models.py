from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

SimulationStatus = Literal["active", "completed", "paused", "cancelled"]
CheckpointType = Literal["initial", "manual", "auto_buy", "auto_sell"]
ConditionType = Literal["buy", "sell"]
FactorType = Literal["positive", "negative"]


@dataclass(frozen=True)
class Stock:
    symbol: str
    name: str
    sector: str
    industry: str


@dataclass(frozen=True)
class Simulation:
    simulation_id: str
    symbol: str
    initial_capital: Decimal
    start_date: date
    end_date: date
    status: SimulationStatus
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Checkpoint:
    checkpoint_id: str
    simulation_id: str
    checkpoint_date: date
    checkpoint_type: CheckpointType
    note: str
    created_at: datetime


@dataclass(frozen=True)
class Condition:
    condition_id: str
    checkpoint_id: str
    type: ConditionType
    metric: str
    value: str
    is_active: bool
    updated_at: datetime


@dataclass(frozen=True)
class Hypothesis:
    hypothesis_id: str
    checkpoint_id: str
    description: str
    factor_type: FactorType
    price_impact: int
    confidence_level: int
    is_active: bool
    updated_at: datetime

    @property
    def risk_score(self) -> int:
        return self.price_impact * self.confidence_level


@dataclass(frozen=True)
class StockPrice:
    stock_price_id: str
    symbol: str
    price_date: date
    open: Decimal
    close: Decimal
    high: Decimal
    low: Decimal
    volume: int
    last_updated: datetime


@dataclass(frozen=True)
class PnlRecord:
    pnl_id: str
    checkpoint_id: str
    stock_price_id: str
    position_size: Decimal
    realized_pl: Decimal
    unrealized_pl: Decimal
    recorded_at: datetime


@dataclass(frozen=True)
class JournalEntry:
    journal_id: str
    simulation_id: str
    entry_date: date
    content: str
    created_at: datetime


@dataclass(frozen=True)
class Review:
    review_id: str
    simulation_id: str
    content: str
    rating: int | None
    created_at: datetime


@dataclass(frozen=True)
class CheckpointSummary:
    checkpoint: Checkpoint
    hypothesis_count: int
    condition_count: int
    pnl_count: int
