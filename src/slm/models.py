from __future__ import annotations

from dataclasses import dataclass

from jdb.models import (
    Checkpoint,
    CheckpointSummary,
    Condition,
    ConditionType,
    FactorType,
    Hypothesis,
    JournalEntry,
    PnlRecord,
    Review,
    Simulation,
    Stock,
    StockPrice,
)


@dataclass(frozen=True)
class ConditionDraft:
    type: ConditionType
    metric: str
    value: str


@dataclass(frozen=True)
class HypothesisDraft:
    description: str
    factor_type: FactorType
    price_impact: int
    confidence_level: int


@dataclass(frozen=True)
class SimulationDetail:
    simulation: Simulation
    stock: Stock | None
    checkpoints: list[Checkpoint]
    conditions: list[Condition]
    hypotheses: list[Hypothesis]
    pnl_records: list[tuple[PnlRecord, StockPrice]]
    journal_entries: list[JournalEntry]
    reviews: list[Review]

    @property
    def total_risk_score(self) -> int:
        return sum(hypothesis.risk_score for hypothesis in self.hypotheses)


@dataclass(frozen=True)
class CheckpointOverview:
    summaries: list[CheckpointSummary]
    hypotheses: list[Hypothesis]
    conditions: list[Condition]
