from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable
from uuid import uuid4

from jdb.models import Checkpoint, Condition, JournalEntry, PnlRecord, Review, Simulation, Stock
from jdb.repository import JournalRepository
from pcr.service import stock_from_meta
from qpa.contracts import QuoteSource
from qpa.errors import QpaError

from .errors import SlmNotFoundError, SlmValidationError
from .models import SimulationDetail
from .state_machine import check_transition, validate_status
from .validators import (
    filter_valid_conditions,
    normalize_symbol,
    parse_date,
    parse_decimal,
    parse_positive_decimal,
    parse_rating,
    require_text,
    validate_date_range,
)

INITIAL_CHECKPOINT_NOTE = "Initial checkpoint at simulation start"


class SimulationService:
    def __init__(
        self,
        repository: JournalRepository,
        *,
        quote_source: QuoteSource | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = repository
        self.quote_source = quote_source
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))
        self._logger = logging.getLogger("invsim.slm")

    def require_simulation(self, simulation_id: str) -> Simulation:
        simulation = self.repository.get_simulation(simulation_id)
        if simulation is None:
            raise SlmNotFoundError("simulationId", simulation_id, "Simulation not found")
        return simulation

    def _ensure_stock(self, symbol: str, company_name: str | None) -> Stock:
        name = (company_name or "").strip()
        existing = self.repository.get_stock(symbol)
        if existing is not None:
            if name and existing.name != name:
                self.repository.rename_stock(symbol, name)
                self._logger.info("Renamed stock: symbol=%s name=%s", symbol, name)
                return Stock(symbol=symbol, name=name, sector=existing.sector, industry=existing.industry)
            return existing

        meta = None
        if self.quote_source is not None:
            try:
                meta = self.quote_source.fetch_chart(symbol).meta
            except QpaError as exc:
                self._logger.warning("Quote lookup failed, registering stock with fallbacks: symbol=%s error=%s", symbol, exc)
        stock = stock_from_meta(symbol, meta, preferred_name=name)
        self.repository.insert_stock(stock)
        return stock

    def create(
        self,
        *,
        symbol: Any,
        initial_capital: Any,
        start_date: Any,
        end_date: Any,
        conditions: Iterable[dict[str, Any]] | None,
        company_name: str | None = None,
    ) -> Simulation:
        normalized = normalize_symbol(symbol)
        capital = parse_positive_decimal("initialCapital", initial_capital)
        start = parse_date("startDate", start_date)
        end = parse_date("endDate", end_date)
        validate_date_range(start, end)
        drafts = filter_valid_conditions(conditions or [])
        if not drafts:
            raise SlmValidationError("tradingConditions", [], "At least one valid trading condition is required")

        self._ensure_stock(normalized, company_name)

        now = self._now_fn()
        simulation = Simulation(
            simulation_id=str(uuid4()),
            symbol=normalized,
            initial_capital=capital,
            start_date=start,
            end_date=end,
            status="active",
            created_at=now,
            updated_at=now,
        )
        checkpoint = Checkpoint(
            checkpoint_id=str(uuid4()),
            simulation_id=simulation.simulation_id,
            checkpoint_date=start,
            checkpoint_type="initial",
            note=INITIAL_CHECKPOINT_NOTE,
            created_at=now,
        )
        rows = [
            Condition(
                condition_id=str(uuid4()),
                checkpoint_id=checkpoint.checkpoint_id,
                type=draft.type,
                metric=draft.metric,
                value=draft.value,
                is_active=True,
                updated_at=now,
            )
            for draft in drafts
        ]
        self.repository.create_simulation(simulation, checkpoint, rows)
        self._logger.info(
            "Created simulation: simulation_id=%s symbol=%s conditions=%s",
            simulation.simulation_id,
            normalized,
            len(rows),
        )
        return simulation

    def delete(self, simulation_id: Any) -> dict[str, int]:
        simulation_id = require_text("simulationId", simulation_id)
        self.require_simulation(simulation_id)
        deleted = self.repository.delete_simulation_cascade(simulation_id)
        self._logger.info("Deleted simulation: simulation_id=%s rows=%s", simulation_id, deleted)
        return deleted

    def list_simulations(self, status: str | None = None) -> list[tuple[Simulation, Stock]]:
        return self.repository.list_simulations(validate_status(status) if status else None)

    def get(self, simulation_id: str) -> SimulationDetail:
        simulation = self.require_simulation(simulation_id)
        return SimulationDetail(
            simulation=simulation,
            stock=self.repository.get_stock(simulation.symbol),
            checkpoints=self.repository.list_checkpoints(simulation_id),
            conditions=self.repository.list_conditions(simulation_id, active_only=True),
            hypotheses=self.repository.list_simulation_hypotheses(simulation_id),
            pnl_records=self.repository.list_pnl_records(simulation_id),
            journal_entries=self.repository.list_journal_entries(simulation_id),
            reviews=self.repository.list_reviews(simulation_id),
        )

    def update_status(self, simulation_id: str, status: Any) -> Simulation:
        next_status = validate_status(require_text("status", status))
        simulation = self.require_simulation(simulation_id)
        check_transition(simulation.status, next_status)

        now = self._now_fn()
        self.repository.update_simulation_status(simulation_id, next_status, now)
        self._logger.info(
            "Simulation status changed: simulation_id=%s from=%s to=%s",
            simulation_id,
            simulation.status,
            next_status,
        )
        return self.require_simulation(simulation_id)

    def add_journal_entry(self, simulation_id: str, *, content: Any, entry_date: Any = None) -> JournalEntry:
        self.require_simulation(simulation_id)
        now = self._now_fn()
        entry = JournalEntry(
            journal_id=str(uuid4()),
            simulation_id=simulation_id,
            entry_date=parse_date("entryDate", entry_date) if entry_date else now.date(),
            content=require_text("content", content),
            created_at=now,
        )
        self.repository.insert_journal_entry(entry)
        return entry

    def add_review(self, simulation_id: str, *, content: Any, rating: Any = None) -> Review:
        self.require_simulation(simulation_id)
        review = Review(
            review_id=str(uuid4()),
            simulation_id=simulation_id,
            content=require_text("content", content),
            rating=parse_rating(rating),
            created_at=self._now_fn(),
        )
        self.repository.insert_review(review)
        return review

    def record_pnl(
        self,
        *,
        checkpoint_id: Any,
        price_date: Any,
        position_size: Any,
        realized_pl: Any = 0,
        unrealized_pl: Any = 0,
    ) -> PnlRecord:
        checkpoint_id = require_text("checkpointId", checkpoint_id)
        day: date = parse_date("priceDate", price_date)
        size = parse_decimal("positionSize", position_size)
        realized = parse_decimal("realizedPl", realized_pl)
        unrealized = parse_decimal("unrealizedPl", unrealized_pl)

        checkpoint = self.repository.get_checkpoint(checkpoint_id)
        if checkpoint is None:
            raise SlmNotFoundError("checkpointId", checkpoint_id, "Checkpoint not found")
        simulation = self.require_simulation(checkpoint.simulation_id)
        price = self.repository.get_stock_price(simulation.symbol, day)
        if price is None:
            raise SlmNotFoundError("priceDate", day.isoformat(), "No stock price recorded for that date")

        record = PnlRecord(
            pnl_id=str(uuid4()),
            checkpoint_id=checkpoint_id,
            stock_price_id=price.stock_price_id,
            position_size=size,
            realized_pl=realized,
            unrealized_pl=unrealized,
            recorded_at=self._now_fn(),
        )
        self.repository.insert_pnl_record(record)
        return record
