from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from jdb.bootstrap import run_migrations
from jdb.models import StockPrice
from jdb.repository import JournalRepository
from qpa.contracts import QuoteMeta, RawChartPayload
from qpa.errors import QpaError, make_qpa_error
from slm.errors import (
    SlmInitialCheckpointError,
    SlmInvalidTransitionError,
    SlmNotFoundError,
    SlmValidationError,
    map_slm_error,
)
from slm.journal import JournalService
from slm.service import INITIAL_CHECKPOINT_NOTE, SimulationService
from slm.state_machine import check_transition


class TickingClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class MetaOnlyQuoteSource:
    def __init__(self, meta: QuoteMeta | None = None, error: QpaError | None = None) -> None:
        self.meta = meta
        self.error = error
        self.calls = 0

    def fetch_chart(self, symbol: str) -> RawChartPayload:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return RawChartPayload(meta=self.meta or QuoteMeta(symbol=symbol))


def create_repo() -> JournalRepository:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    run_migrations(conn)
    return JournalRepository(conn=conn)


SELL_150 = {"type": "sell", "metric": "price", "value": "150.00"}


def _create(service: SimulationService, **overrides):
    params = {
        "symbol": "aapl",
        "initial_capital": "10000",
        "start_date": "2026-01-01",
        "end_date": "2026-12-31",
        "conditions": [SELL_150],
    }
    params.update(overrides)
    return service.create(**params)


def test_create_writes_simulation_initial_checkpoint_and_conditions() -> None:
    repo = create_repo()
    try:
        source = MetaOnlyQuoteSource(QuoteMeta(symbol="AAPL", long_name="Apple Inc.", sector="Technology"))
        service = SimulationService(repo, quote_source=source, now_fn=TickingClock())

        simulation = _create(
            service,
            conditions=[SELL_150, {"type": "buy", "metric": "price", "value": "  "}, {"metric": "price"}],
        )

        assert simulation.symbol == "AAPL"
        assert simulation.status == "active"
        assert simulation.initial_capital == Decimal("10000")
        checkpoints = repo.list_checkpoints(simulation.simulation_id)
        assert len(checkpoints) == 1
        assert checkpoints[0].checkpoint_type == "initial"
        assert checkpoints[0].checkpoint_date == date(2026, 1, 1)
        assert checkpoints[0].note == INITIAL_CHECKPOINT_NOTE
        conditions = repo.list_conditions(simulation.simulation_id)
        assert [(c.type, c.metric, c.value) for c in conditions] == [("sell", "price", "150.00")]
        stock = repo.get_stock("AAPL")
        assert stock is not None and stock.name == "Apple Inc." and stock.industry == "Unknown"
    finally:
        repo.close()


def test_create_without_valid_conditions_writes_nothing() -> None:
    repo = create_repo()
    try:
        service = SimulationService(repo, quote_source=MetaOnlyQuoteSource(), now_fn=TickingClock())

        with pytest.raises(SlmValidationError) as exc:
            _create(service, conditions=[{"type": "sell", "metric": "price", "value": ""}])

        assert exc.value.message == "At least one valid trading condition is required"
        assert repo.list_simulations() == []
        assert repo.get_stock("AAPL") is None
    finally:
        repo.close()


@pytest.mark.parametrize(
    ("overrides", "field", "message"),
    [
        ({"initial_capital": "0"}, "initialCapital", "initialCapital must be greater than 0"),
        ({"initial_capital": "abc"}, "initialCapital", "initialCapital must be a number"),
        ({"end_date": "2026-01-01"}, "endDate", "End date must be after start date"),
        ({"start_date": "01/01/2026"}, "startDate", "startDate must be a YYYY-MM-DD date"),
        ({"symbol": "  "}, "symbol", "symbol is required"),
    ],
)
def test_create_rejects_invalid_input(overrides: dict, field: str, message: str) -> None:
    repo = create_repo()
    try:
        service = SimulationService(repo, now_fn=TickingClock())

        with pytest.raises(SlmValidationError) as exc:
            _create(service, **overrides)

        assert exc.value.field == field
        assert exc.value.message == message
        assert map_slm_error(exc.value) == (400, message)
    finally:
        repo.close()


def test_create_rejects_unknown_condition_type() -> None:
    repo = create_repo()
    try:
        service = SimulationService(repo, now_fn=TickingClock())

        with pytest.raises(SlmValidationError) as exc:
            _create(service, conditions=[{"type": "hold", "metric": "price", "value": "1"}])

        assert exc.value.field == "type"
    finally:
        repo.close()


def test_company_name_renames_existing_stock() -> None:
    repo = create_repo()
    try:
        source = MetaOnlyQuoteSource(QuoteMeta(symbol="AAPL", long_name="Apple Inc."))
        service = SimulationService(repo, quote_source=source, now_fn=TickingClock())
        _create(service)

        _create(service, company_name="Apple Computer")

        assert repo.get_stock("AAPL").name == "Apple Computer"
        assert source.calls == 1
    finally:
        repo.close()


def test_quote_failure_falls_back_to_unknown_metadata() -> None:
    repo = create_repo()
    try:
        source = MetaOnlyQuoteSource(error=make_qpa_error("QPA_TIMEOUT", "timed out", True))
        service = SimulationService(repo, quote_source=source, now_fn=TickingClock())

        _create(service, symbol="zzzz")

        stock = repo.get_stock("ZZZZ")
        assert stock is not None
        assert (stock.name, stock.sector, stock.industry) == ("ZZZZ", "Unknown", "Unknown")
    finally:
        repo.close()


@pytest.mark.parametrize(
    ("current", "target"),
    [("active", "paused"), ("active", "completed"), ("active", "cancelled"), ("paused", "active"), ("paused", "cancelled")],
)
def test_allowed_transitions(current: str, target: str) -> None:
    check_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [("completed", "active"), ("completed", "paused"), ("cancelled", "active"), ("active", "active")],
)
def test_invalid_transitions(current: str, target: str) -> None:
    with pytest.raises(SlmInvalidTransitionError) as exc:
        check_transition(current, target)

    assert exc.value.message == f"Cannot change status from {current} to {target}"


def test_update_status_persists_and_completed_is_terminal() -> None:
    repo = create_repo()
    try:
        service = SimulationService(repo, now_fn=TickingClock())
        simulation = _create(service)

        paused = service.update_status(simulation.simulation_id, "paused")
        completed = service.update_status(simulation.simulation_id, "completed")

        assert paused.status == "paused"
        assert completed.status == "completed"
        assert completed.updated_at > simulation.updated_at
        with pytest.raises(SlmInvalidTransitionError):
            service.update_status(simulation.simulation_id, "active")
        with pytest.raises(SlmValidationError):
            service.update_status(simulation.simulation_id, "archived")
        with pytest.raises(SlmNotFoundError):
            service.update_status("missing", "paused")
        assert [row[0].status for row in service.list_simulations("completed")] == ["completed"]
    finally:
        repo.close()


def test_initial_checkpoint_is_protected() -> None:
    repo = create_repo()
    try:
        clock = TickingClock()
        simulation = _create(SimulationService(repo, now_fn=clock))
        journal = JournalService(repo, now_fn=clock)
        initial = repo.list_checkpoints(simulation.simulation_id)[0]

        with pytest.raises(SlmInitialCheckpointError):
            journal.delete_checkpoint(initial.checkpoint_id)
        with pytest.raises(SlmInitialCheckpointError):
            journal.update_checkpoint(initial.checkpoint_id, checkpoint_type="manual", checkpoint_date="2026-01-02")

        updated = journal.update_checkpoint(
            initial.checkpoint_id,
            checkpoint_type="initial",
            checkpoint_date="2026-01-02",
            note=" moved ",
        )
        assert updated.checkpoint_date == date(2026, 1, 2)
        assert updated.note == "moved"
        assert updated.checkpoint_type == "initial"
    finally:
        repo.close()


def test_checkpoint_create_with_hypotheses_and_conditions() -> None:
    repo = create_repo()
    try:
        clock = TickingClock()
        simulation = _create(SimulationService(repo, now_fn=clock))
        journal = JournalService(repo, now_fn=clock)

        checkpoint = journal.create_checkpoint(
            simulation_id=simulation.simulation_id,
            checkpoint_type="manual",
            checkpoint_date="2026-02-01",
            note="earnings",
            hypotheses=[
                "Services growth",
                "  ",
                {"description": "Margin pressure", "factorType": "negative", "priceImpact": -3, "confidenceLevel": 4},
            ],
            conditions=[{"type": "buy", "metric": "price", "value": "120"}, {"type": "sell"}],
        )

        hypotheses, total = journal.list_hypotheses(checkpoint.checkpoint_id)
        assert sorted(h.description for h in hypotheses) == ["Margin pressure", "Services growth"]
        assert total == -12
        bare = next(h for h in hypotheses if h.description == "Services growth")
        assert (bare.factor_type, bare.price_impact, bare.confidence_level) == ("positive", 0, 1)

        overview = journal.list_checkpoints(simulation.simulation_id)
        assert [s.checkpoint.checkpoint_type for s in overview.summaries] == ["manual", "initial"]
        assert (overview.summaries[0].hypothesis_count, overview.summaries[0].condition_count) == (2, 1)

        with pytest.raises(SlmValidationError):
            journal.create_checkpoint(
                simulation_id=simulation.simulation_id,
                checkpoint_type="initial",
                checkpoint_date="2026-02-02",
            )
        with pytest.raises(SlmNotFoundError):
            journal.create_checkpoint(simulation_id="missing", checkpoint_type="manual", checkpoint_date="2026-02-02")
    finally:
        repo.close()


def test_replace_conditions_targets_latest_checkpoint_by_default() -> None:
    repo = create_repo()
    try:
        clock = TickingClock()
        simulation = _create(SimulationService(repo, now_fn=clock))
        journal = JournalService(repo, now_fn=clock)
        later = journal.create_checkpoint(
            simulation_id=simulation.simulation_id,
            checkpoint_type="manual",
            checkpoint_date="2026-03-01",
            conditions=[{"type": "sell", "metric": "price", "value": "170"}],
        )

        checkpoint_id, rows = journal.replace_conditions(
            simulation_id=simulation.simulation_id,
            conditions=[{"type": "buy", "metric": "price", "value": "110"}, {"type": "sell", "metric": "price", "value": "180"}],
        )

        assert checkpoint_id == later.checkpoint_id
        assert len(rows) == 2
        current = journal.list_conditions(simulation.simulation_id, later.checkpoint_id)
        assert sorted(c.value for c in current) == ["110", "180"]
        assert len(journal.list_conditions(simulation.simulation_id)) == 3

        with pytest.raises(SlmValidationError):
            journal.replace_conditions(
                simulation_id=simulation.simulation_id,
                conditions=[{"type": "hold", "metric": "price", "value": "1"}],
            )
    finally:
        repo.close()


def test_update_and_delete_condition() -> None:
    repo = create_repo()
    try:
        clock = TickingClock()
        simulation = _create(SimulationService(repo, now_fn=clock))
        journal = JournalService(repo, now_fn=clock)
        condition = repo.list_conditions(simulation.simulation_id)[0]

        updated = journal.update_condition(
            condition.condition_id,
            {"type": "sell", "metric": "price", "value": "155", "isActive": "false"},
        )

        assert updated.value == "155"
        assert updated.is_active is False
        assert repo.list_conditions(simulation.simulation_id, active_only=True) == []

        journal.delete_condition(condition.condition_id)
        with pytest.raises(SlmNotFoundError):
            journal.delete_condition(condition.condition_id)
        with pytest.raises(SlmNotFoundError):
            journal.update_condition("missing", {"type": "sell", "metric": "price", "value": "1"})
    finally:
        repo.close()


def test_hypothesis_lifecycle_and_risk_totals() -> None:
    repo = create_repo()
    try:
        clock = TickingClock()
        simulations = SimulationService(repo, now_fn=clock)
        simulation = _create(simulations)
        journal = JournalService(repo, now_fn=clock)
        checkpoint_id = repo.list_checkpoints(simulation.simulation_id)[0].checkpoint_id

        first = journal.create_hypothesis(
            checkpoint_id,
            {"description": "iPhone cycle", "factorType": "positive", "priceImpact": 4, "confidenceLevel": 3},
        )
        journal.create_hypothesis(
            checkpoint_id,
            {"description": "Regulation", "factorType": "negative", "priceImpact": "-2", "confidenceLevel": "5"},
        )
        assert first.risk_score == 12
        assert journal.list_hypotheses(checkpoint_id)[1] == 2

        updated = journal.update_hypothesis(
            first.hypothesis_id,
            {"description": "iPhone cycle", "factorType": "positive", "priceImpact": 5, "confidenceLevel": 5},
        )
        assert updated.checkpoint_id == checkpoint_id
        assert updated.risk_score == 25
        assert simulations.get(simulation.simulation_id).total_risk_score == 15

        with pytest.raises(SlmValidationError):
            journal.create_hypothesis(
                checkpoint_id,
                {"description": "x", "factorType": "positive", "priceImpact": 6, "confidenceLevel": 1},
            )
        with pytest.raises(SlmValidationError):
            journal.create_hypothesis(
                checkpoint_id,
                {"description": "x", "factorType": "neutral", "priceImpact": 1, "confidenceLevel": 1},
            )

        journal.delete_hypothesis(first.hypothesis_id)
        assert journal.list_hypotheses(checkpoint_id)[1] == -10
        with pytest.raises(SlmNotFoundError):
            journal.delete_hypothesis(first.hypothesis_id)
    finally:
        repo.close()


def test_record_pnl_requires_cached_price() -> None:
    repo = create_repo()
    try:
        clock = TickingClock()
        service = SimulationService(repo, now_fn=clock)
        simulation = _create(service)
        checkpoint_id = repo.list_checkpoints(simulation.simulation_id)[0].checkpoint_id

        with pytest.raises(SlmNotFoundError) as exc:
            service.record_pnl(checkpoint_id=checkpoint_id, price_date="2026-01-02", position_size="10")
        assert map_slm_error(exc.value)[0] == 404

        repo.upsert_stock_prices(
            [
                StockPrice(
                    stock_price_id="sp-1",
                    symbol="AAPL",
                    price_date=date(2026, 1, 2),
                    open=Decimal("100.00"),
                    close=Decimal("101.50"),
                    high=Decimal("102.00"),
                    low=Decimal("99.00"),
                    volume=1000,
                    last_updated=clock.now,
                )
            ]
        )
        record = service.record_pnl(
            checkpoint_id=checkpoint_id,
            price_date="2026-01-02",
            position_size="10",
            unrealized_pl="15.00",
        )

        assert record.stock_price_id == "sp-1"
        assert record.realized_pl == Decimal("0")
        detail = service.get(simulation.simulation_id)
        assert [pair[1].close for pair in detail.pnl_records] == [Decimal("101.50")]
    finally:
        repo.close()


def test_delete_removes_simulation_and_dependents() -> None:
    repo = create_repo()
    try:
        clock = TickingClock()
        service = SimulationService(repo, now_fn=clock)
        doomed = _create(service)
        kept = _create(service)
        service.add_journal_entry(doomed.simulation_id, content="Bought the dip", entry_date="2026-01-05")
        service.add_review(doomed.simulation_id, content="Too early", rating=2)

        deleted = service.delete(doomed.simulation_id)

        assert deleted["simulations"] == 1
        assert deleted["checkpoints"] == 1
        assert deleted["conditions"] == 1
        assert deleted["journals"] == 1
        assert deleted["reviews"] == 1
        assert repo.get_simulation(doomed.simulation_id) is None
        assert repo.get_simulation(kept.simulation_id) is not None
        with pytest.raises(SlmNotFoundError):
            service.delete(doomed.simulation_id)
    finally:
        repo.close()


def test_journal_and_review_validation() -> None:
    repo = create_repo()
    try:
        service = SimulationService(repo, now_fn=TickingClock())
        simulation = _create(service)

        entry = service.add_journal_entry(simulation.simulation_id, content="  Thesis holds  ")
        assert entry.content == "Thesis holds"
        assert entry.entry_date == date(2026, 3, 2)

        with pytest.raises(SlmValidationError):
            service.add_journal_entry(simulation.simulation_id, content=" ")
        with pytest.raises(SlmValidationError):
            service.add_review(simulation.simulation_id, content="ok", rating=6)
        with pytest.raises(SlmNotFoundError):
            service.add_review("missing", content="ok")

        review = service.add_review(simulation.simulation_id, content="Solid", rating="4")
        assert review.rating == 4
        detail = service.get(simulation.simulation_id)
        assert [e.content for e in detail.journal_entries] == ["Thesis holds"]
        assert [r.rating for r in detail.reviews] == [4]
    finally:
        repo.close()


def test_numeric_condition_values_are_kept_as_decimal_text() -> None:
    repo = create_repo()
    try:
        clock = TickingClock()
        simulation = _create(
            SimulationService(repo, now_fn=clock),
            conditions=[{"type": "sell", "metric": "price", "value": 150}, {"type": "buy", "metric": "price", "value": True}],
        )
        journal = JournalService(repo, now_fn=clock)

        assert [c.value for c in repo.list_conditions(simulation.simulation_id)] == ["150"]

        _, rows = journal.replace_conditions(
            simulation_id=simulation.simulation_id,
            conditions=[{"type": "sell", "metric": "price", "value": 152.5}],
        )
        assert [row.value for row in rows] == ["152.5"]

        updated = journal.update_condition(rows[0].condition_id, {"type": "sell", "metric": "price", "value": Decimal("160.00")})
        assert updated.value == "160.00"
    finally:
        repo.close()
