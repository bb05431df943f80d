from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from cfg.settings import AppSettings
from cia.presenter import build_chart
from jdb.bootstrap import get_connection, initialize_database
from jdb.repository import JournalRepository
from pcr.service import PriceCacheReconciler
from qpa.api_client import build_quote_source
from qpa.contracts import QuoteSource
from slm.journal import JournalService
from slm.service import SimulationService

from .models import (
    checkpoint_payload,
    checkpoint_summary_payload,
    condition_payload,
    hypothesis_payload,
    journal_payload,
    pnl_payload,
    review_payload,
    simulation_payload,
    stock_info_payload,
    stock_payload,
)


class JagService:
    """Request-scoped facade: the schema is migrated once, then every call opens its own connection."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        quote_source: QuoteSource | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.quote_source = quote_source or build_quote_source(
            mode=settings.quote_mode,
            base_url=settings.quote_base_url,
            timeout_seconds=settings.quote_timeout_seconds,
            range_days=settings.quote_range_days,
        )
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))
        initialize_database(settings.db_path).close()

    def _repository(self) -> JournalRepository:
        return JournalRepository(conn=get_connection(self.settings.db_path))

    def _reconciler(self, repo: JournalRepository) -> PriceCacheReconciler:
        return PriceCacheReconciler(
            repository=repo,
            quote_source=self.quote_source,
            refresh_policy=self.settings.price_cache_refresh,
            ttl_hours=self.settings.price_cache_ttl_hours,
            now_fn=self._now_fn,
        )

    def _simulations(self, repo: JournalRepository) -> SimulationService:
        return SimulationService(repo, quote_source=self.quote_source, now_fn=self._now_fn)

    def _journal(self, repo: JournalRepository) -> JournalService:
        return JournalService(repo, now_fn=self._now_fn)

    # stock data

    def stock_info(self, symbol: str) -> dict[str, Any]:
        with self._repository() as repo:
            meta, series = self._reconciler(repo).fetch_series(symbol)
        return stock_info_payload(meta, series, series.symbol)

    def stock_data(self, symbol: str) -> dict[str, Any]:
        with self._repository() as repo:
            result = self._reconciler(repo).reconcile(symbol)
        if not result.fetched:
            return {"success": True, "message": "Stock data already exists in database", "symbol": result.symbol}
        return {
            "success": True,
            "symbol": result.symbol,
            "insertedCount": result.inserted_count,
            "totalProcessed": result.total_processed,
        }

    def stock_prices(self, symbol: str, prices: list[dict[str, Any]]) -> dict[str, Any]:
        with self._repository() as repo:
            result = self._reconciler(repo).save_prices(symbol, prices)
        return {
            "success": True,
            "symbol": result.symbol,
            "insertedCount": result.inserted_count,
            "totalProcessed": result.total_processed,
        }

    # simulations

    def list_simulations(self, status: str | None) -> dict[str, Any]:
        with self._repository() as repo:
            rows = self._simulations(repo).list_simulations(status)
        return {"simulations": [simulation_payload(simulation, stock) for simulation, stock in rows]}

    def create_simulation(self, body: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            simulation = self._simulations(repo).create(
                symbol=body.get("symbol"),
                initial_capital=body.get("initialCapital"),
                start_date=body.get("startDate"),
                end_date=body.get("endDate"),
                conditions=body.get("tradingConditions"),
                company_name=body.get("companyName"),
            )
        return {"simulationId": simulation.simulation_id, "symbol": simulation.symbol, "status": "created"}

    def delete_simulation(self, simulation_id: str) -> dict[str, Any]:
        with self._repository() as repo:
            self._simulations(repo).delete(simulation_id)
        return {"success": True, "message": "Simulation deleted"}

    def get_simulation(self, simulation_id: str) -> dict[str, Any]:
        with self._repository() as repo:
            detail = self._simulations(repo).get(simulation_id)
        return {
            "simulation": simulation_payload(detail.simulation, detail.stock),
            "stock": stock_payload(detail.stock) if detail.stock else None,
            "checkpoints": [checkpoint_payload(checkpoint) for checkpoint in detail.checkpoints],
            "conditions": [condition_payload(condition) for condition in detail.conditions],
            "hypotheses": [hypothesis_payload(hypothesis) for hypothesis in detail.hypotheses],
            "pnlRecords": [pnl_payload(record, price) for record, price in detail.pnl_records],
            "journals": [journal_payload(entry) for entry in detail.journal_entries],
            "reviews": [review_payload(review) for review in detail.reviews],
            "totalRiskScore": detail.total_risk_score,
        }

    def update_simulation_status(self, simulation_id: str, status: str) -> dict[str, Any]:
        with self._repository() as repo:
            simulation = self._simulations(repo).update_status(simulation_id, status)
        return {"simulationId": simulation.simulation_id, "status": simulation.status}

    def simulation_chart(self, simulation_id: str) -> dict[str, Any]:
        with self._repository() as repo:
            simulation = self._simulations(repo).require_simulation(simulation_id)
            result = self._reconciler(repo).reconcile(simulation.symbol)
            checkpoints = repo.list_checkpoints(simulation_id)
            conditions = repo.list_conditions(simulation_id)
        chart = build_chart(
            simulation.symbol,
            result.prices,
            checkpoints,
            conditions,
            periods=self.settings.ma_periods,
            gap_mode=self.settings.ma_gap_mode,
        )
        chart["simulationId"] = simulation_id
        return chart

    def add_journal_entry(self, simulation_id: str, body: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            entry = self._simulations(repo).add_journal_entry(
                simulation_id,
                content=body.get("content"),
                entry_date=body.get("entryDate"),
            )
        return {"success": True, "journal": journal_payload(entry)}

    def add_review(self, simulation_id: str, body: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            review = self._simulations(repo).add_review(
                simulation_id,
                content=body.get("content"),
                rating=body.get("rating"),
            )
        return {"success": True, "review": review_payload(review)}

    def record_pnl(self, body: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            record = self._simulations(repo).record_pnl(
                checkpoint_id=body.get("checkpointId"),
                price_date=body.get("priceDate"),
                position_size=body.get("positionSize"),
                realized_pl=body.get("realizedPl"),
                unrealized_pl=body.get("unrealizedPl"),
            )
            price = repo.get_stock_price_by_id(record.stock_price_id)
        return {"success": True, "pnlRecord": pnl_payload(record, price)}

    # checkpoints

    def list_checkpoints(self, simulation_id: str) -> dict[str, Any]:
        with self._repository() as repo:
            overview = self._journal(repo).list_checkpoints(simulation_id)
        return {
            "checkpoints": [checkpoint_summary_payload(summary) for summary in overview.summaries],
            "hypotheses": [hypothesis_payload(hypothesis) for hypothesis in overview.hypotheses],
            "conditions": [condition_payload(condition) for condition in overview.conditions],
        }

    def create_checkpoint(self, body: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            checkpoint = self._journal(repo).create_checkpoint(
                simulation_id=body.get("simulationId"),
                checkpoint_type=body.get("checkpointType"),
                checkpoint_date=body.get("checkpointDate"),
                note=body.get("note", ""),
                hypotheses=body.get("hypotheses") or [],
                conditions=body.get("conditions") or [],
            )
        return {"success": True, "checkpointId": checkpoint.checkpoint_id, "message": "Checkpoint created"}

    def get_checkpoint(self, checkpoint_id: str) -> dict[str, Any]:
        with self._repository() as repo:
            checkpoint = self._journal(repo).require_checkpoint(checkpoint_id)
        return {"checkpoint": checkpoint_payload(checkpoint)}

    def update_checkpoint(self, checkpoint_id: str, body: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            checkpoint = self._journal(repo).update_checkpoint(
                checkpoint_id,
                checkpoint_type=body.get("checkpointType"),
                checkpoint_date=body.get("checkpointDate"),
                note=body.get("note", ""),
            )
        return {"success": True, "message": "Checkpoint updated", "checkpoint": checkpoint_payload(checkpoint)}

    def delete_checkpoint(self, checkpoint_id: str) -> dict[str, Any]:
        with self._repository() as repo:
            self._journal(repo).delete_checkpoint(checkpoint_id)
        return {"success": True, "message": "Checkpoint deleted"}

    # conditions

    def list_conditions(self, simulation_id: str, checkpoint_id: str | None) -> dict[str, Any]:
        with self._repository() as repo:
            conditions = self._journal(repo).list_conditions(simulation_id, checkpoint_id)
        return {"conditions": [condition_payload(condition) for condition in conditions]}

    def replace_conditions(self, body: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            checkpoint_id, rows = self._journal(repo).replace_conditions(
                simulation_id=body.get("simulationId"),
                conditions=body.get("conditions") or [],
                checkpoint_id=body.get("checkpointId"),
            )
        return {"success": True, "message": f"Saved {len(rows)} conditions", "checkpointId": checkpoint_id}

    def update_condition(self, body: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            condition = self._journal(repo).update_condition(body.get("conditionId"), body)
        return {"success": True, "message": "Condition updated", "condition": condition_payload(condition)}

    def delete_condition(self, condition_id: str) -> dict[str, Any]:
        with self._repository() as repo:
            self._journal(repo).delete_condition(condition_id)
        return {"success": True, "message": "Condition deleted"}

    # hypotheses

    def list_hypotheses(self, checkpoint_id: str) -> dict[str, Any]:
        with self._repository() as repo:
            hypotheses, total = self._journal(repo).list_hypotheses(checkpoint_id)
        return {"hypotheses": [hypothesis_payload(hypothesis) for hypothesis in hypotheses], "totalRiskScore": total}

    def create_hypothesis(self, checkpoint_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            hypothesis = self._journal(repo).create_hypothesis(checkpoint_id, fields)
        return {"hypothesisId": hypothesis.hypothesis_id, "status": "created", "riskScore": hypothesis.risk_score}

    def update_hypothesis(self, hypothesis_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        with self._repository() as repo:
            hypothesis = self._journal(repo).update_hypothesis(hypothesis_id, fields)
        return {"hypothesisId": hypothesis.hypothesis_id, "status": "updated", "riskScore": hypothesis.risk_score}

    def delete_hypothesis(self, hypothesis_id: str) -> dict[str, Any]:
        with self._repository() as repo:
            self._journal(repo).delete_hypothesis(hypothesis_id)
        return {"hypothesisId": hypothesis_id, "status": "deleted"}