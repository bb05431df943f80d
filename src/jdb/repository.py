from __future__ import annotations

import sqlite3
from datetime import date, datetime
from decimal import Decimal

from .bootstrap import initialize_database
from .models import (
    Checkpoint,
    CheckpointSummary,
    Condition,
    Hypothesis,
    JournalEntry,
    PnlRecord,
    Review,
    Simulation,
    SimulationStatus,
    Stock,
    StockPrice,
)


def _to_decimal(value) -> Decimal:
    return Decimal(str(value))


def _to_date(value: str) -> date:
    return date.fromisoformat(str(value)[:10])


def _row_to_stock(row: sqlite3.Row) -> Stock:
    return Stock(symbol=row["symbol"], name=row["name"], sector=row["sector"], industry=row["industry"])


def _row_to_simulation(row: sqlite3.Row) -> Simulation:
    return Simulation(
        simulation_id=row["simulation_id"],
        symbol=row["symbol"],
        initial_capital=_to_decimal(row["initial_capital"]),
        start_date=_to_date(row["start_date"]),
        end_date=_to_date(row["end_date"]),
        status=row["status"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_checkpoint(row: sqlite3.Row) -> Checkpoint:
    return Checkpoint(
        checkpoint_id=row["checkpoint_id"],
        simulation_id=row["simulation_id"],
        checkpoint_date=_to_date(row["checkpoint_date"]),
        checkpoint_type=row["checkpoint_type"],
        note=row["note"] or "",
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_condition(row: sqlite3.Row) -> Condition:
    return Condition(
        condition_id=row["condition_id"],
        checkpoint_id=row["checkpoint_id"],
        type=row["type"],
        metric=row["metric"],
        value=row["value"],
        is_active=bool(row["is_active"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_hypothesis(row: sqlite3.Row) -> Hypothesis:
    return Hypothesis(
        hypothesis_id=row["hypothesis_id"],
        checkpoint_id=row["checkpoint_id"],
        description=row["description"],
        factor_type=row["factor_type"],
        price_impact=int(row["price_impact"]),
        confidence_level=int(row["confidence_level"]),
        is_active=bool(row["is_active"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_stock_price(row: sqlite3.Row) -> StockPrice:
    return StockPrice(
        stock_price_id=row["stock_price_id"],
        symbol=row["symbol"],
        price_date=_to_date(row["price_date"]),
        open=_to_decimal(row["open_price"]),
        close=_to_decimal(row["close_price"]),
        high=_to_decimal(row["high_price"]),
        low=_to_decimal(row["low_price"]),
        volume=int(row["volume"]),
        last_updated=datetime.fromisoformat(row["last_updated"]),
    )


def _row_to_pnl_record(row: sqlite3.Row) -> PnlRecord:
    return PnlRecord(
        pnl_id=row["pnl_id"],
        checkpoint_id=row["checkpoint_id"],
        stock_price_id=row["stock_price_id"],
        position_size=_to_decimal(row["position_size"]),
        realized_pl=_to_decimal(row["realized_pl"]),
        unrealized_pl=_to_decimal(row["unrealized_pl"]),
        recorded_at=datetime.fromisoformat(row["recorded_at"]),
    )


_SIMULATION_COLUMNS = "simulation_id, symbol, initial_capital, start_date, end_date, status, created_at, updated_at"
_CHECKPOINT_COLUMNS = "checkpoint_id, simulation_id, checkpoint_date, checkpoint_type, note, created_at"
_CONDITION_COLUMNS = "condition_id, checkpoint_id, type, metric, value, is_active, updated_at"
_HYPOTHESIS_COLUMNS = (
    "hypothesis_id, checkpoint_id, description, factor_type, price_impact, confidence_level, is_active, updated_at"
)
_STOCK_PRICE_COLUMNS = (
    "stock_price_id, symbol, price_date, open_price, close_price, high_price, low_price, volume, last_updated"
)
_PNL_COLUMNS = "pnl_id, checkpoint_id, stock_price_id, position_size, realized_pl, unrealized_pl, recorded_at"


class JournalRepository:
    def __init__(self, conn: sqlite3.Connection | None = None, db_path: str = "runtime/state/invsim.db") -> None:
        self.conn = conn or initialize_database(db_path)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "JournalRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # stocks

    def get_stock(self, symbol: str) -> Stock | None:
        row = self.conn.execute(
            "SELECT symbol, name, sector, industry FROM stocks WHERE symbol = ?",
            (symbol,),
        ).fetchone()
        return _row_to_stock(row) if row else None

    def insert_stock(self, stock: Stock) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                """
                INSERT INTO stocks(symbol, name, sector, industry)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(symbol) DO NOTHING
                """,
                (stock.symbol, stock.name, stock.sector, stock.industry),
            )
        return cursor.rowcount > 0

    def rename_stock(self, symbol: str, name: str) -> bool:
        with self.conn:
            cursor = self.conn.execute("UPDATE stocks SET name = ? WHERE symbol = ?", (name, symbol))
        return cursor.rowcount > 0

    # simulations

    def _insert_checkpoint(self, checkpoint: Checkpoint) -> None:
        self.conn.execute(
            f"INSERT INTO checkpoints({_CHECKPOINT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
            (
                checkpoint.checkpoint_id,
                checkpoint.simulation_id,
                checkpoint.checkpoint_date.isoformat(),
                checkpoint.checkpoint_type,
                checkpoint.note,
                checkpoint.created_at.isoformat(),
            ),
        )

    def _insert_condition(self, condition: Condition) -> None:
        self.conn.execute(
            f"INSERT INTO conditions({_CONDITION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                condition.condition_id,
                condition.checkpoint_id,
                condition.type,
                condition.metric,
                condition.value,
                1 if condition.is_active else 0,
                condition.updated_at.isoformat(),
            ),
        )

    def _insert_hypothesis(self, hypothesis: Hypothesis) -> None:
        self.conn.execute(
            f"INSERT INTO hypotheses({_HYPOTHESIS_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                hypothesis.hypothesis_id,
                hypothesis.checkpoint_id,
                hypothesis.description,
                hypothesis.factor_type,
                hypothesis.price_impact,
                hypothesis.confidence_level,
                1 if hypothesis.is_active else 0,
                hypothesis.updated_at.isoformat(),
            ),
        )

    def create_simulation(
        self,
        simulation: Simulation,
        initial_checkpoint: Checkpoint,
        conditions: list[Condition],
    ) -> None:
        with self.conn:
            self.conn.execute(
                f"INSERT INTO simulations({_SIMULATION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    simulation.simulation_id,
                    simulation.symbol,
                    str(simulation.initial_capital),
                    simulation.start_date.isoformat(),
                    simulation.end_date.isoformat(),
                    simulation.status,
                    simulation.created_at.isoformat(),
                    simulation.updated_at.isoformat(),
                ),
            )
            self._insert_checkpoint(initial_checkpoint)
            for condition in conditions:
                self._insert_condition(condition)

    def get_simulation(self, simulation_id: str) -> Simulation | None:
        row = self.conn.execute(
            f"SELECT {_SIMULATION_COLUMNS} FROM simulations WHERE simulation_id = ?",
            (simulation_id,),
        ).fetchone()
        return _row_to_simulation(row) if row else None

    def list_simulations(self, status: SimulationStatus | None = None) -> list[tuple[Simulation, Stock]]:
        where_sql = ""
        args: list[object] = []
        if status is not None:
            where_sql = "WHERE s.status = ?"
            args.append(status)

        rows = self.conn.execute(
            f"""
            SELECT s.simulation_id, s.symbol, s.initial_capital, s.start_date, s.end_date,
                   s.status, s.created_at, s.updated_at,
                   st.name, st.sector, st.industry
            FROM simulations s
            JOIN stocks st ON s.symbol = st.symbol
            {where_sql}
            ORDER BY s.created_at DESC, s.simulation_id DESC
            """,
            tuple(args),
        ).fetchall()
        return [(_row_to_simulation(row), _row_to_stock(row)) for row in rows]

    def update_simulation_status(self, simulation_id: str, status: SimulationStatus, updated_at: datetime) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                "UPDATE simulations SET status = ?, updated_at = ? WHERE simulation_id = ?",
                (status, updated_at.isoformat(), simulation_id),
            )
        return cursor.rowcount > 0

    def delete_simulation_cascade(self, simulation_id: str) -> dict[str, int]:
        """Delete a simulation and every dependent row in one transaction.

        Children go first so foreign keys hold at every step; any failure rolls
        the whole cascade back.
        """
        checkpoint_scope = "checkpoint_id IN (SELECT checkpoint_id FROM checkpoints WHERE simulation_id = ?)"
        statements = (
            ("pnl_records", f"DELETE FROM pnl_records WHERE {checkpoint_scope}"),
            ("conditions", f"DELETE FROM conditions WHERE {checkpoint_scope}"),
            ("hypotheses", f"DELETE FROM hypotheses WHERE {checkpoint_scope}"),
            ("checkpoints", "DELETE FROM checkpoints WHERE simulation_id = ?"),
            ("journals", "DELETE FROM journals WHERE simulation_id = ?"),
            ("reviews", "DELETE FROM reviews WHERE simulation_id = ?"),
            ("simulations", "DELETE FROM simulations WHERE simulation_id = ?"),
        )
        deleted: dict[str, int] = {}
        with self.conn:
            for table, sql in statements:
                deleted[table] = self.conn.execute(sql, (simulation_id,)).rowcount
        return deleted

    # checkpoints

    def create_checkpoint(
        self,
        checkpoint: Checkpoint,
        hypotheses: list[Hypothesis],
        conditions: list[Condition],
    ) -> None:
        with self.conn:
            self._insert_checkpoint(checkpoint)
            for hypothesis in hypotheses:
                self._insert_hypothesis(hypothesis)
            for condition in conditions:
                self._insert_condition(condition)

    def get_checkpoint(self, checkpoint_id: str) -> Checkpoint | None:
        row = self.conn.execute(
            f"SELECT {_CHECKPOINT_COLUMNS} FROM checkpoints WHERE checkpoint_id = ?",
            (checkpoint_id,),
        ).fetchone()
        return _row_to_checkpoint(row) if row else None

    def list_checkpoints(self, simulation_id: str) -> list[Checkpoint]:
        rows = self.conn.execute(
            f"""
            SELECT {_CHECKPOINT_COLUMNS}
            FROM checkpoints
            WHERE simulation_id = ?
            ORDER BY checkpoint_date ASC, created_at ASC, checkpoint_id ASC
            """,
            (simulation_id,),
        ).fetchall()
        return [_row_to_checkpoint(row) for row in rows]

    def list_checkpoint_summaries(self, simulation_id: str) -> list[CheckpointSummary]:
        rows = self.conn.execute(
            """
            SELECT c.checkpoint_id, c.simulation_id, c.checkpoint_date, c.checkpoint_type, c.note, c.created_at,
                   COUNT(DISTINCT h.hypothesis_id) AS hypothesis_count,
                   COUNT(DISTINCT cond.condition_id) AS condition_count,
                   COUNT(DISTINCT pl.pnl_id) AS pnl_count
            FROM checkpoints c
            LEFT JOIN hypotheses h ON c.checkpoint_id = h.checkpoint_id
            LEFT JOIN conditions cond ON c.checkpoint_id = cond.checkpoint_id AND cond.is_active = 1
            LEFT JOIN pnl_records pl ON c.checkpoint_id = pl.checkpoint_id
            WHERE c.simulation_id = ?
            GROUP BY c.checkpoint_id
            ORDER BY c.checkpoint_date DESC, c.created_at DESC
            """,
            (simulation_id,),
        ).fetchall()
        return [
            CheckpointSummary(
                checkpoint=_row_to_checkpoint(row),
                hypothesis_count=int(row["hypothesis_count"]),
                condition_count=int(row["condition_count"]),
                pnl_count=int(row["pnl_count"]),
            )
            for row in rows
        ]

    def find_latest_checkpoint(self, simulation_id: str) -> Checkpoint | None:
        row = self.conn.execute(
            f"""
            SELECT {_CHECKPOINT_COLUMNS}
            FROM checkpoints
            WHERE simulation_id = ?
            ORDER BY checkpoint_date DESC, created_at DESC
            LIMIT 1
            """,
            (simulation_id,),
        ).fetchone()
        return _row_to_checkpoint(row) if row else None

    def update_checkpoint(self, checkpoint_id: str, checkpoint_type: str, checkpoint_date: date, note: str) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                """
                UPDATE checkpoints
                SET checkpoint_type = ?, checkpoint_date = ?, note = ?
                WHERE checkpoint_id = ?
                """,
                (checkpoint_type, checkpoint_date.isoformat(), note, checkpoint_id),
            )
        return cursor.rowcount > 0

    def delete_checkpoint_cascade(self, checkpoint_id: str) -> bool:
        with self.conn:
            self.conn.execute("DELETE FROM pnl_records WHERE checkpoint_id = ?", (checkpoint_id,))
            self.conn.execute("DELETE FROM conditions WHERE checkpoint_id = ?", (checkpoint_id,))
            self.conn.execute("DELETE FROM hypotheses WHERE checkpoint_id = ?", (checkpoint_id,))
            cursor = self.conn.execute("DELETE FROM checkpoints WHERE checkpoint_id = ?", (checkpoint_id,))
        return cursor.rowcount > 0

    # conditions

    def get_condition(self, condition_id: str) -> Condition | None:
        row = self.conn.execute(
            f"SELECT {_CONDITION_COLUMNS} FROM conditions WHERE condition_id = ?",
            (condition_id,),
        ).fetchone()
        return _row_to_condition(row) if row else None

    def list_conditions(
        self,
        simulation_id: str,
        *,
        checkpoint_id: str | None = None,
        active_only: bool = False,
    ) -> list[Condition]:
        clauses = ["cp.simulation_id = ?"]
        args: list[object] = [simulation_id]
        if checkpoint_id is not None:
            clauses.append("c.checkpoint_id = ?")
            args.append(checkpoint_id)
        if active_only:
            clauses.append("c.is_active = 1")

        rows = self.conn.execute(
            f"""
            SELECT c.condition_id, c.checkpoint_id, c.type, c.metric, c.value, c.is_active, c.updated_at
            FROM conditions c
            JOIN checkpoints cp ON c.checkpoint_id = cp.checkpoint_id
            WHERE {" AND ".join(clauses)}
            ORDER BY cp.checkpoint_date DESC, c.updated_at DESC, c.condition_id ASC
            """,
            tuple(args),
        ).fetchall()
        return [_row_to_condition(row) for row in rows]

    def replace_conditions(self, checkpoint_id: str, conditions: list[Condition]) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM conditions WHERE checkpoint_id = ?", (checkpoint_id,))
            for condition in conditions:
                self._insert_condition(condition)

    def update_condition(self, condition: Condition) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                """
                UPDATE conditions
                SET type = ?, metric = ?, value = ?, is_active = ?, updated_at = ?
                WHERE condition_id = ?
                """,
                (
                    condition.type,
                    condition.metric,
                    condition.value,
                    1 if condition.is_active else 0,
                    condition.updated_at.isoformat(),
                    condition.condition_id,
                ),
            )
        return cursor.rowcount > 0

    def delete_condition(self, condition_id: str) -> bool:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM conditions WHERE condition_id = ?", (condition_id,))
        return cursor.rowcount > 0

    # hypotheses

    def get_hypothesis(self, hypothesis_id: str) -> Hypothesis | None:
        row = self.conn.execute(
            f"SELECT {_HYPOTHESIS_COLUMNS} FROM hypotheses WHERE hypothesis_id = ?",
            (hypothesis_id,),
        ).fetchone()
        return _row_to_hypothesis(row) if row else None

    def insert_hypothesis(self, hypothesis: Hypothesis) -> None:
        with self.conn:
            self._insert_hypothesis(hypothesis)

    def update_hypothesis(self, hypothesis: Hypothesis) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                """
                UPDATE hypotheses
                SET description = ?, factor_type = ?, price_impact = ?, confidence_level = ?, updated_at = ?
                WHERE hypothesis_id = ?
                """,
                (
                    hypothesis.description,
                    hypothesis.factor_type,
                    hypothesis.price_impact,
                    hypothesis.confidence_level,
                    hypothesis.updated_at.isoformat(),
                    hypothesis.hypothesis_id,
                ),
            )
        return cursor.rowcount > 0

    def delete_hypothesis(self, hypothesis_id: str) -> bool:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM hypotheses WHERE hypothesis_id = ?", (hypothesis_id,))
        return cursor.rowcount > 0

    def list_hypotheses(self, checkpoint_id: str) -> list[Hypothesis]:
        rows = self.conn.execute(
            f"""
            SELECT {_HYPOTHESIS_COLUMNS}
            FROM hypotheses
            WHERE checkpoint_id = ?
            ORDER BY factor_type ASC, updated_at DESC
            """,
            (checkpoint_id,),
        ).fetchall()
        return [_row_to_hypothesis(row) for row in rows]

    def list_simulation_hypotheses(self, simulation_id: str) -> list[Hypothesis]:
        rows = self.conn.execute(
            """
            SELECT h.hypothesis_id, h.checkpoint_id, h.description, h.factor_type, h.price_impact,
                   h.confidence_level, h.is_active, h.updated_at
            FROM hypotheses h
            JOIN checkpoints c ON h.checkpoint_id = c.checkpoint_id
            WHERE c.simulation_id = ?
            ORDER BY h.updated_at DESC
            """,
            (simulation_id,),
        ).fetchall()
        return [_row_to_hypothesis(row) for row in rows]

    # stock prices

    def count_stock_prices(self, symbol: str) -> int:
        row = self.conn.execute("SELECT COUNT(*) AS count FROM stock_prices WHERE symbol = ?", (symbol,)).fetchone()
        return int(row["count"]) if row else 0

    def list_stock_prices(self, symbol: str) -> list[StockPrice]:
        rows = self.conn.execute(
            f"""
            SELECT {_STOCK_PRICE_COLUMNS}
            FROM stock_prices
            WHERE symbol = ?
            ORDER BY price_date ASC
            """,
            (symbol,),
        ).fetchall()
        return [_row_to_stock_price(row) for row in rows]

    def get_stock_price(self, symbol: str, price_date: date) -> StockPrice | None:
        row = self.conn.execute(
            f"SELECT {_STOCK_PRICE_COLUMNS} FROM stock_prices WHERE symbol = ? AND price_date = ?",
            (symbol, price_date.isoformat()),
        ).fetchone()
        return _row_to_stock_price(row) if row else None

    def get_stock_price_by_id(self, stock_price_id: str) -> StockPrice | None:
        row = self.conn.execute(
            f"SELECT {_STOCK_PRICE_COLUMNS} FROM stock_prices WHERE stock_price_id = ?",
            (stock_price_id,),
        ).fetchone()
        return _row_to_stock_price(row) if row else None

    def latest_price_update(self, symbol: str) -> datetime | None:
        row = self.conn.execute(
            "SELECT MAX(last_updated) AS last_updated FROM stock_prices WHERE symbol = ?",
            (symbol,),
        ).fetchone()
        if not row or row["last_updated"] is None:
            return None
        return datetime.fromisoformat(row["last_updated"])

    def upsert_stock_prices(self, prices: list[StockPrice], stock: Stock | None = None) -> int:
        """Insert or refresh daily bars keyed by (symbol, price_date) in one transaction.

        ``stock`` is registered in the same transaction, so a failed batch leaves
        no stock row behind. An existing row keeps its stock_price_id so pnl
        records stay linked.
        """
        with self.conn:
            if stock is not None:
                self.conn.execute(
                    "INSERT INTO stocks(symbol, name, sector, industry) VALUES (?, ?, ?, ?) ON CONFLICT(symbol) DO NOTHING",
                    (stock.symbol, stock.name, stock.sector, stock.industry),
                )
            for price in prices:
                self.conn.execute(
                    f"""
                    INSERT INTO stock_prices({_STOCK_PRICE_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(symbol, price_date) DO UPDATE SET
                      open_price=excluded.open_price,
                      close_price=excluded.close_price,
                      high_price=excluded.high_price,
                      low_price=excluded.low_price,
                      volume=excluded.volume,
                      last_updated=excluded.last_updated
                    """,
                    (
                        price.stock_price_id,
                        price.symbol,
                        price.price_date.isoformat(),
                        str(price.open),
                        str(price.close),
                        str(price.high),
                        str(price.low),
                        price.volume,
                        price.last_updated.isoformat(),
                    ),
                )
        return len(prices)

    # pnl records

    def insert_pnl_record(self, record: PnlRecord) -> None:
        with self.conn:
            self.conn.execute(
                f"INSERT INTO pnl_records({_PNL_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.pnl_id,
                    record.checkpoint_id,
                    record.stock_price_id,
                    str(record.position_size),
                    str(record.realized_pl),
                    str(record.unrealized_pl),
                    record.recorded_at.isoformat(),
                ),
            )

    def list_pnl_records(self, simulation_id: str) -> list[tuple[PnlRecord, StockPrice]]:
        rows = self.conn.execute(
            """
            SELECT pr.pnl_id, pr.checkpoint_id, pr.stock_price_id, pr.position_size, pr.realized_pl,
                   pr.unrealized_pl, pr.recorded_at,
                   sp.symbol, sp.price_date, sp.open_price, sp.close_price, sp.high_price, sp.low_price,
                   sp.volume, sp.last_updated
            FROM pnl_records pr
            JOIN checkpoints c ON pr.checkpoint_id = c.checkpoint_id
            JOIN stock_prices sp ON pr.stock_price_id = sp.stock_price_id
            WHERE c.simulation_id = ?
            ORDER BY pr.recorded_at ASC, pr.pnl_id ASC
            """,
            (simulation_id,),
        ).fetchall()
        return [(_row_to_pnl_record(row), _row_to_stock_price(row)) for row in rows]

    # journals and reviews

    def insert_journal_entry(self, entry: JournalEntry) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO journals(journal_id, simulation_id, entry_date, content, created_at) VALUES (?, ?, ?, ?, ?)",
                (
                    entry.journal_id,
                    entry.simulation_id,
                    entry.entry_date.isoformat(),
                    entry.content,
                    entry.created_at.isoformat(),
                ),
            )

    def list_journal_entries(self, simulation_id: str) -> list[JournalEntry]:
        rows = self.conn.execute(
            """
            SELECT journal_id, simulation_id, entry_date, content, created_at
            FROM journals
            WHERE simulation_id = ?
            ORDER BY entry_date DESC, created_at DESC
            """,
            (simulation_id,),
        ).fetchall()
        return [
            JournalEntry(
                journal_id=row["journal_id"],
                simulation_id=row["simulation_id"],
                entry_date=_to_date(row["entry_date"]),
                content=row["content"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def insert_review(self, review: Review) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO reviews(review_id, simulation_id, content, rating, created_at) VALUES (?, ?, ?, ?, ?)",
                (
                    review.review_id,
                    review.simulation_id,
                    review.content,
                    review.rating,
                    review.created_at.isoformat(),
                ),
            )

    def list_reviews(self, simulation_id: str) -> list[Review]:
        rows = self.conn.execute(
            """
            SELECT review_id, simulation_id, content, rating, created_at
            FROM reviews
            WHERE simulation_id = ?
            ORDER BY created_at DESC
            """,
            (simulation_id,),
        ).fetchall()
        return [
            Review(
                review_id=row["review_id"],
                simulation_id=row["simulation_id"],
                content=row["content"],
                rating=int(row["rating"]) if row["rating"] is not None else None,
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]
