from .bootstrap import get_connection, initialize_database, run_migrations
from .models import (
    Checkpoint,
    CheckpointSummary,
    Condition,
    Hypothesis,
    JournalEntry,
    PnlRecord,
    Review,
    Simulation,
    Stock,
    StockPrice,
)
from .repository import JournalRepository

__all__ = [
    "get_connection",
    "initialize_database",
    "run_migrations",
    "JournalRepository",
    "Stock",
    "Simulation",
    "Checkpoint",
    "CheckpointSummary",
    "Condition",
    "Hypothesis",
    "StockPrice",
    "PnlRecord",
    "JournalEntry",
    "Review",
]
