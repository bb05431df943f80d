from __future__ import annotations

from datetime import date, datetime, time as dt_time, timezone
from typing import Iterable

from jdb.models import Checkpoint

from .models import AlignedBar, ChartBar


def _sort_key(bar: ChartBar) -> int:
    if bar.timestamp is not None:
        return bar.timestamp
    return int(datetime.combine(bar.date, dt_time.min, tzinfo=timezone.utc).timestamp())


def align_checkpoints(bars: Iterable[ChartBar], checkpoints: Iterable[Checkpoint]) -> list[AlignedBar]:
    """Attach the checkpoint recorded on each bar's date, oldest bar first.

    When two checkpoints share a date the later one in ``checkpoints`` wins.
    Every input bar yields exactly one output row.
    """
    by_date: dict[date, Checkpoint] = {}
    for checkpoint in checkpoints:
        by_date[checkpoint.checkpoint_date] = checkpoint

    ordered = sorted(bars, key=_sort_key)
    return [AlignedBar(bar=bar, checkpoint=by_date.get(bar.date)) for bar in ordered]
