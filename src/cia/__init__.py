from .aligner import align_checkpoints
from .indicators import DEFAULT_PERIODS, WIRE_SENTINEL, compute_moving_averages, moving_average, to_wire
from .models import AlignedBar, ChartBar, ConditionOverlay
from .overlays import build_condition_overlays, buy_condition_rows, parse_condition_value
from .presenter import build_chart

__all__ = [
    "AlignedBar",
    "ChartBar",
    "ConditionOverlay",
    "DEFAULT_PERIODS",
    "WIRE_SENTINEL",
    "align_checkpoints",
    "build_chart",
    "build_condition_overlays",
    "buy_condition_rows",
    "compute_moving_averages",
    "moving_average",
    "parse_condition_value",
    "to_wire",
]
