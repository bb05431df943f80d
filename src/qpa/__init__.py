from .api_client import LiveQuoteClient, MockQuoteClient, build_quote_source, parse_chart_response, urllib_transport
from .contracts import NormalizedSeries, PricePoint, QuoteMeta, QuoteSource, RawChartPayload, RejectedBar
from .errors import QpaError, QpaErrorPayload, QpaNoValidDataError
from .normalizer import normalize_chart

__all__ = [
    "LiveQuoteClient",
    "MockQuoteClient",
    "NormalizedSeries",
    "PricePoint",
    "QpaError",
    "QpaErrorPayload",
    "QpaNoValidDataError",
    "QuoteMeta",
    "QuoteSource",
    "RawChartPayload",
    "RejectedBar",
    "build_quote_source",
    "normalize_chart",
    "parse_chart_response",
    "urllib_transport",
]
