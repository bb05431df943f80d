from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
import sys
from urllib.error import URLError

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from qpa.api_client import LiveQuoteClient, MockQuoteClient
from qpa.contracts import QuoteMeta, RawChartPayload
from qpa.error_mapper import map_exception, map_http_status
from qpa.errors import QpaError, QpaNoValidDataError
from qpa.normalizer import normalize_chart


NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _now() -> datetime:
    return NOW


def _ts(year: int, month: int, day: int) -> int:
    return int(datetime(year, month, day, 14, 30, tzinfo=timezone.utc).timestamp())


def _payload(rows: list[tuple]) -> RawChartPayload:
    return RawChartPayload(
        meta=QuoteMeta(symbol="AAPL"),
        timestamps=[row[0] for row in rows],
        opens=[row[1] for row in rows],
        highs=[row[2] for row in rows],
        lows=[row[3] for row in rows],
        closes=[row[4] for row in rows],
        volumes=[row[5] for row in rows],
    )


def _chart_body(rows: list[tuple]) -> dict:
    return {
        "chart": {
            "result": [
                {
                    "meta": {"symbol": "AAPL", "longName": "Apple Inc.", "currency": "USD", "regularMarketPrice": 104.0},
                    "timestamp": [row[0] for row in rows],
                    "indicators": {
                        "quote": [
                            {
                                "open": [row[1] for row in rows],
                                "high": [row[2] for row in rows],
                                "low": [row[3] for row in rows],
                                "close": [row[4] for row in rows],
                                "volume": [row[5] for row in rows],
                            }
                        ]
                    },
                }
            ]
        }
    }


def test_normalizer_rejects_each_invalid_bar_class() -> None:
    payload = _payload(
        [
            (_ts(2026, 2, 2), 100, 105, 99, 102, 1000),
            (_ts(2026, 2, 3), 101, 104, 100, None, 1000),
            (_ts(2026, 2, 4), 102, 101, 100, 103, 1000),
            (_ts(2026, 2, 5), 10, 100, 9, 95, 1000),
            (_ts(2026, 2, 6), 160, 170, 155, 165, 1000),
            (_ts(2026, 2, 9), 103, 106, 101, 104, None),
            (_ts(1999, 12, 31), 100, 101, 99, 100, 1000),
        ]
    )

    series = normalize_chart(payload, now_fn=_now)

    assert [point.close for point in series.points] == [Decimal("102"), Decimal("104")]
    assert series.points[-1].volume == 0
    assert series.total == 7
    assert sorted(item.reason for item in series.rejected) == [
        "candle_inconsistent",
        "date_out_of_range",
        "day_over_day_move_too_large",
        "intraday_move_too_large",
        "price_missing_or_non_positive",
    ]


def test_normalizer_never_emits_inconsistent_candles() -> None:
    payload = _payload(
        [
            (_ts(2026, 2, 2), 100, 99, 98, 100, 10),
            (_ts(2026, 2, 3), 100, 103, 101, 102, 10),
            (_ts(2026, 2, 4), 100, 103, 97, 102, 10),
            (_ts(2026, 2, 5), "nan", 103, 97, 102, 10),
            (_ts(2026, 2, 6), 0, 103, 97, 102, 10),
        ]
    )

    series = normalize_chart(payload, now_fn=_now)

    assert len(series.points) == 1
    for point in series.points:
        assert point.high >= max(point.open, point.close)
        assert point.low <= min(point.open, point.close)


def test_normalizer_sorts_and_keeps_later_bar_for_same_date() -> None:
    early = int(datetime(2026, 2, 3, 14, 30, tzinfo=timezone.utc).timestamp())
    late = int(datetime(2026, 2, 3, 20, 0, tzinfo=timezone.utc).timestamp())
    payload = _payload(
        [
            (late, 101, 103, 100, 102, 20),
            (_ts(2026, 2, 2), 100, 101, 99, 100, 10),
            (early, 100, 102, 99, 101, 15),
        ]
    )

    series = normalize_chart(payload, now_fn=_now)

    assert [point.date.isoformat() for point in series.points] == ["2026-02-02", "2026-02-03"]
    assert series.points[1].close == Decimal("102")
    assert series.points[1].volume == 20


def test_normalizer_raises_when_nothing_survives() -> None:
    payload = _payload([(_ts(2026, 2, 2), None, None, None, None, None)])

    with pytest.raises(QpaNoValidDataError) as exc:
        normalize_chart(payload, now_fn=_now)

    assert exc.value.code == "QPA_NO_VALID_DATA"
    assert exc.value.payload.details == {"symbol": "AAPL", "total": 1}


def test_live_client_builds_chart_request_and_parses_body() -> None:
    calls: list[tuple] = []
    rows = [(_ts(2026, 2, 2), 100, 105, 99, 102, 1000), (_ts(2026, 2, 3), 102, 106, 101, 104, 1200)]

    def transport(method, url, headers, query, timeout):
        calls.append((method, url, headers, query, timeout))
        return 200, _chart_body(rows)

    client = LiveQuoteClient(base_url="https://quotes.test/", transport=transport, timeout_seconds=3.5)
    payload = client.fetch_chart(" aapl ")

    method, url, headers, query, timeout = calls[0]
    assert method == "GET"
    assert url == "https://quotes.test/v8/finance/chart/AAPL"
    assert query == {"range": "100d", "interval": "1d"}
    assert "User-Agent" in headers
    assert timeout == 3.5
    assert payload.meta.display_name == "Apple Inc."
    assert payload.closes == [102, 104]


@pytest.mark.parametrize(
    ("status", "code", "retryable"),
    [
        (404, "QPA_SYMBOL_NOT_FOUND", False),
        (429, "QPA_RATE_LIMITED", True),
        (503, "QPA_UPSTREAM_UNAVAILABLE", True),
        (418, "QPA_UNKNOWN", False),
    ],
)
def test_live_client_maps_http_status(status: int, code: str, retryable: bool) -> None:
    client = LiveQuoteClient(transport=lambda *_: (status, {}))

    with pytest.raises(QpaError) as exc:
        client.fetch_chart("AAPL")

    assert exc.value.code == code
    assert exc.value.retryable is retryable


def test_live_client_maps_timeout_and_malformed_body() -> None:
    def slow_transport(*_):
        raise TimeoutError("timed out")

    with pytest.raises(QpaError) as timeout_error:
        LiveQuoteClient(transport=slow_transport).fetch_chart("AAPL")
    assert timeout_error.value.code == "QPA_API_TIMEOUT"

    with pytest.raises(QpaError) as invalid_error:
        LiveQuoteClient(transport=lambda *_: (200, {"chart": {"result": []}})).fetch_chart("AAPL")
    assert invalid_error.value.code == "QPA_RESPONSE_INVALID"


def test_mock_client_is_deterministic_and_clean() -> None:
    client = MockQuoteClient(range_days=100, now_fn=_now)

    first = client.fetch_chart("MSFT")
    second = client.fetch_chart("msft")
    series = normalize_chart(first, now_fn=_now)

    assert first.closes == second.closes
    assert len(first.timestamps) == 100
    assert len(series.points) == 100
    assert series.rejected == []
    assert all(point.date.weekday() < 5 for point in series.points)


def test_error_mapper_keeps_upstream_description_and_splits_url_errors() -> None:
    not_found = map_http_status(
        404,
        {"chart": {"result": None, "error": {"code": "Not Found", "description": "No data found, symbol may be delisted"}}},
    )
    assert not_found.code == "QPA_SYMBOL_NOT_FOUND"
    assert not_found.payload.details == {"status": 404, "upstream": "No data found, symbol may be delisted"}

    assert map_exception(URLError(TimeoutError("timed out"))).code == "QPA_API_TIMEOUT"
    refused = map_exception(URLError(ConnectionRefusedError("refused")))
    assert refused.code == "QPA_UPSTREAM_UNAVAILABLE"
    assert refused.retryable is True
    assert map_exception(RuntimeError("boom")).code == "QPA_UNKNOWN"


def test_normalizer_rejects_bars_beyond_five_years_ahead() -> None:
    payload = _payload(
        [
            (_ts(2026, 2, 2), 100, 101, 99, 100, 10),
            (_ts(2031, 12, 31), 100, 102, 99, 101, 10),
            (_ts(2032, 1, 2), 100, 102, 99, 101, 10),
        ]
    )

    series = normalize_chart(payload, now_fn=_now)

    assert [point.date.year for point in series.points] == [2026, 2031]
    assert [(item.index, item.reason) for item in series.rejected] == [(2, "date_out_of_range")]
