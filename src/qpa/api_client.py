from __future__ import annotations

import json
import logging
import random
from datetime import datetime, time as dt_time, timedelta, timezone
from typing import Any, Callable
from urllib.error import HTTPError
from urllib.parse import quote as url_quote, urlencode
from urllib.request import Request, urlopen

from .contracts import Mode, QuoteMeta, QuoteSource, RawChartPayload
from .error_mapper import map_exception, map_http_status
from .errors import QpaError, make_qpa_error

_LOGGER = logging.getLogger("invsim.qpa.api_client")

TransportFn = Callable[
    [str, str, dict[str, str], dict[str, str] | None, float],
    tuple[int, dict[str, Any]],
]

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


def _decode_body(raw: bytes) -> dict[str, Any]:
    text = raw.decode("utf-8")
    if not text.strip():
        return {}
    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("response body is not a JSON object")
    return parsed


def urllib_transport(
    method: str,
    url: str,
    headers: dict[str, str],
    query: dict[str, str] | None,
    timeout_seconds: float,
) -> tuple[int, dict[str, Any]]:
    final_url = url
    if query:
        final_url = f"{url}?{urlencode(query)}"

    request = Request(url=final_url, method=method)
    for key, value in headers.items():
        request.add_header(key, value)

    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            return int(response.getcode()), _decode_body(response.read())
    except HTTPError as exc:
        try:
            body = _decode_body(exc.read())
        except ValueError:
            body = {}
        return int(exc.code), body


def _float_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int_or_none(value: Any) -> int | None:
    parsed = _float_or_none(value)
    return int(parsed) if parsed is not None else None


def _str_or_none(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def parse_meta(meta: dict[str, Any], fallback_symbol: str) -> QuoteMeta:
    market_time = _int_or_none(meta.get("regularMarketTime"))
    return QuoteMeta(
        symbol=_str_or_none(meta.get("symbol")) or fallback_symbol,
        long_name=_str_or_none(meta.get("longName")),
        short_name=_str_or_none(meta.get("shortName")),
        sector=_str_or_none(meta.get("sector")),
        industry=_str_or_none(meta.get("industry")),
        currency=_str_or_none(meta.get("currency")),
        exchange=_str_or_none(meta.get("exchangeName")) or _str_or_none(meta.get("exchange")),
        instrument_type=_str_or_none(meta.get("instrumentType")),
        regular_market_price=_float_or_none(meta.get("regularMarketPrice")),
        previous_close=_float_or_none(meta.get("chartPreviousClose")) or _float_or_none(meta.get("previousClose")),
        regular_market_open=_float_or_none(meta.get("open")),
        day_high=_float_or_none(meta.get("regularMarketDayHigh")) or _float_or_none(meta.get("dayHigh")),
        day_low=_float_or_none(meta.get("regularMarketDayLow")) or _float_or_none(meta.get("dayLow")),
        regular_market_volume=_int_or_none(meta.get("regularMarketVolume")) or _int_or_none(meta.get("volume")),
        fifty_two_week_high=_float_or_none(meta.get("fiftyTwoWeekHigh")),
        fifty_two_week_low=_float_or_none(meta.get("fiftyTwoWeekLow")),
        market_cap=_float_or_none(meta.get("marketCap")),
        market_time=datetime.fromtimestamp(market_time, tz=timezone.utc) if market_time is not None else None,
        market_state=_str_or_none(meta.get("marketState")),
        timezone=_str_or_none(meta.get("timezone")),
        gmtoffset=_int_or_none(meta.get("gmtoffset")),
    )


def parse_chart_response(body: dict[str, Any], symbol: str) -> RawChartPayload:
    chart = body.get("chart")
    results = chart.get("result") if isinstance(chart, dict) else None
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        raise make_qpa_error("QPA_RESPONSE_INVALID", "No chart data found", False, {"symbol": symbol})

    result = results[0]
    meta = result.get("meta") if isinstance(result.get("meta"), dict) else {}
    indicators = result.get("indicators") if isinstance(result.get("indicators"), dict) else {}
    quotes = indicators.get("quote") if isinstance(indicators.get("quote"), list) else []
    quote = quotes[0] if quotes and isinstance(quotes[0], dict) else {}

    def _series(name: str) -> list[Any]:
        values = quote.get(name)
        return list(values) if isinstance(values, list) else []

    timestamps = result.get("timestamp")
    return RawChartPayload(
        meta=parse_meta(meta, symbol),
        timestamps=list(timestamps) if isinstance(timestamps, list) else [],
        opens=_series("open"),
        highs=_series("high"),
        lows=_series("low"),
        closes=_series("close"),
        volumes=_series("volume"),
    )


class LiveQuoteClient:
    def __init__(
        self,
        *,
        base_url: str = "https://query1.finance.yahoo.com",
        transport: TransportFn = urllib_transport,
        timeout_seconds: float = 10.0,
        range_days: int = 100,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout_seconds = timeout_seconds
        self._range_days = range_days

    def fetch_chart(self, symbol: str) -> RawChartPayload:
        normalized = symbol.strip().upper()
        url = f"{self._base_url}/v8/finance/chart/{url_quote(normalized, safe='')}"
        query = {"range": f"{self._range_days}d", "interval": "1d"}
        headers = {"User-Agent": _USER_AGENT, "Accept": "application/json"}

        try:
            status, body = self._transport("GET", url, headers, query, self._timeout_seconds)
        except Exception as exc:
            raise map_exception(exc) from exc

        if status < 200 or status >= 300:
            raise map_http_status(status, body)
        try:
            return parse_chart_response(body, normalized)
        except QpaError:
            raise
        except Exception as exc:
            raise map_exception(exc) from exc


class MockQuoteClient:
    """Offline quote source producing a deterministic random walk per symbol."""

    def __init__(
        self,
        *,
        range_days: int = 100,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._range_days = range_days
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))

    def fetch_chart(self, symbol: str) -> RawChartPayload:
        normalized = symbol.strip().upper()
        rng = random.Random(sum(ord(ch) for ch in normalized))
        day = self._now_fn().astimezone(timezone.utc).date()

        days = []
        while len(days) < self._range_days:
            if day.weekday() < 5:
                days.append(day)
            day -= timedelta(days=1)
        days.reverse()

        price = 50 + rng.random() * 150
        timestamps: list[int] = []
        opens: list[float] = []
        highs: list[float] = []
        lows: list[float] = []
        closes: list[float] = []
        volumes: list[int] = []
        for current in days:
            open_price = price
            close_price = max(1.0, open_price * (1 + rng.uniform(-0.02, 0.02)))
            high_price = max(open_price, close_price) * (1 + rng.uniform(0, 0.01))
            low_price = min(open_price, close_price) * (1 - rng.uniform(0, 0.01))
            moment = datetime.combine(current, dt_time(hour=14, minute=30), tzinfo=timezone.utc)
            timestamps.append(int(moment.timestamp()))
            opens.append(round(open_price, 4))
            highs.append(round(high_price, 4))
            lows.append(round(low_price, 4))
            closes.append(round(close_price, 4))
            volumes.append(rng.randint(100_000, 5_000_000))
            price = close_price

        return RawChartPayload(
            meta=QuoteMeta(
                symbol=normalized,
                long_name=f"{normalized} Mock Corp.",
                short_name=normalized,
                currency="USD",
                exchange="MOCK",
                instrument_type="EQUITY",
                regular_market_price=closes[-1] if closes else None,
                previous_close=closes[-2] if len(closes) > 1 else None,
                market_time=self._now_fn(),
                timezone="UTC",
                gmtoffset=0,
            ),
            timestamps=timestamps,
            opens=opens,
            highs=highs,
            lows=lows,
            closes=closes,
            volumes=volumes,
        )


def build_quote_source(
    *,
    mode: Mode,
    base_url: str,
    timeout_seconds: float,
    range_days: int,
    transport: TransportFn | None = None,
) -> QuoteSource:
    if mode == "mock":
        _LOGGER.info("Using mock quote source: range_days=%s", range_days)
        return MockQuoteClient(range_days=range_days)
    return LiveQuoteClient(
        base_url=base_url,
        transport=transport or urllib_transport,
        timeout_seconds=timeout_seconds,
        range_days=range_days,
    )
