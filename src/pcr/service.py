from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Literal
from uuid import uuid4

from jdb.models import Stock, StockPrice
from jdb.repository import JournalRepository
from qpa.contracts import NormalizedSeries, QuoteMeta, QuoteSource
from qpa.normalizer import check_candle, normalize_chart, to_price

from .errors import PcrNoValidPricesError, PcrSymbolRequiredError

RefreshPolicy = Literal["never", "ttl"]

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ReconcileResult:
    symbol: str
    prices: list[StockPrice]
    fetched: bool
    inserted_count: int = 0
    total_processed: int = 0
    rejected_count: int = 0


@dataclass(frozen=True)
class SaveResult:
    symbol: str
    inserted_count: int
    total_processed: int
    skipped_count: int


def normalize_symbol(symbol: str | None) -> str:
    normalized = (symbol or "").strip().upper()
    if not normalized:
        raise PcrSymbolRequiredError(symbol)
    return normalized


def stock_from_meta(symbol: str, meta: QuoteMeta | None, preferred_name: str | None = None) -> Stock:
    name = (preferred_name or "").strip() or (meta.display_name if meta else None) or symbol
    return Stock(
        symbol=symbol,
        name=name,
        sector=(meta.sector if meta else None) or UNKNOWN,
        industry=(meta.industry if meta else None) or UNKNOWN,
    )


def _parse_price_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value.strip()) < 10:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


class PriceCacheReconciler:
    """Keeps the stock_prices cache for a symbol in step with the quote source."""

    def __init__(
        self,
        *,
        repository: JournalRepository,
        quote_source: QuoteSource,
        refresh_policy: RefreshPolicy = "never",
        ttl_hours: int = 24,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = repository
        self.quote_source = quote_source
        self.refresh_policy = refresh_policy
        self.ttl = timedelta(hours=ttl_hours)
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))
        self._logger = logging.getLogger("invsim.pcr")

    def fetch_series(self, symbol: str) -> tuple[QuoteMeta, NormalizedSeries]:
        normalized = normalize_symbol(symbol)
        payload = self.quote_source.fetch_chart(normalized)
        series = normalize_chart(payload, now_fn=self._now_fn)
        if series.rejected:
            self._logger.info(
                "Normalized chart: symbol=%s kept=%s rejected=%s",
                normalized,
                len(series.points),
                len(series.rejected),
            )
        return payload.meta, series

    def _unregistered_stock(self, symbol: str, meta: QuoteMeta | None) -> Stock | None:
        if self.repository.get_stock(symbol) is not None:
            return None
        stock = stock_from_meta(symbol, meta)
        self._logger.info("Registering stock with price batch: symbol=%s name=%s", symbol, stock.name)
        return stock

    def _cache_is_fresh(self, symbol: str) -> bool:
        last_updated = self.repository.latest_price_update(symbol)
        if last_updated is None:
            return False
        if last_updated.tzinfo is None:
            last_updated = last_updated.replace(tzinfo=timezone.utc)
        age = self._now_fn() - last_updated
        if age <= self.ttl:
            return True
        if self.refresh_policy == "ttl":
            self._logger.info("Price cache expired: symbol=%s age=%s", symbol, age)
            return False
        self._logger.warning(
            "Serving stale price cache: symbol=%s last_updated=%s refresh_policy=%s",
            symbol,
            last_updated.isoformat(),
            self.refresh_policy,
        )
        return True

    def reconcile(self, symbol: str) -> ReconcileResult:
        normalized = normalize_symbol(symbol)
        if self.repository.count_stock_prices(normalized) > 0 and self._cache_is_fresh(normalized):
            return ReconcileResult(
                symbol=normalized,
                prices=self.repository.list_stock_prices(normalized),
                fetched=False,
            )

        meta, series = self.fetch_series(normalized)
        stock = self._unregistered_stock(normalized, meta)

        now = self._now_fn()
        rows = [
            StockPrice(
                stock_price_id=str(uuid4()),
                symbol=normalized,
                price_date=point.date,
                open=point.open,
                close=point.close,
                high=point.high,
                low=point.low,
                volume=point.volume,
                last_updated=now,
            )
            for point in series.points
        ]
        inserted = self.repository.upsert_stock_prices(rows, stock=stock)
        self._logger.info(
            "Reconciled price cache: symbol=%s upserted=%s total=%s rejected=%s",
            normalized,
            inserted,
            series.total,
            len(series.rejected),
        )
        return ReconcileResult(
            symbol=normalized,
            prices=self.repository.list_stock_prices(normalized),
            fetched=True,
            inserted_count=inserted,
            total_processed=series.total,
            rejected_count=len(series.rejected),
        )

    def save_prices(self, symbol: str, prices: list[dict[str, Any]]) -> SaveResult:
        normalized = normalize_symbol(symbol)
        now = self._now_fn()

        rows: list[StockPrice] = []
        for raw in prices:
            price_date = _parse_price_date(raw.get("date"))
            open_price = to_price(raw.get("open"))
            high = to_price(raw.get("high"))
            low = to_price(raw.get("low"))
            close = to_price(raw.get("close"))
            if price_date is None or open_price is None or high is None or low is None or close is None:
                self._logger.debug("Skipped price row: symbol=%s row=%s", normalized, raw)
                continue
            if check_candle(open_price, high, low, close) is not None:
                self._logger.debug("Skipped inconsistent price row: symbol=%s row=%s", normalized, raw)
                continue
            volume = to_price(raw.get("volume"))
            rows.append(
                StockPrice(
                    stock_price_id=str(uuid4()),
                    symbol=normalized,
                    price_date=price_date,
                    open=open_price,
                    close=close,
                    high=high,
                    low=low,
                    volume=int(volume) if volume is not None else 0,
                    last_updated=now,
                )
            )

        if not rows:
            raise PcrNoValidPricesError(total=len(prices))

        inserted = self.repository.upsert_stock_prices(rows, stock=self._unregistered_stock(normalized, None))
        return SaveResult(
            symbol=normalized,
            inserted_count=inserted,
            total_processed=len(prices),
            skipped_count=len(prices) - len(rows),
        )
