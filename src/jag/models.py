from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from jdb.models import (
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
from qpa.contracts import NormalizedSeries, QuoteMeta

Scalar = str | int | float | None


def _json_list(value: Any) -> Any:
    """Legacy form clients send nested lists as a JSON string."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            raise ValueError("must be a JSON array") from None
    return value


class StockDataRequest(BaseModel):
    symbol: str = ""


class StockPricesRequest(BaseModel):
    symbol: str = ""
    prices: list[dict[str, Any]] = Field(default_factory=list)


class SimulationCreateRequest(BaseModel):
    symbol: str = ""
    companyName: str | None = None
    initialCapital: Scalar = None
    startDate: str = ""
    endDate: str = ""
    tradingConditions: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("tradingConditions", mode="before")
    @classmethod
    def parse_trading_conditions(cls, value: Any) -> Any:
        return _json_list(value)


class SimulationDeleteRequest(BaseModel):
    simulationId: str = ""


class SimulationStatusRequest(BaseModel):
    status: str = ""


class JournalEntryRequest(BaseModel):
    content: str = ""
    entryDate: str | None = None


class ReviewRequest(BaseModel):
    content: str = ""
    rating: Scalar = None


class CheckpointCreateRequest(BaseModel):
    simulationId: str = ""
    checkpointType: str = ""
    checkpointDate: str = ""
    note: str = ""
    hypotheses: list[Any] = Field(default_factory=list)
    conditions: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("hypotheses", "conditions", mode="before")
    @classmethod
    def parse_nested_lists(cls, value: Any) -> Any:
        return _json_list(value)


class CheckpointUpdateRequest(BaseModel):
    checkpointType: str = ""
    checkpointDate: str = ""
    note: str = ""


class ConditionsCreateRequest(BaseModel):
    simulationId: str = ""
    checkpointId: str | None = None
    conditions: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("conditions", mode="before")
    @classmethod
    def parse_conditions(cls, value: Any) -> Any:
        return _json_list(value)


class ConditionUpdateRequest(BaseModel):
    conditionId: str = ""
    type: str = ""
    metric: str = ""
    value: Scalar = ""
    isActive: bool | str = True


class ConditionDeleteRequest(BaseModel):
    conditionId: str = ""


class HypothesisFields(BaseModel):
    description: str = ""
    factorType: str = Field(default="", validation_alias=AliasChoices("factorType", "factor_type"))
    priceImpact: Scalar = Field(default=None, validation_alias=AliasChoices("priceImpact", "price_impact"))
    confidenceLevel: Scalar = Field(
        default=None,
        validation_alias=AliasChoices("confidenceLevel", "confidence_level"),
    )

    def hypothesis_fields(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "factorType": self.factorType,
            "priceImpact": self.priceImpact,
            "confidenceLevel": self.confidenceLevel,
        }


class HypothesisCreateRequest(HypothesisFields):
    checkpointId: str = ""


class HypothesisUpdateRequest(HypothesisFields):
    hypothesisId: str = ""


class HypothesisDeleteRequest(BaseModel):
    hypothesisId: str = ""


class PnlRecordRequest(BaseModel):
    checkpointId: str = ""
    priceDate: str = ""
    positionSize: Scalar = None
    realizedPl: Scalar = 0
    unrealizedPl: Scalar = 0


def build_error_body(message: str) -> dict[str, str]:
    return {"error": message}


def to_decimal_string(value: Decimal) -> str:
    return format(value, "f")


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def stock_payload(stock: Stock) -> dict[str, Any]:
    return {"symbol": stock.symbol, "name": stock.name, "sector": stock.sector, "industry": stock.industry}


def simulation_payload(simulation: Simulation, stock: Stock | None = None) -> dict[str, Any]:
    payload = {
        "simulationId": simulation.simulation_id,
        "symbol": simulation.symbol,
        "initialCapital": to_decimal_string(simulation.initial_capital),
        "startDate": _iso(simulation.start_date),
        "endDate": _iso(simulation.end_date),
        "status": simulation.status,
        "createdAt": _iso(simulation.created_at),
        "updatedAt": _iso(simulation.updated_at),
    }
    if stock is not None:
        payload.update({"stockName": stock.name, "sector": stock.sector, "industry": stock.industry})
    return payload


def checkpoint_payload(checkpoint: Checkpoint) -> dict[str, Any]:
    return {
        "checkpointId": checkpoint.checkpoint_id,
        "simulationId": checkpoint.simulation_id,
        "checkpointDate": _iso(checkpoint.checkpoint_date),
        "checkpointType": checkpoint.checkpoint_type,
        "note": checkpoint.note,
        "createdAt": _iso(checkpoint.created_at),
    }


def checkpoint_summary_payload(summary: CheckpointSummary) -> dict[str, Any]:
    payload = checkpoint_payload(summary.checkpoint)
    payload.update(
        {
            "hypothesisCount": summary.hypothesis_count,
            "conditionCount": summary.condition_count,
            "pnlCount": summary.pnl_count,
        }
    )
    return payload


def condition_payload(condition: Condition) -> dict[str, Any]:
    return {
        "conditionId": condition.condition_id,
        "checkpointId": condition.checkpoint_id,
        "type": condition.type,
        "metric": condition.metric,
        "value": condition.value,
        "isActive": condition.is_active,
        "updatedAt": _iso(condition.updated_at),
    }


def hypothesis_payload(hypothesis: Hypothesis) -> dict[str, Any]:
    return {
        "hypothesisId": hypothesis.hypothesis_id,
        "checkpointId": hypothesis.checkpoint_id,
        "description": hypothesis.description,
        "factorType": hypothesis.factor_type,
        "priceImpact": hypothesis.price_impact,
        "confidenceLevel": hypothesis.confidence_level,
        "riskScore": hypothesis.risk_score,
        "isActive": hypothesis.is_active,
        "updatedAt": _iso(hypothesis.updated_at),
    }


def pnl_payload(record: PnlRecord, price: StockPrice | None = None) -> dict[str, Any]:
    payload = {
        "pnlId": record.pnl_id,
        "checkpointId": record.checkpoint_id,
        "stockPriceId": record.stock_price_id,
        "positionSize": to_decimal_string(record.position_size),
        "realizedPl": to_decimal_string(record.realized_pl),
        "unrealizedPl": to_decimal_string(record.unrealized_pl),
        "recordedAt": _iso(record.recorded_at),
    }
    if price is not None:
        payload.update({"priceDate": _iso(price.price_date), "closePrice": float(price.close)})
    return payload


def journal_payload(entry: JournalEntry) -> dict[str, Any]:
    return {
        "journalId": entry.journal_id,
        "simulationId": entry.simulation_id,
        "entryDate": _iso(entry.entry_date),
        "content": entry.content,
        "createdAt": _iso(entry.created_at),
    }


def review_payload(review: Review) -> dict[str, Any]:
    return {
        "reviewId": review.review_id,
        "simulationId": review.simulation_id,
        "content": review.content,
        "rating": review.rating,
        "createdAt": _iso(review.created_at),
    }


def stock_info_payload(meta: QuoteMeta, series: NormalizedSeries, symbol: str) -> dict[str, Any]:
    price = meta.regular_market_price if meta.regular_market_price is not None else meta.previous_close
    previous = meta.previous_close
    change = price - previous if price is not None and previous else 0
    return {
        "symbol": meta.symbol or symbol,
        "longName": meta.long_name or meta.short_name or symbol,
        "shortName": meta.short_name or meta.long_name or symbol,
        "sector": meta.sector or "Unknown",
        "industry": meta.industry or "Unknown",
        "marketCap": meta.market_cap,
        "regularMarketPrice": price,
        "regularMarketChange": change,
        "regularMarketChangePercent": change / previous if previous else 0,
        "regularMarketPreviousClose": previous,
        "regularMarketOpen": meta.regular_market_open if meta.regular_market_open is not None else previous,
        "regularMarketDayHigh": meta.day_high if meta.day_high is not None else price,
        "regularMarketDayLow": meta.day_low if meta.day_low is not None else price,
        "regularMarketVolume": meta.regular_market_volume or 0,
        "currency": meta.currency or "USD",
        "exchange": meta.exchange or "Unknown",
        "quoteType": meta.instrument_type or "EQUITY",
        "fiftyTwoWeekHigh": meta.fifty_two_week_high,
        "fiftyTwoWeekLow": meta.fifty_two_week_low,
        "marketTime": _iso(meta.market_time),
        "marketState": meta.market_state or "Unknown",
        "timezone": meta.timezone or "UTC",
        "gmtoffset": meta.gmtoffset or 0,
        "chartData": [
            {
                "date": point.date.isoformat(),
                "timestamp": point.timestamp,
                "open": float(point.open),
                "high": float(point.high),
                "low": float(point.low),
                "close": float(point.close),
                "volume": point.volume,
            }
            for point in series.points
        ],
    }
