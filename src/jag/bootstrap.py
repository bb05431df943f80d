from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cfg.settings import DEFAULT_SETTINGS_PATH, AppSettings, load_settings
from pcr.errors import PcrValidationError
from qpa.contracts import QuoteSource
from qpa.errors import QpaError
from slm.errors import SlmError, map_slm_error

from .models import (
    CheckpointCreateRequest,
    CheckpointUpdateRequest,
    ConditionDeleteRequest,
    ConditionsCreateRequest,
    ConditionUpdateRequest,
    HypothesisCreateRequest,
    HypothesisDeleteRequest,
    HypothesisUpdateRequest,
    JournalEntryRequest,
    PnlRecordRequest,
    ReviewRequest,
    SimulationCreateRequest,
    SimulationDeleteRequest,
    SimulationStatusRequest,
    StockDataRequest,
    StockPricesRequest,
    build_error_body,
)
from .service import JagService

_LOGGER = logging.getLogger("invsim.jag")

_PCR_MESSAGES = {
    "PCR_SYMBOL_REQUIRED": "Symbol is required",
    "PCR_NO_VALID_PRICES": "No valid price data to save",
}


def _request_id(request: Request) -> str:
    prior = getattr(request.state, "request_id", None)
    if prior:
        return prior
    request.state.request_id = request.headers.get("X-Request-Id") or f"req-{uuid4().hex[:12]}"
    return request.state.request_id


def _error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=build_error_body(message),
        headers={"X-Request-Id": _request_id(request)},
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"Invalid request: {location or 'body'} {first.get('msg', 'is invalid')}".strip()


def create_app(
    *,
    settings_path: str = DEFAULT_SETTINGS_PATH,
    settings: AppSettings | None = None,
    quote_source: QuoteSource | None = None,
) -> FastAPI:
    resolved = settings or load_settings(settings_path)
    app = FastAPI(title="invsim journal", version="0.1.0")
    service = JagService(settings=resolved, quote_source=quote_source)
    _LOGGER.info(
        "Journal gateway configured: db_path=%s quote_mode=%s price_cache_refresh=%s",
        resolved.db_path,
        resolved.quote_mode,
        resolved.price_cache_refresh,
    )

    @app.middleware("http")
    async def _attach_request_id(request: Request, call_next):
        request_id = _request_id(request)
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    @app.exception_handler(SlmError)
    async def _handle_slm_error(request: Request, exc: SlmError) -> JSONResponse:
        status_code, message = map_slm_error(exc)
        _LOGGER.info("Request rejected: code=%s field=%s status=%s", exc.code, exc.field, status_code)
        return _error_response(request, status_code, message)

    @app.exception_handler(PcrValidationError)
    async def _handle_pcr_error(request: Request, exc: PcrValidationError) -> JSONResponse:
        return _error_response(request, 400, _PCR_MESSAGES.get(exc.code, "Invalid stock data"))

    @app.exception_handler(QpaError)
    async def _handle_qpa_error(request: Request, exc: QpaError) -> JSONResponse:
        _LOGGER.warning("Quote source failure: code=%s retryable=%s details=%s", exc.code, exc.retryable, exc.payload.details)
        return _error_response(request, 500, "Failed to fetch stock data")

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(request, 400, _describe_validation_error(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = str(exc.detail) if exc.detail else "Request failed"
        return _error_response(request, exc.status_code, message)

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        _LOGGER.exception("Unhandled error: path=%s", request.url.path)
        return _error_response(request, 500, "Internal server error")

    # stock data

    @app.get("/stock-info")
    def stock_info(symbol: str = Query(default="")) -> dict:
        return service.stock_info(symbol)

    @app.post("/stock-data")
    def stock_data(body: StockDataRequest) -> dict:
        return service.stock_data(body.symbol)

    @app.post("/stock-prices")
    def stock_prices(body: StockPricesRequest) -> dict:
        return service.stock_prices(body.symbol, body.prices)

    # simulations

    @app.get("/simulations")
    def list_simulations(status: str | None = Query(default=None)) -> dict:
        return service.list_simulations(status)

    @app.post("/simulations")
    def create_simulation(body: SimulationCreateRequest) -> dict:
        return service.create_simulation(body.model_dump())

    @app.delete("/simulations")
    def delete_simulation(body: SimulationDeleteRequest) -> dict:
        return service.delete_simulation(body.simulationId)

    @app.get("/simulations/{simulation_id}")
    def get_simulation(simulation_id: str) -> dict:
        return service.get_simulation(simulation_id)

    @app.put("/simulations/{simulation_id}/status")
    def update_simulation_status(simulation_id: str, body: SimulationStatusRequest) -> dict:
        return service.update_simulation_status(simulation_id, body.status)

    @app.get("/simulations/{simulation_id}/chart")
    def simulation_chart(simulation_id: str) -> dict:
        return service.simulation_chart(simulation_id)

    @app.get("/simulations/{simulation_id}/checkpoints")
    def simulation_checkpoints(simulation_id: str) -> dict:
        return service.list_checkpoints(simulation_id)

    @app.post("/simulations/{simulation_id}/journals")
    def add_journal_entry(simulation_id: str, body: JournalEntryRequest) -> dict:
        return service.add_journal_entry(simulation_id, body.model_dump())

    @app.post("/simulations/{simulation_id}/reviews")
    def add_review(simulation_id: str, body: ReviewRequest) -> dict:
        return service.add_review(simulation_id, body.model_dump())

    # checkpoints

    @app.post("/checkpoints")
    def create_checkpoint(body: CheckpointCreateRequest) -> dict:
        return service.create_checkpoint(body.model_dump())

    @app.get("/checkpoints/{checkpoint_id}")
    def get_checkpoint(checkpoint_id: str) -> dict:
        return service.get_checkpoint(checkpoint_id)

    @app.put("/checkpoints/{checkpoint_id}/update")
    def update_checkpoint(checkpoint_id: str, body: CheckpointUpdateRequest) -> dict:
        return service.update_checkpoint(checkpoint_id, body.model_dump())

    @app.delete("/checkpoints/{checkpoint_id}/delete")
    def delete_checkpoint(checkpoint_id: str) -> dict:
        return service.delete_checkpoint(checkpoint_id)

    # conditions

    @app.get("/conditions")
    def list_conditions(
        simulation_id: str = Query(default="", alias="simulationId"),
        checkpoint_id: str | None = Query(default=None, alias="checkpointId"),
    ) -> dict:
        return service.list_conditions(simulation_id, checkpoint_id)

    @app.post("/conditions")
    def replace_conditions(body: ConditionsCreateRequest) -> dict:
        return service.replace_conditions(body.model_dump())

    @app.put("/conditions")
    def update_condition(body: ConditionUpdateRequest) -> dict:
        return service.update_condition(body.model_dump())

    @app.delete("/conditions")
    def delete_condition(body: ConditionDeleteRequest) -> dict:
        return service.delete_condition(body.conditionId)

    # hypotheses

    @app.get("/hypotheses")
    def list_hypotheses(checkpoint_id: str = Query(default="", alias="checkpointId")) -> dict:
        return service.list_hypotheses(checkpoint_id)

    @app.post("/hypotheses")
    def create_hypothesis(body: HypothesisCreateRequest) -> dict:
        return service.create_hypothesis(body.checkpointId, body.hypothesis_fields())

    @app.put("/hypotheses")
    def update_hypothesis(body: HypothesisUpdateRequest) -> dict:
        return service.update_hypothesis(body.hypothesisId, body.hypothesis_fields())

    @app.delete("/hypotheses")
    def delete_hypothesis(body: HypothesisDeleteRequest) -> dict:
        return service.delete_hypothesis(body.hypothesisId)

    # pnl

    @app.post("/pnl-records")
    def record_pnl(body: PnlRecordRequest) -> dict:
        return service.record_pnl(body.model_dump())

    return app
