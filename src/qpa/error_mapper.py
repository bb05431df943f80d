from __future__ import annotations

import json
from socket import timeout as socket_timeout
from typing import Any
from urllib.error import URLError

from .errors import QpaError, make_qpa_error


def upstream_description(body: dict[str, Any] | None) -> str | None:
    """The chart endpoint reports failures as ``{"chart": {"error": {"description": ...}}}``."""
    chart = (body or {}).get("chart")
    error = chart.get("error") if isinstance(chart, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    return None


def map_http_status(status_code: int, body: dict[str, Any] | None = None) -> QpaError:
    details: dict[str, Any] = {"status": status_code}
    description = upstream_description(body)
    if description:
        details["upstream"] = description

    if status_code == 404:
        code, message, retryable = "QPA_SYMBOL_NOT_FOUND", "Symbol not found at the quote source.", False
    elif status_code == 429:
        code, message, retryable = "QPA_RATE_LIMITED", "Quote source rate limit exceeded.", True
    elif 500 <= status_code <= 599:
        code, message, retryable = "QPA_UPSTREAM_UNAVAILABLE", "Quote source is temporarily unavailable.", True
    else:
        code, message, retryable = "QPA_UNKNOWN", f"Quote source returned HTTP {status_code}.", False
    return make_qpa_error(code, message, retryable, details)


def map_exception(exc: Exception) -> QpaError:
    if isinstance(exc, QpaError):
        return exc
    details = {"error": str(exc)}
    reason = exc.reason if isinstance(exc, URLError) else exc
    if isinstance(reason, (TimeoutError, socket_timeout)):
        return make_qpa_error("QPA_API_TIMEOUT", "Quote source did not respond in time.", True, details)
    if isinstance(exc, URLError):
        return make_qpa_error("QPA_UPSTREAM_UNAVAILABLE", "Quote source could not be reached.", True, details)
    if isinstance(exc, (ValueError, json.JSONDecodeError)):
        return make_qpa_error("QPA_RESPONSE_INVALID", "Quote source response is malformed.", False, details)
    return make_qpa_error("QPA_UNKNOWN", "Unexpected quote source failure.", False, details)
