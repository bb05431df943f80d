from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Literal

from .errors import CfgChoiceInvalidError, CfgValueInvalidError

DEFAULT_SETTINGS_PATH = "runtime/config/settings.local.json"

QuoteMode = Literal["mock", "live"]
RefreshPolicy = Literal["never", "ttl"]
GapMode = Literal["zero_fill", "skip"]

_ENV_OVERRIDES: dict[str, str] = {
    "INVSIM_DB_PATH": "dbPath",
    "INVSIM_QUOTE_MODE": "quoteMode",
    "INVSIM_QUOTE_BASE_URL": "quoteBaseUrl",
    "INVSIM_QUOTE_TIMEOUT_SECONDS": "quoteTimeoutSeconds",
    "INVSIM_PRICE_CACHE_REFRESH": "priceCacheRefresh",
    "INVSIM_PRICE_CACHE_TTL_HOURS": "priceCacheTtlHours",
    "INVSIM_MA_GAP_MODE": "maGapMode",
}


@dataclass(frozen=True)
class AppSettings:
    db_path: str = "runtime/state/invsim.db"
    quote_mode: QuoteMode = "live"
    quote_base_url: str = "https://query1.finance.yahoo.com"
    quote_timeout_seconds: float = 10.0
    quote_range_days: int = 100
    price_cache_refresh: RefreshPolicy = "never"
    price_cache_ttl_hours: int = 24
    ma_gap_mode: GapMode = "zero_fill"
    ma_periods: tuple[int, ...] = field(default=(5, 10, 20, 30))

    def to_dict(self) -> dict[str, Any]:
        return {
            "dbPath": self.db_path,
            "quoteMode": self.quote_mode,
            "quoteBaseUrl": self.quote_base_url,
            "quoteTimeoutSeconds": self.quote_timeout_seconds,
            "quoteRangeDays": self.quote_range_days,
            "priceCacheRefresh": self.price_cache_refresh,
            "priceCacheTtlHours": self.price_cache_ttl_hours,
            "maGapMode": self.ma_gap_mode,
            "maPeriods": list(self.ma_periods),
        }


def _atomic_write_json(path: str, payload: dict) -> None:
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            json.dump(payload, file, ensure_ascii=False, indent=2)
            file.flush()
            os.fsync(file.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def _positive_float(raw: dict[str, Any], key: str, default: float) -> float:
    value = raw.get(key, default)
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise CfgValueInvalidError(field=key, value=value) from None
    if parsed <= 0:
        raise CfgValueInvalidError(field=key, value=value)
    return parsed


def _positive_int(raw: dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise CfgValueInvalidError(field=key, value=value) from None
    if parsed <= 0:
        raise CfgValueInvalidError(field=key, value=value)
    return parsed


def _choice(raw: dict[str, Any], key: str, default: str, choices: tuple[str, ...]) -> str:
    value = str(raw.get(key, default)).strip()
    if value not in choices:
        raise CfgChoiceInvalidError(field=key, value=value)
    return value


def settings_from_dict(raw: dict[str, Any]) -> AppSettings:
    defaults = AppSettings()

    db_path = str(raw.get("dbPath", defaults.db_path)).strip()
    if not db_path:
        raise CfgValueInvalidError(field="dbPath", value=db_path)
    base_url = str(raw.get("quoteBaseUrl", defaults.quote_base_url)).strip().rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        raise CfgValueInvalidError(field="quoteBaseUrl", value=base_url)

    raw_periods = raw.get("maPeriods", list(defaults.ma_periods))
    if not isinstance(raw_periods, (list, tuple)) or not raw_periods:
        raise CfgValueInvalidError(field="maPeriods", value=raw_periods)
    periods: list[int] = []
    for period in raw_periods:
        parsed = _positive_int({"maPeriods": period}, "maPeriods", 0)
        if parsed not in periods:
            periods.append(parsed)

    return AppSettings(
        db_path=db_path,
        quote_mode=_choice(raw, "quoteMode", defaults.quote_mode, ("mock", "live")),  # type: ignore[arg-type]
        quote_base_url=base_url,
        quote_timeout_seconds=_positive_float(raw, "quoteTimeoutSeconds", defaults.quote_timeout_seconds),
        quote_range_days=_positive_int(raw, "quoteRangeDays", defaults.quote_range_days),
        price_cache_refresh=_choice(raw, "priceCacheRefresh", defaults.price_cache_refresh, ("never", "ttl")),  # type: ignore[arg-type]
        price_cache_ttl_hours=_positive_int(raw, "priceCacheTtlHours", defaults.price_cache_ttl_hours),
        ma_gap_mode=_choice(raw, "maGapMode", defaults.ma_gap_mode, ("zero_fill", "skip")),  # type: ignore[arg-type]
        ma_periods=tuple(sorted(periods)),
    )


def load_settings(path: str = DEFAULT_SETTINGS_PATH, *, environ: dict[str, str] | None = None) -> AppSettings:
    """Read the settings file, writing the defaults first when it does not exist.

    Environment variables listed in ``_ENV_OVERRIDES`` win over the file.
    """
    if not os.path.exists(path):
        _atomic_write_json(path, AppSettings().to_dict())

    with open(path, "r", encoding="utf-8") as file:
        raw = json.load(file)
    if not isinstance(raw, dict):
        raise CfgValueInvalidError(field="settings", value=type(raw).__name__)

    env = os.environ if environ is None else environ
    for env_key, settings_key in _ENV_OVERRIDES.items():
        value = env.get(env_key)
        if value is not None and value.strip():
            raw[settings_key] = value.strip()

    return settings_from_dict(raw)
