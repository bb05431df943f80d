from .errors import PcrNoValidPricesError, PcrSymbolRequiredError, PcrValidationError
from .service import PriceCacheReconciler, ReconcileResult, SaveResult, normalize_symbol, stock_from_meta

__all__ = [
    "PcrNoValidPricesError",
    "PcrSymbolRequiredError",
    "PcrValidationError",
    "PriceCacheReconciler",
    "ReconcileResult",
    "SaveResult",
    "normalize_symbol",
    "stock_from_meta",
]
