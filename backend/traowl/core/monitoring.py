"""
Monitoring & Observability
JSON log formatting and timing of gateway and ingestion operations.
"""

from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Optional
import json
import logging
import time

logger = logging.getLogger(__name__)

# Optional ``extra=`` attributes copied into JSON records
EXTRA_FIELDS = ("duration_ms", "operation", "collection", "source")

# Operations slower than this are logged at WARNING
SLOW_OPERATION_MS = 1000.0


# ============================================================================
# STRUCTURED LOGGING
# ============================================================================

class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
        }
        for name in EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


# ============================================================================
# PERFORMANCE TRACKING
# ============================================================================

def _log_timing(operation_name: str, start: float, error: Optional[Exception] = None) -> None:
    elapsed = (time.perf_counter() - start) * 1000
    extra = {"duration_ms": round(elapsed, 1), "operation": operation_name}
    if error is not None:
        logger.error(f"{operation_name} failed after {elapsed:.0f}ms: {error}", extra=extra)
    elif elapsed >= SLOW_OPERATION_MS:
        logger.warning(f"{operation_name} slow: {elapsed:.0f}ms", extra=extra)
    else:
        logger.info(f"{operation_name} completed in {elapsed:.0f}ms", extra=extra)


def track_performance(operation_name: str):
    """Decorator to log how long a call took, and whether it raised."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_timing(operation_name, start, e)
                raise
            _log_timing(operation_name, start)
            return result

        return wrapper

    return decorator
