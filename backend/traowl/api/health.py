"""
Health check routes.
Reports which backend the gateway is serving from; never touches the stores.
"""

from datetime import datetime, timezone
import time

from fastapi import APIRouter, Depends

from traowl.api.deps import get_data_service
from traowl.services.data_service import DataService

router = APIRouter(prefix="/health", tags=["health"])

# Track startup time for uptime reporting
_STARTUP_TIME = time.time()


@router.get("")
async def health_check(service: DataService = Depends(get_data_service)):
    """
    ``{database: {connected, state}, jsonFallback: {available, path}}`` plus
    an overall status: ``degraded`` while reads are served from flat files.
    """
    report = service.health_check()
    if report["database"]["connected"]:
        status = "healthy"
    elif report["jsonFallback"]["available"]:
        status = "degraded"
    else:
        status = "unavailable"
    return {
        "status": status,
        **report,
        "uptime_seconds": int(time.time() - _STARTUP_TIME),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/live")
async def liveness_check():
    """Liveness probe. Returns 200 if service is running."""
    return {"alive": True, "uptime_seconds": int(time.time() - _STARTUP_TIME)}
