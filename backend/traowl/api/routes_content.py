"""
Read-only content routes over the data access gateway.
Each response carries ``X-Data-Source`` (primary or fallback).
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from traowl.api.deps import get_data_service
from traowl.db.registry import get_spec
from traowl.services.data_service import DataService
from traowl.services.results import DataResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["content"])

SOURCE_HEADER = "X-Data-Source"


def _require_collection(collection: str) -> None:
    if get_spec(collection) is None:
        raise HTTPException(status_code=404, detail=f"Unknown collection: {collection}")


def _serve(response: Response, result: DataResult, label: str):
    response.headers[SOURCE_HEADER] = result.source.value
    if result.warning:
        logger.info(f"{label} served degraded: {result.warning}")
    return result.data


@router.get("/content/{collection}")
async def list_collection(
    collection: str,
    response: Response,
    limit: Optional[int] = Query(None, ge=1, le=500, description="Maximum number of records"),
    select: Optional[str] = Query(None, description="Comma separated field list"),
    service: DataService = Depends(get_data_service),
):
    _require_collection(collection)
    options = {"limit": limit, "select": select}
    return _serve(response, service.fetch(collection, options), f"/content/{collection}")


@router.get("/content/{collection}/featured")
async def featured_items(
    collection: str,
    response: Response,
    limit: int = Query(6, ge=1, le=100),
    service: DataService = Depends(get_data_service),
):
    _require_collection(collection)
    result = service.fetch_featured(collection, limit)
    return _serve(response, result, f"/content/{collection}/featured")


@router.get("/content/{collection}/category/{category}")
async def items_by_category(
    collection: str,
    category: str,
    response: Response,
    limit: int = Query(12, ge=1, le=100),
    service: DataService = Depends(get_data_service),
):
    _require_collection(collection)
    result = service.fetch_by_category(collection, category, limit)
    return _serve(response, result, f"/content/{collection}/category/{category}")


@router.get("/content/{collection}/{item_id}")
async def item_by_id(
    collection: str,
    item_id: str,
    response: Response,
    service: DataService = Depends(get_data_service),
):
    _require_collection(collection)
    result = service.lookup(collection, item_id)
    if result.data is None:
        raise HTTPException(status_code=404, detail=f"{collection}/{item_id} not found")
    return _serve(response, result, f"/content/{collection}/{item_id}")


@router.get("/search")
async def search(
    q: str = Query(..., min_length=1, description="Search text"),
    type: Optional[str] = Query(None, description="trips, activities, destinations or blogs"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    service: DataService = Depends(get_data_service),
):
    options = {"type": type, "limit": limit}
    results = service.search(q, options)
    return {"query": q, "count": len(results), "results": results}
