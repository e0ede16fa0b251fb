"""
GET /query-result?id=<execution id> -- CSV written by Athena for a finished query.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse, Response

from src.api.deps import get_cache, get_executor
from src.query.cache import ResultCache
from src.core.errors import ValidationError
from src.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

QUERY_RESULT_TAG = "getQueryResult"


@router.get("/query-result")
async def query_result(
    id: str = Query(..., description="Athena query execution id"),
    cache: ResultCache = Depends(get_cache),
    executor=Depends(get_executor),
):
    """Result blobs are immutable once written, so they are cached forever."""
    if not id.strip():
        return PlainTextResponse(str(ValidationError("id is required")), status_code=422)
    try:
        body = await cache.get(executor.get_query_result_csv, id, tag=QUERY_RESULT_TAG)
    except Exception as exc:
        logger.warning("Result fetch failed for id=%s: %s", id, exc)
        return PlainTextResponse(str(exc), status_code=503)
    return Response(content=body, media_type="text/csv")
