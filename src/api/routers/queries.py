"""
HTTP mirror of the command channel.

GET  /state                -- full ServerState snapshot
POST /queries              -- submit a descriptor (same as the ``query`` command)
POST /queries/{id}/status  -- one status poll (same as the ``status`` command)
GET  /cache/stats          -- result cache statistics
"""
from __future__ import annotations

from typing import Any

import pydantic
from fastapi import APIRouter, Body, Depends, HTTPException

from src.api.deps import get_cache, get_manager
from src.query.cache import ResultCache
from src.query.descriptor import parse_descriptor
from src.query.lifecycle import QueryLifecycleManager
from src.core.errors import ServiceError, ValidationError
from src.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/state")
def get_state(manager: QueryLifecycleManager = Depends(get_manager)) -> dict[str, Any]:
    return manager.snapshot()


@router.post("/queries", status_code=202)
async def submit_query(
    descriptor: dict[str, Any] = Body(...),
    manager: QueryLifecycleManager = Depends(get_manager),
) -> dict[str, Any]:
    """Validate the descriptor shape, then run its lifecycle in the background."""
    try:
        parsed = parse_descriptor(descriptor)
    except pydantic.ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False))
    manager.start_query(parsed)
    return {"accepted": True, "type": parsed.type}


@router.post("/queries/{execution_id}/status")
async def refresh_status(
    execution_id: str,
    manager: QueryLifecycleManager = Depends(get_manager),
) -> dict[str, Any]:
    try:
        execution = await manager.get_query_status(execution_id)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except ServiceError as exc:
        logger.warning("Status refresh failed: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc))
    return execution.to_dict()


@router.get("/cache/stats")
def cache_stats(cache: ResultCache = Depends(get_cache)) -> dict[str, Any]:
    return cache.stats()
