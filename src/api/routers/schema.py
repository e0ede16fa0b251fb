"""
GET /schema -- merged static + discovered table schema.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from src.api.deps import get_schema_service
from src.schema.service import SchemaService
from src.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/schema")
async def get_schema(service: SchemaService = Depends(get_schema_service)):
    """Schema as JSON; statically configured fields override discovered ones."""
    try:
        merged = await service.get_schema()
    except Exception as exc:
        logger.exception("Schema fetch failed")
        return PlainTextResponse(str(exc), status_code=503)
    return merged.to_dict()
