"""
Cache API Routes

HTTP endpoints for managing a CacheFacade:
- GET    /api/cache/status          - Engine, default TTL, active flag
- GET    /api/cache/entries         - List all cached entries
- GET    /api/cache/entries/{key}   - Get single cached value
- PUT    /api/cache/entries/{key}   - Store a value
- DELETE /api/cache/entries/{key}   - Remove a value
- POST   /api/cache/invalidate      - Remove every key matching a pattern
- POST   /api/cache/clear           - Clear the whole cache
"""

import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from .errors import CacheError
from .facade import CacheFacade

logger = logging.getLogger(__name__)


# ============================================
# Request/Response Models
# ============================================

class CacheStatusResponse(BaseModel):
    """Response model for status endpoint"""
    active: bool
    engine: Optional[str] = None
    default_ttl: Optional[int] = None


class CacheEntryModel(BaseModel):
    """A single cached entry"""
    key: str
    value: Any = None


class CacheListResponse(BaseModel):
    """Response model for list endpoint"""
    success: bool
    count: int
    items: List[CacheEntryModel]


class StoreEntryRequest(BaseModel):
    """Request model for storing a value"""
    value: Any = Field(..., description="JSON value to cache")
    ttl: Optional[int] = Field(None, ge=-1, description="Seconds to live, -1 never expires")


class InvalidateRequest(BaseModel):
    """Request model for pattern invalidation"""
    pattern: str = Field(..., min_length=1, description="Regular expression matched against keys")


class OperationResponse(BaseModel):
    """Response model for mutating operations"""
    success: bool
    status: int
    message: str


# ============================================
# Router
# ============================================

def create_cache_router(cache: CacheFacade, prefix: str = "/api/cache") -> APIRouter:
    """
    Build the admin router for a facade

    Usage:
        app.include_router(create_cache_router(cache))
    """
    router = APIRouter(prefix=prefix, tags=["cache"])

    def _operation(result: Dict[str, int], message: str) -> OperationResponse:
        applied = result["status"] == 1
        return OperationResponse(
            success=applied,
            status=result["status"],
            message=message if applied else "Cache is not active",
        )

    @router.get("/status", response_model=CacheStatusResponse)
    async def cache_status():
        """Current engine and default TTL"""
        return CacheStatusResponse(
            active=cache.is_active,
            engine=cache.engine,
            default_ttl=cache.default_ttl,
        )

    @router.get("/entries", response_model=CacheListResponse)
    async def list_entries():
        """
        List all cached entries

        An inactive cache answers with an empty list.
        """
        try:
            entries = await cache.get_all() or []
        except CacheError as e:
            raise HTTPException(status_code=500, detail=str(e))

        return CacheListResponse(
            success=True,
            count=len(entries),
            items=[CacheEntryModel(**entry) for entry in entries],
        )

    @router.get("/entries/{key}", response_model=CacheEntryModel)
    async def get_entry(key: str):
        try:
            value = await cache.get(key)
        except CacheError as e:
            raise HTTPException(status_code=500, detail=str(e))

        if value is None:
            raise HTTPException(
                status_code=404,
                detail=f"Cache entry '{key}' not found or expired",
            )
        return CacheEntryModel(key=key, value=value)

    @router.put("/entries/{key}", response_model=OperationResponse)
    async def store_entry(key: str, request: StoreEntryRequest):
        try:
            result = await cache.set(key, request.value, request.ttl)
        except CacheError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return _operation(result, f"Stored cache entry: {key}")

    @router.delete("/entries/{key}", response_model=OperationResponse)
    async def delete_entry(key: str):
        try:
            result = await cache.remove(key)
        except CacheError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return _operation(result, f"Deleted cache entry: {key}")

    @router.post("/invalidate", response_model=OperationResponse)
    async def invalidate(request: InvalidateRequest):
        """
        Remove every key matching a pattern

        Typical use: drop responses cached by the middleware under a prefix.
        """
        try:
            re.compile(request.pattern)
        except re.error as e:
            raise HTTPException(status_code=400, detail=f"Invalid pattern: {e}")

        try:
            result = await cache.remove_by_pattern(request.pattern)
        except CacheError as e:
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"[CacheAPI] Invalidated pattern {request.pattern!r}")
        return _operation(result, f"Removed entries matching: {request.pattern}")

    @router.post("/clear", response_model=OperationResponse)
    async def clear_cache():
        """
        Clear all cache entries

        Use with caution - this deletes every stored entry.
        """
        try:
            result = await cache.clear()
        except CacheError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return _operation(result, "Cleared all cache entries")

    return router
