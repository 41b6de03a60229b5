"""
Example FastAPI application using cacheall

- GET  /api/user  -> cached response (prefix "user")
- POST /api/user  -> adds a user, then drops every "user" cached response

Run:
    cd backend
    CACHE_ENGINE=file uvicorn example_app:app --reload
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from cacheall import CacheConfig, CacheFacade, create_cache_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

USER_CACHE_TTL = 846000
USER_CACHE_PREFIX = "user"


def create_app(
    cache: Optional[CacheFacade] = None,
    config: Optional[CacheConfig] = None,
    delay_seconds: float = 0.0,
) -> FastAPI:
    """
    Build the demo app

    Args:
        cache: Facade to use (a new one is created when None)
        config: Cache config (environment when None)
        delay_seconds: Simulated slowness of the user listing
    """
    cache = cache or CacheFacade()
    users: List[Dict[str, Any]] = [
        {"id": 1, "name": "John Doe"},
        {"id": 2, "name": "Ba Hung"},
    ]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await cache.init(config or CacheConfig.from_env())
        yield
        await cache.close()

    app = FastAPI(
        title="cacheall example",
        lifespan=lifespan,
        middleware=[cache.middleware(USER_CACHE_TTL, USER_CACHE_PREFIX, methods=["GET"], paths=["/api/user"])],
    )
    app.state.cache = cache
    app.state.users = users
    app.include_router(create_cache_router(cache))

    @app.get("/api/user")
    async def list_users():
        """Get all users (slow on purpose, served from cache after the first call)"""
        if delay_seconds:
            await asyncio.sleep(delay_seconds)
        return users

    @app.post("/api/user", status_code=201)
    async def add_user():
        """Add a random user and invalidate the cached listings"""
        user_id = random.randint(3, 102)
        users.append({"id": user_id, "name": f"user_{user_id}"})

        await cache.remove_by_pattern(USER_CACHE_PREFIX)
        logger.info(f"[Example] Added user_{user_id}, user cache invalidated")
        return JSONResponse(status_code=201, content={"id": user_id})

    return app


app = create_app(delay_seconds=3.0)
