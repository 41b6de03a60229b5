"""
Request Cache Middleware

ASGI middleware caching response bodies per request fingerprint.

Flow:
1. Fingerprint = md5(METHOD + "|" + path?query), optionally "<prefix>_<fingerprint>"
2. Cache hit  -> replay the cached body with its content type, the wrapped app is not called
3. Cache miss -> run the app, forward the response untouched, then store
   the first complete body under the fingerprint

Invalidation is left to the caller: keys only depend on method + URL, so
routes sharing a prefix are dropped with cache.remove_by_pattern(prefix).
"""

import hashlib
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .errors import CacheError

if TYPE_CHECKING:
    from .facade import CacheFacade

logger = logging.getLogger(__name__)

CACHE_HEADER = "X-Cache"


# ============================================
# Key Derivation
# ============================================

def route_fingerprint(url: str, method: str) -> str:
    """md5 of METHOD|url, unique per route + query string"""
    return hashlib.md5(f"{method}|{url}".encode("utf-8")).hexdigest()


def build_cache_key(method: str, url: str, prefix: Optional[str] = None) -> str:
    key = route_fingerprint(url, method.upper())
    if prefix:
        key = f"{prefix}_{key}"
    return key


def request_target(scope: Scope) -> str:
    """Full path with query string, as seen by the client"""
    url = Request(scope).url
    return f"{url.path}?{url.query}" if url.query else url.path


# ============================================
# Payload Helpers
# ============================================

def encode_payload(content_type: str, body: bytes) -> Optional[Dict[str, str]]:
    """
    Turn a response body into the value to cache.

    The body is kept as text next to its content type so a hit replays
    exactly what the handler sent. Returns None for bodies that are not
    UTF-8 text.
    """
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return {"media_type": content_type, "body": text}


def _is_stored_response(payload: Any) -> bool:
    return isinstance(payload, dict) and set(payload) == {"media_type", "body"}


def replay_response(payload: Any) -> Response:
    headers = {CACHE_HEADER: "HIT"}
    if _is_stored_response(payload):
        return Response(
            content=payload["body"],
            media_type=payload["media_type"] or None,
            headers=headers,
        )

    # Values written under the key by the caller, not by this middleware
    if isinstance(payload, str):
        return PlainTextResponse(payload, headers=headers)
    return JSONResponse(payload, headers=headers)


# ============================================
# Middleware
# ============================================

class RequestCacheMiddleware:
    """
    Usage:
        app.add_middleware(RequestCacheMiddleware, cache=cache, ttl=60, prefix="user", paths=["/api/user"])

    or through the facade:
        app = FastAPI(middleware=[cache.middleware(60, "user")])
    """

    def __init__(
        self,
        app: ASGIApp,
        cache: "CacheFacade",
        ttl: Optional[float] = None,
        prefix: Optional[str] = None,
        methods: Optional[Sequence[str]] = None,
        paths: Optional[Sequence[str]] = None,
    ):
        self.app = app
        self.cache = cache
        self.ttl = ttl
        self.prefix = prefix
        self.methods = {m.upper() for m in methods} if methods else None
        self.paths = tuple(paths) if paths else None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope["method"].upper()
        if self.methods is not None and method not in self.methods:
            await self.app(scope, receive, send)
            return
        if self.paths is not None and not scope["path"].startswith(self.paths):
            await self.app(scope, receive, send)
            return

        target = request_target(scope)
        key = build_cache_key(method, target, self.prefix)

        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug(f"[CacheMiddleware] Cache hit: {method} {target}")
            await replay_response(cached)(scope, receive, send)
            return

        status_code = 0
        content_type = ""
        body = bytearray()
        is_cached = False

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, content_type, is_cached

            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = MutableHeaders(scope=message)
                headers[CACHE_HEADER] = "MISS"
                content_type = headers.get("content-type", "")
                await send(message)
                return

            if message["type"] == "http.response.body":
                body.extend(message.get("body", b""))
                await send(message)
                # Only the first complete response is ever cached
                if not message.get("more_body", False) and not is_cached:
                    is_cached = True
                    await self._store_response(key, target, status_code, content_type, bytes(body))
                return

            await send(message)

        await self.app(scope, receive, send_wrapper)

    async def _store_response(
        self,
        key: str,
        target: str,
        status_code: int,
        content_type: str,
        body: bytes,
    ) -> None:
        """Store a sent response; failures are logged, the client already has its response"""
        if not 200 <= status_code < 300:
            logger.debug(f"[CacheMiddleware] Not caching {status_code} response for {target}")
            return

        payload = encode_payload(content_type, body)
        if payload is None:
            logger.debug(f"[CacheMiddleware] Not caching non-text response for {target}")
            return

        try:
            await self.cache.set(key, payload, self.ttl)
            logger.debug(f"[CacheMiddleware] Cached: {target} ({len(body)} bytes)")
        except CacheError as e:
            logger.warning(f"[CacheMiddleware] Failed to cache response for {target}: {e}")
