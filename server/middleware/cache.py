"""Response caching middleware for JSON GET routes.

On a hit the cached body is served and the route never runs. On a miss the
route runs with its ``send`` wrapped in a ResponseCapture, which stores the
JSON body it is about to send and then forwards the response unchanged.
The cache is best-effort: any cache failure degrades to the uncached path.
"""

import json
from typing import Any, Awaitable, Callable, Iterable, Optional

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.cache import CacheService, CacheStatus
from core.logging import get_logger

logger = get_logger(__name__)

# Returned by extract_cacheable() when a response body must not be stored
SKIP = object()


def route_path(scope: Scope) -> str:
    """Request path relative to the app the middleware is installed on.

    Under a ``Mount`` newer Starlette keeps the mount prefix in ``path`` and
    also records it as ``root_path``; older releases strip it. Both give the
    same result here.
    """
    path = scope["path"]
    root_path = scope.get("root_path", "")
    if root_path and path.startswith(root_path):
        return path[len(root_path):] or "/"
    return path


def cache_key_for(scope: Scope) -> str:
    """Full request path with its raw query string, e.g. ``/api/jobs?location=NY``."""
    path = scope.get("root_path", "") + route_path(scope)
    query_string = scope.get("query_string", b"")
    if query_string:
        return f"{path}?{query_string.decode('latin-1')}"
    return path


class ResponseCapture:
    """Wraps an ASGI ``send`` so a JSON response can be stored before it goes out.

    Only 2xx ``application/json`` responses are buffered; anything else is
    passed straight through. Once the last body chunk arrives ``on_body`` is
    awaited with the full body, then the response is forwarded as it was
    produced (plus an ``X-Cache: MISS`` header) whatever ``on_body`` did.
    """

    def __init__(self, send: Send, on_body: Callable[[bytes], Awaitable[None]]):
        self._send = send
        self._on_body = on_body
        self._start: Optional[Message] = None
        self._chunks: list = []
        self._passthrough = False

    async def __call__(self, message: Message) -> None:
        if self._passthrough:
            await self._send(message)
            return

        if message["type"] == "http.response.start":
            headers = Headers(raw=message.get("headers", []))
            content_type = headers.get("content-type", "")
            if not (200 <= message["status"] < 300 and content_type.startswith("application/json")):
                self._passthrough = True
                await self._send(message)
                return
            self._start = message
            return

        if message["type"] == "http.response.body" and self._start is not None:
            self._chunks.append(message.get("body", b""))
            if message.get("more_body", False):
                return

            body = b"".join(self._chunks)
            try:
                await self._on_body(body)
            except Exception as e:
                logger.error("Error caching response", error=str(e))

            start = self._start
            MutableHeaders(scope=start).append("X-Cache", "MISS")
            await self._send(start)
            await self._send({"type": "http.response.body", "body": body, "more_body": False})
            return

        await self._send(message)


class CacheMiddleware:
    """Serve matching GET routes from the cache, caching the bare JSON body.

    Args:
        app: Downstream ASGI app.
        cache: Cache service; resolved from the DI container when omitted.
        ttl: Lifetime for stored responses; the service default when omitted.
        paths: Exact request paths to cache.
        prefixes: Path prefixes to cache.
    """

    def __init__(
        self,
        app: ASGIApp,
        cache: Optional[CacheService] = None,
        ttl: Optional[int] = None,
        paths: Iterable[str] = (),
        prefixes: Iterable[str] = (),
    ) -> None:
        self.app = app
        self.cache = cache
        self.ttl = ttl
        self.paths = frozenset(paths)
        self.prefixes = tuple(prefixes)

    def _matches(self, scope: Scope) -> bool:
        if scope.get("type") != "http" or scope.get("method") != "GET":
            return False
        path = route_path(scope)
        return path in self.paths or path.startswith(self.prefixes)

    def _get_cache(self) -> CacheService:
        if self.cache is None:
            from core.container import container
            return container.cache()
        return self.cache

    def wrap_hit(self, value: Any) -> Any:
        """Response body for a cache hit."""
        return value

    def extract_cacheable(self, payload: Any) -> Any:
        """Value to store for an outgoing body, or SKIP."""
        return payload

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not self._matches(scope):
            await self.app(scope, receive, send)
            return

        cache = self._get_cache()
        ttl = self.ttl if self.ttl is not None else cache.default_ttl
        key = cache_key_for(scope)

        probe = await cache.lookup(key, None, ttl)
        if probe.status is CacheStatus.FAILED:
            logger.error("Cache probe failed, serving uncached", key=key, error=str(probe.error))
            await self.app(scope, receive, send)
            return

        if probe.hit and probe.value is not None:
            logger.info("Cache hit", key=key)
            response = JSONResponse(self.wrap_hit(probe.value), headers={"X-Cache": "HIT"})
            await response(scope, receive, send)
            return

        logger.info("Cache miss", key=key)

        async def store_body(body: bytes) -> None:
            try:
                payload = json.loads(body)
            except ValueError as e:
                logger.warning("Response body is not valid JSON, not caching", key=key, error=str(e))
                return

            value = self.extract_cacheable(payload)
            if value is SKIP:
                return

            logger.info("Caching response", key=key, ttl=ttl)
            result = await cache.lookup(key, lambda: value, ttl)
            if result.status is CacheStatus.FAILED:
                logger.error("Error caching response", key=key, error=str(result.error))

        await self.app(scope, receive, ResponseCapture(send, store_body))


class EnvelopeCacheMiddleware(CacheMiddleware):
    """CacheMiddleware for routes answering ``{"success": ..., "data": ...}``.

    Only ``data`` of successful responses is stored; hits are re-wrapped as
    ``{"success": true, "data": <cached>}``.
    """

    def wrap_hit(self, value: Any) -> Any:
        return {"success": True, "data": value}

    def extract_cacheable(self, payload: Any) -> Any:
        if isinstance(payload, dict) and payload.get("success"):
            return payload.get("data")
        return SKIP
