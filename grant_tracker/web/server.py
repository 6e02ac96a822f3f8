"""
HTTP API for grant search and tracking.

Routes:
- GET  /search              basic search (includeRSS=true: enhanced)
- GET  /search/enhanced     search including RSS and cached feed items
- POST/GET/PUT/DELETE /save-grants   tracked grant list
- GET  /load-grants         tracked grant list (read only)
- POST /rss/monitor         refresh feeds into the store
- GET  /rss/status          last feed check results
- GET  /health              liveness/readiness
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import structlog
from aiohttp import web

from grant_tracker import __version__
from grant_tracker.context import AppContext
from grant_tracker.core.exceptions import GrantTrackerError, ValidationError
from grant_tracker.core.models import SearchFailed, SearchOutcome, SearchQuery
from grant_tracker.identity import RequestInfo
from grant_tracker.monitor import FeedMonitor
from grant_tracker.orchestrator import BASIC, ENHANCED, SearchOrchestrator
from grant_tracker.tracking import TrackedGrantService

logger = structlog.get_logger(__name__)

CONTEXT_KEY = web.AppKey("context", AppContext)

ALLOWED_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ALLOWED_METHODS,
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "86400",
}

INTERNAL_ERROR_MESSAGE = "Service temporarily unavailable. Please try again later."


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Answer preflight requests and add CORS headers to every response."""
    if request.method == "OPTIONS":
        response = web.Response(status=200)
    else:
        response = await handler(request)
    response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Map exceptions to JSON error bodies."""
    try:
        return await handler(request)
    except GrantTrackerError as e:
        logger.info("request_rejected", path=request.path, status=e.status_code, message=e.message)
        return web.json_response(e.to_dict(), status=e.status_code, headers=e.headers)
    except web.HTTPMethodNotAllowed as e:
        return web.json_response(
            {
                "error": True,
                "message": f"Method {request.method} not allowed",
                "allowedMethods": sorted(e.allowed_methods),
            },
            status=405,
        )
    except web.HTTPNotFound:
        return web.json_response({"error": True, "message": "Not found"}, status=404)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("request_failed", path=request.path, method=request.method)
        return web.json_response({"error": True, "message": INTERNAL_ERROR_MESSAGE}, status=500)


async def _json_body(request: web.Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _search_response(outcome: SearchOutcome) -> web.Response:
    if isinstance(outcome, SearchFailed):
        raise outcome.to_error(headers={"X-Cache": "MISS"})

    payload = dict(outcome.payload)
    if outcome.degraded:
        payload["degraded"] = True
    return web.json_response(
        payload,
        headers={"X-Cache": "HIT" if outcome.cache_hit else "MISS"},
    )


class GrantTrackerAPI:
    """Request handlers bound to one application context."""

    def __init__(self, context: AppContext):
        self.context = context
        self.orchestrator = SearchOrchestrator(context)
        self.tracking = TrackedGrantService(context)
        self.monitor = FeedMonitor(context)

    def _user_id(self, request: web.Request, explicit: Optional[str] = None) -> str:
        if explicit:
            return str(explicit)
        return self.context.identity.resolve(
            RequestInfo(headers=request.headers, remote=request.remote)
        )

    async def search(self, request: web.Request) -> web.Response:
        query = SearchQuery.from_params(request.query)
        # includeRSS=true selects the enhanced pipeline
        outcome = await self.orchestrator.search(query, ENHANCED if query.include_rss else BASIC)
        return _search_response(outcome)

    async def search_enhanced(self, request: web.Request) -> web.Response:
        query = SearchQuery.from_params(request.query, include_rss_default=True)
        outcome = await self.orchestrator.search(query, ENHANCED)
        return _search_response(outcome)

    async def save_grants(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        user_id = self._user_id(request, body.get("userId"))
        return web.json_response(await self.tracking.save(user_id, body.get("grants")))

    async def load_grants(self, request: web.Request) -> web.Response:
        user_id = self._user_id(request, request.query.get("userId"))
        return web.json_response(await self.tracking.load(user_id))

    async def update_grant(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        user_id = self._user_id(request, body.get("userId"))
        result = await self.tracking.update(user_id, body.get("grantId"), body.get("updates"))
        return web.json_response(result)

    async def delete_grants(self, request: web.Request) -> web.Response:
        user_id = request.query.get("userId")
        if not user_id:
            raise ValidationError("userId is required")
        result = await self.tracking.delete(user_id, request.query.get("grantId"))
        return web.json_response(result)

    async def rss_monitor(self, request: web.Request) -> web.Response:
        return web.json_response(await self.monitor.run())

    async def rss_status(self, request: web.Request) -> web.Response:
        return web.json_response(await self.monitor.status())

    async def health(self, request: web.Request) -> web.Response:
        """Health check + Apify readiness probe."""
        if "x-apify-container-server-readiness-probe" in request.headers:
            logger.debug("readiness_probe")
        return web.json_response({
            "status": "ok",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "store": type(self.context.store).__name__,
            "adapters": [a.name for a in self.context.config.adapters if a.enabled],
        })


def create_app(context: AppContext) -> web.Application:
    """
    Build the aiohttp application.

    The context's HTTP client is opened on startup and closed on cleanup.

    Args:
        context: Shared application context

    Returns:
        Configured web.Application
    """
    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app[CONTEXT_KEY] = context
    api = GrantTrackerAPI(context)

    app.router.add_get("/search", api.search)
    app.router.add_get("/search/enhanced", api.search_enhanced)
    app.router.add_post("/save-grants", api.save_grants)
    app.router.add_get("/save-grants", api.load_grants)
    app.router.add_put("/save-grants", api.update_grant)
    app.router.add_delete("/save-grants", api.delete_grants)
    app.router.add_get("/load-grants", api.load_grants)
    app.router.add_post("/rss/monitor", api.rss_monitor)
    app.router.add_get("/rss/status", api.rss_status)
    app.router.add_get("/health", api.health)

    async def on_startup(app: web.Application) -> None:
        await app[CONTEXT_KEY].start()

    async def on_cleanup(app: web.Application) -> None:
        await app[CONTEXT_KEY].close()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


async def run_server(context: AppContext, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve the API until cancelled."""
    host = host or context.config.server.host
    port = port or context.config.server.port

    app = create_app(context)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info("server_started", url=f"http://{host}:{port}")

    try:
        # Keep running indefinitely
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
