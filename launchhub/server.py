"""HTTP server for LaunchHub.

Exposes:
    - ``GET  /api/trpc/{path}?input=<json>``: RPC queries
    - ``POST /api/trpc/{path}``: RPC mutations (JSON body)
    - ``GET  /api/cron``: launch sweep, bearer-protected
    - ``GET  /metrics``: Prometheus exposition
    - ``GET  /health``: liveness and database check

RPC successes are wrapped as ``{"result": {"data": ...}}`` and failures as
``{"error": {"code", "message", "path"}}`` with the HTTP status taken from
the error. The caller's identity comes from headers set by the identity
provider's proxy (``X-User-Id``, ``X-User-Email``, ...).

Example:
    $ uvicorn --factory launchhub.server:create_app
"""

import json
import secrets
import time
import uuid
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError
from sqlalchemy import text
from starlette.concurrency import run_in_threadpool

from launchhub import __version__
from launchhub.config import settings
from launchhub.database import DatabaseManager
from launchhub.errors import BadRequestError, LaunchHubError
from launchhub.launch import sweep_launches
from launchhub.logging import clear_request_context, logger, set_request_context
from launchhub.metrics import (
    CONTENT_TYPE_LATEST,
    errors_total,
    generate_metrics_output,
    http_request_duration_seconds,
    http_requests_total,
)
from launchhub.models import IdentityClaims
from launchhub.routers import app_router
from launchhub.rpc import Context, ProcedureType, Router, call
from launchhub.telemetry import initialize_telemetry, shutdown_telemetry
from launchhub.types import CronFailure, CronSummary, HealthStatus, RpcErrorResponse
from launchhub.utils import format_iso, utc_now


# =============================================================================
# Request Helpers
# =============================================================================


def identity_from_headers(request: Request) -> tuple[str | None, IdentityClaims | None]:
    """Read the caller's id and claims from identity-provider headers.

    Returns:
        ``(user_id, claims)``; claims are None unless both id and e-mail are present
    """
    headers = request.headers
    user_id = headers.get("x-user-id") or None
    if user_id is None:
        return None, None

    try:
        claims = IdentityClaims(
            id=user_id,
            email=headers.get("x-user-email", ""),
            given_name=headers.get("x-user-given-name"),
            family_name=headers.get("x-user-family-name"),
            picture=headers.get("x-user-picture"),
        )
    except ValidationError:
        claims = None
    if claims is not None and not claims.email:
        claims = None
    return user_id, claims


def rpc_error(path: str, error: LaunchHubError) -> JSONResponse:
    body: RpcErrorResponse = {"error": {**error.to_dict(), "path": path}}
    return JSONResponse(body, status_code=error.http_status)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    db: DatabaseManager | None = None,
    router: Router | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        db: Database manager (a new one from settings when omitted)
        router: RPC router to serve (defaults to the full application router)
        clock: Source of "now" for procedures and the cron sweep

    Returns:
        Configured FastAPI app; ``app.state.db`` holds the database manager
    """
    db = db or DatabaseManager()
    db.initialize()
    router = router or app_router

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        initialize_telemetry()
        logger.info(f"🚀 LaunchHub {__version__} serving {len(router)} procedures ({settings.environment})")
        yield
        shutdown_telemetry()

    app = FastAPI(title="LaunchHub", version=__version__, lifespan=lifespan)
    app.state.db = db

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        set_request_context(request_id=request_id)
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers["X-Request-Id"] = request_id
            return response
        finally:
            labels = {"status": str(status), "path": _route_template(request), "method": request.method}
            http_requests_total.labels(**labels).inc()
            http_request_duration_seconds.labels(**labels).observe(time.perf_counter() - start)
            clear_request_context()

    def dispatch(path: str, method: ProcedureType, raw_input: Any, request: Request) -> JSONResponse:
        user_id, identity = identity_from_headers(request)
        set_request_context(user_id=user_id, operation=path)

        with db.session() as session:
            ctx = Context(session=session, user_id=user_id, identity=identity, clock=clock)
            try:
                data = call(router, path, ctx, raw_input, method)
            except LaunchHubError as e:
                session.rollback()
                return rpc_error(path, e)
            except Exception:
                session.rollback()
                logger.exception(f"Unhandled error in {method} {path}")
                return rpc_error(path, LaunchHubError())
            return JSONResponse({"result": {"data": jsonable_encoder(data)}})

    # -------------------------------------------------------------------------
    # RPC
    # -------------------------------------------------------------------------

    @app.get("/api/trpc/{path:path}")
    async def rpc_query(path: str, request: Request) -> Response:
        raw = request.query_params.get("input")
        try:
            raw_input = json.loads(raw) if raw else None
        except json.JSONDecodeError:
            return rpc_error(path, BadRequestError("Input is not valid JSON"))
        return await run_in_threadpool(dispatch, path, ProcedureType.QUERY, raw_input, request)

    @app.post("/api/trpc/{path:path}")
    async def rpc_mutation(path: str, request: Request) -> Response:
        body = await request.body()
        try:
            raw_input = json.loads(body) if body else None
        except json.JSONDecodeError:
            return rpc_error(path, BadRequestError("Body is not valid JSON"))
        return await run_in_threadpool(dispatch, path, ProcedureType.MUTATION, raw_input, request)

    # -------------------------------------------------------------------------
    # Cron
    # -------------------------------------------------------------------------

    def run_sweep() -> JSONResponse:
        now = clock()
        set_request_context(operation="cron.sweep")
        try:
            with db.session() as session:
                updated = sweep_launches(session, now)
        except Exception as e:
            logger.exception(f"[CRON] Failed to update launch status: {e}")
            errors_total.labels(error_type=type(e).__name__, component="cron").inc()
            failure: CronFailure = {"success": False, "error": "Failed to update launch status"}
            return JSONResponse(failure, status_code=500)

        summary: CronSummary = {
            "success": True,
            "message": f"Updated {updated} products",
            "timestamp": format_iso(now),
            "updatedCount": updated,
        }
        return JSONResponse(summary)

    @app.get("/api/cron")
    async def cron(request: Request) -> Response:
        if settings.cron_requires_auth:
            expected = f"Bearer {settings.cron_secret}" if settings.cron_secret else None
            provided = request.headers.get("authorization", "")
            if expected is None or not secrets.compare_digest(provided.encode(), expected.encode()):
                logger.warning("[CRON] Rejected unauthorized sweep request")
                return PlainTextResponse("Unauthorized", status_code=401)
        return await run_in_threadpool(run_sweep)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(generate_metrics_output(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    def health() -> JSONResponse:
        status: HealthStatus = {
            "status": "ok",
            "version": __version__,
            "environment": settings.environment.value,
        }
        try:
            with db.session() as session:
                session.execute(text("SELECT 1"))
            status["database"] = "ok"
        except Exception as e:
            logger.error(f"Health check database probe failed: {e}")
            status["status"] = "degraded"
            status["database"] = "unavailable"
            return JSONResponse(status, status_code=503)
        return JSONResponse(status)

    return app


__all__ = ["create_app", "identity_from_headers", "rpc_error"]
