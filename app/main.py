"""
Wellspring — FastAPI Application Entry Point

- Async lifespan: warms the DB pool and builds the service container
  (services, profile cache, Gemini and YouTube collaborators) once
- Request-scoped structured logging (request id bound through
  structlog contextvars and echoed as ``X-Request-ID``)
- Wall-clock request timeout
- Health checks: liveness, and readiness with DB + profile-cache stats
- In-flight request tracking so shutdown drains before closing clients
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.deps import build_container
from app.config import Settings, get_settings
from app.database import get_engine, get_session_factory

REQUEST_ID_HEADER = "X-Request-ID"
DRAIN_TIMEOUT_SECONDS = 15


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

def configure_logging(settings: Settings) -> None:
    """JSON lines everywhere except local development, filtered at LOG_LEVEL."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if settings.ENVIRONMENT == "development":
        renderers = [structlog.dev.ConsoleRenderer()]
    else:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            *renderers,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


settings = get_settings()
configure_logging(settings)

logger: structlog.stdlib.BoundLogger = structlog.get_logger("wellspring")


# ---------------------------------------------------------------------------
# In-flight request tracking
# ---------------------------------------------------------------------------

class RequestTracker:
    """Counts in-flight requests; ``drain`` waits until the count reaches zero.

    Everything runs on the event loop thread, so the counter needs no lock.
    """

    def __init__(self) -> None:
        self.active = 0
        self._idle = asyncio.Event()
        self._idle.set()

    def enter(self) -> None:
        self.active += 1
        self._idle.clear()

    def leave(self) -> None:
        self.active = max(0, self.active - 1)
        if self.active == 0:
            self._idle.set()

    async def drain(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


tracker = RequestTracker()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build long-lived resources on startup; drain and release on shutdown."""
    settings = get_settings()
    logger.info(
        "startup_begin",
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
    )

    # A trivial query both verifies the DSN and opens the first pooled
    # connection.
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_pool_initialised")

    services = build_container(settings, get_session_factory())
    app.state.services = services
    logger.info(
        "services_initialised",
        profile_cache_size=services.cache.maxsize,
        session_history_limit=services.session_history_limit,
        video_query_budget=services.video_query_budget,
    )

    yield

    logger.info("shutdown_begin", in_flight=tracker.active)
    if not await tracker.drain(DRAIN_TIMEOUT_SECONDS):
        logger.warning("drain_timeout_exceeded", remaining_requests=tracker.active)

    await services.video_search.aclose()
    await engine.dispose()
    logger.info("shutdown_complete", profile_cache_hits=services.cache.hits)


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 when a request runs past ``timeout_seconds``."""

    def __init__(self, app, timeout_seconds: float) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("request_timeout", timeout=self.timeout_seconds)
            return JSONResponse(status_code=504, content={"detail": "Request timed out"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id for every log line and record one summary event.

    A client-supplied ``X-Request-ID`` is reused so mobile and server logs
    can be joined; otherwise a fresh one is generated.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        tracker.enter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_error",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        finally:
            tracker.leave()

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "request_handled",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Wellspring Personalization",
    description="Personalization-state engine for the Wellspring wellness companion",
    version="3.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# Last added runs first: CORS, then timeout, then request context.
app.add_middleware(RequestContextMiddleware)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_S)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.get("/health", tags=["health"])
async def health_liveness() -> dict:
    return {"status": "healthy"}


@app.get("/health/deep", tags=["health"])
async def health_deep(request: Request) -> dict:
    """Readiness: database round-trip plus profile-cache occupancy.

    A database failure reports ``degraded`` rather than failing the probe.
    """
    result: dict = {"status": "healthy", "database": "connected"}

    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_db_failure", error=str(exc))
        result["database"] = f"error: {exc}"
        result["status"] = "degraded"

    services = getattr(request.app.state, "services", None)
    if services is not None:
        cache = services.cache
        result["profile_cache"] = {
            "size": len(cache),
            "maxsize": cache.maxsize,
            "hits": cache.hits,
            "misses": cache.misses,
        }
    result["in_flight"] = tracker.active
    return result


from app.api.router import router as api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")
