"""
Alina Visitor Parking — FastAPI application

Wires middleware, exception handlers, and routers. All routes live in
routers/; all business logic in services/.

Middleware (outermost first):
  SessionMiddleware  — signed cookie session (user_id, role), 30-day max age
  request_id         — X-Request-ID + security headers on every response
  route_guard        — public/protected split for pages and API
  SlowAPIMiddleware  — default per-IP rate limit
"""

import os
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .authorization import can_access_route
from .config import APP_VERSION, settings
from .http_client import close_clients
from .logging_config import setup_logging
from .rate_limit import limiter
from .schemas.errors import ErrorResponse

setup_logging()


# ── App Lifecycle ────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    from .scheduler import configure_scheduler, scheduler
    from .startup import run_startup_migrations

    run_startup_migrations()
    run_jobs = settings.scheduler_enabled and not os.environ.get("TESTING")
    if run_jobs:
        configure_scheduler()
        scheduler.start()
        logger.info("Scheduler started")
    yield
    if run_jobs:
        scheduler.shutdown(wait=False)
    await close_clients()


app = FastAPI(title=settings.app_name, version=APP_VERSION, lifespan=lifespan)
app.state.limiter = limiter


# ── Exception handlers ───────────────────────────────────────────────


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = ErrorResponse(
        error=str(exc.detail), status_code=exc.status_code, request_id=_request_id(request)
    )
    return JSONResponse(
        body.model_dump(exclude_none=True),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        error="Invalid request data",
        status_code=400,
        request_id=_request_id(request),
        detail=jsonable_encoder(exc.errors()),
    )
    return JSONResponse(body.model_dump(), status_code=400)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    body = ErrorResponse(
        error="Internal server error", status_code=500, request_id=_request_id(request)
    )
    return JSONResponse(body.model_dump(exclude_none=True), status_code=500)


app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ── Middleware ───────────────────────────────────────────────────────

PUBLIC_API_PREFIXES = ("/api/health", "/api/passes", "/api/auth", "/api/units", "/health")


def _matches(path: str, prefixes: tuple[str, ...]) -> bool:
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in prefixes)


app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def route_guard(request: Request, call_next):
    """Public/protected split. Fine-grained permission checks stay in handlers."""
    path = request.url.path
    user_id = request.session.get("user_id")
    role = request.session.get("role")

    if path == "/login" and user_id:
        return RedirectResponse("/dashboard", status_code=302)

    if path == "/dashboard" or path.startswith("/dashboard/"):
        if not user_id:
            return RedirectResponse(f"/login?callbackUrl={path}", status_code=302)
        if not can_access_route(role, path):
            return RedirectResponse("/dashboard?error=access_denied", status_code=302)
        return await call_next(request)

    if path.startswith("/api/") and not _matches(path, PUBLIC_API_PREFIXES) and not user_id:
        body = ErrorResponse(error="Unauthorized", status_code=401, request_id=_request_id(request))
        return JSONResponse(body.model_dump(exclude_none=True), status_code=401)

    return await call_next(request)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    started = time.monotonic()

    with logger.contextualize(request_id=request_id):
        response = await call_next(request)

    elapsed_ms = int((time.monotonic() - started) * 1000)
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Response-Time"] = f"{elapsed_ms}ms"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["X-API-Version"] = "v1"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    if request.url.path != "/health":
        logger.bind(request_id=request_id).info(
            "{} {} -> {} ({}ms)",
            request.method, request.url.path, response.status_code, elapsed_ms,
        )
    return response


# Added last so it wraps everything above and route_guard can read the session
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    max_age=settings.session_max_age_days * 24 * 60 * 60,
    same_site="lax",
    https_only=settings.is_production,
)


# ── Routers ──────────────────────────────────────────────────────────

from .routers.auth import router as auth_router  # noqa: E402
from .routers.dashboard import router as dashboard_router  # noqa: E402
from .routers.export import router as export_router  # noqa: E402
from .routers.health import router as health_router  # noqa: E402
from .routers.ocr import router as ocr_router  # noqa: E402
from .routers.passes import router as passes_router  # noqa: E402
from .routers.patrol import router as patrol_router  # noqa: E402
from .routers.qr import router as qr_router  # noqa: E402
from .routers.settings import router as settings_router  # noqa: E402
from .routers.units import router as units_router  # noqa: E402
from .routers.users import router as users_router  # noqa: E402
from .routers.vehicles import router as vehicles_router  # noqa: E402
from .routers.violations import router as violations_router  # noqa: E402

for _router in (
    auth_router,
    passes_router,
    violations_router,
    vehicles_router,
    units_router,
    users_router,
    settings_router,
    qr_router,
    ocr_router,
    patrol_router,
    export_router,
    dashboard_router,
    health_router,
):
    app.include_router(_router)


@app.get("/")
def index(request: Request):
    return RedirectResponse("/dashboard" if request.session.get("user_id") else "/login", status_code=302)


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}
