from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from habit_tracker.core.config import settings
from habit_tracker.routes.tasks import router as tasks_router
from habit_tracker.routes.users import router as users_router
from habit_tracker.services.error_log import log_system_error
from habit_tracker.services.supabase_rest import (
    SupabaseRest,
    SupabaseRestError,
    build_http,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    http = build_http(settings.http_timeout_seconds)
    app.state.store = SupabaseRest(
        str(settings.supabase_url),
        settings.supabase_service_role_key,
        http=http,
    )
    logger.info("Storage client ready for %s", _origin(str(settings.supabase_url)))
    try:
        yield
    finally:
        app.state.store = None
        await http.aclose()


app = FastAPI(title="Habit Tracker API", version="0.1.0", lifespan=lifespan)


def _init_logging() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _init_sentry() -> None:
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[FastApiIntegration()],
        traces_sample_rate=max(0.0, min(settings.sentry_traces_sample_rate, 1.0)),
        send_default_pii=False,
        environment=settings.app_env,
    )


_init_logging()
_init_sentry()


def _origin(url: str) -> str:
    # FRONTEND_URL may include a trailing slash or a path; CORS compares
    # against scheme+host+port.
    p = urlparse(url)
    if p.scheme and p.netloc:
        return f"{p.scheme}://{p.netloc}"
    return url.rstrip("/")


_ALLOWED_ORIGINS = sorted(
    {
        _origin(str(settings.frontend_url)),
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    }
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID"],
)


def _store_of(request: Request) -> SupabaseRest | None:
    return getattr(request.app.state, "store", None)


def _correlation_id_of(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


@app.middleware("http")
async def log_server_error_responses(request: Request, call_next):
    response = await call_next(request)
    if response.status_code >= 500:
        await log_system_error(
            _store_of(request),
            route=str(request.url.path),
            message=f"Server response status {response.status_code}",
            meta={
                "status_code": response.status_code,
                "method": request.method,
                "path": str(request.url.path),
                "correlation_id": _correlation_id_of(request),
            },
        )
    return response


# Registered last so it wraps every other middleware.
@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    incoming = (request.headers.get("X-Correlation-ID") or "").strip()
    cid = incoming[:128] if incoming else uuid4().hex[:16]
    request.state.correlation_id = cid
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = cid
    return response


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.exception_handler(SupabaseRestError)
async def supabase_rest_error_handler(request: Request, exc: SupabaseRestError):
    detail: dict[str, str | None] = {
        "message": "Storage request failed",
        "hint": exc.hint,
        "code": exc.code,
    }
    # Propagate 4xx; normalize 5xx to 502.
    status_code = exc.status_code if 400 <= exc.status_code < 500 else 502

    await log_system_error(
        _store_of(request),
        route=str(request.url.path),
        message="Supabase request failed",
        err=exc,
        meta={
            "status_code": exc.status_code,
            "code": exc.code,
            "path": str(request.url.path),
            "correlation_id": _correlation_id_of(request),
        },
    )
    return JSONResponse(status_code=status_code, content={"detail": detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    await log_system_error(
        _store_of(request),
        route=str(request.url.path),
        message="Unhandled server error",
        err=exc,
        meta={
            "method": request.method,
            "correlation_id": _correlation_id_of(request),
        },
    )
    # Built by the outermost error middleware, outside correlation_id_middleware.
    cid = _correlation_id_of(request) or uuid4().hex[:16]
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers={"X-Correlation-ID": cid},
    )


app.include_router(users_router, prefix="/api")
app.include_router(tasks_router, prefix="/api")
