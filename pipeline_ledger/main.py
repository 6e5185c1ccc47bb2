"""Pipeline Ledger: FastAPI application entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# configure_structlog MUST run before the other package imports bind loggers
from pipeline_ledger.core.logging import configure_structlog
from pipeline_ledger.core.config import get_settings as _get_settings_early

_boot_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _boot_settings.debug else "INFO",
    json_logs=not _boot_settings.debug,
)

import structlog

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import make_url
from starlette.exceptions import HTTPException

from pipeline_ledger.api.routes import api_router
from pipeline_ledger.core.config import get_settings
from pipeline_ledger.core.exceptions import LedgerError
from pipeline_ledger.db import close_db, init_db
from pipeline_ledger.middleware.correlation import get_correlation_id, setup_correlation_middleware

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema on startup, dispose of the engine on shutdown.

    SIGTERM flips ``app.state.shutting_down`` so /api/health answers 503
    while in-flight transitions finish.
    """
    app.state.shutting_down = False

    def drain_on_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_503_until_drained")

    signal.signal(signal.SIGTERM, drain_on_sigterm)

    settings = get_settings()
    logger.info(
        "ledger_starting",
        app_name=settings.app_name,
        database=make_url(settings.database_url).get_backend_name(),
        strict_stages=settings.enforce_known_stages,
    )
    await init_db()

    yield

    await close_db()
    logger.info("ledger_stopped")


def _error_response(
    request: Request,
    event: str,
    status_code: int,
    detail,
    body_extra: dict | None = None,
    **log_fields,
) -> JSONResponse:
    """Log ``event`` with request context and a fresh debug_id, return the JSON body.

    4xx are logged as warnings, 5xx as errors.
    """
    debug_id = str(uuid.uuid4())
    log = logger.error if status_code >= 500 else logger.warning
    log(
        event,
        status_code=status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        method=request.method,
        path=request.url.path,
        user_id=getattr(request.state, "user_id", None),
        **log_fields,
    )
    content = {"detail": detail, "debug_id": debug_id}
    content.update(body_extra or {})
    return JSONResponse(status_code=status_code, content=content)


async def ledger_exception_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Domain errors keep their message; ``retryable`` marks conflicts and storage failures."""
    return _error_response(
        request,
        "ledger_error",
        exc.status_code,
        exc.message,
        body_extra={"retryable": exc.retryable},
        error_type=type(exc).__name__,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, "http_exception", exc.status_code, exc.detail)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and query params answer 400 like any other ValidationError."""
    detail = "; ".join(
        f"{error['loc'][-1]}: {error['msg']}" if error.get("loc") else error["msg"]
        for error in exc.errors()
    )
    return _error_response(
        request,
        "ledger_error",
        400,
        detail,
        body_extra={"retryable": False},
        error_type="ValidationError",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unhandled errors: full traceback in the log, generic 500 to the client."""
    return _error_response(
        request,
        "unhandled_exception",
        500,
        "Internal server error",
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(LedgerError)(ledger_exception_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Client pipeline stage ledger and history feed",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    # Added last so it wraps CORS and sees every request first
    setup_correlation_middleware(app)

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("pipeline_ledger.main:app", host="0.0.0.0", port=8000)
