"""
Main FastAPI Application Entry Point
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import asyncio
import logging

from signin.config import settings
from signin.database import SessionLocal, health_check, init_db
from signin.errors import SigninError
from signin.routers import auth, checkins, groups, keys, locations, portal, settings as settings_router, sync, users
from signin.middleware import RequestLoggingMiddleware, RequestTimeoutMiddleware, SecurityHeadersMiddleware
from signin.services.directory_sync import DirectorySyncWorker
from signin.services.graph_client import GraphDirectoryClient

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def build_sync_worker():
    """Directory sync worker, or None when sync is off or Graph is not configured."""
    if not settings.SYNC_ENABLED:
        logger.info("Directory sync disabled by configuration")
        return None
    if not settings.graph_configured:
        logger.info("Directory sync disabled: Graph credentials not configured")
        return None
    return DirectorySyncWorker(settings, GraphDirectoryClient(settings), SessionLocal)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}")

    # Create all tables (this only creates tables that don't exist)
    init_db()

    worker = build_sync_worker()
    app.state.sync_worker = worker
    sync_task = None
    if worker is not None:
        sync_task = asyncio.create_task(worker.start())

    yield

    if worker is not None:
        worker.stop()
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            pass
        worker.provider.close()
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    description="Kiosk check-in/check-out with an admin console API",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)


@app.exception_handler(SigninError)
async def signin_error_handler(request: Request, exc: SigninError):
    """Translate service errors into the JSON error body."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} error on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are 400s with messages keyed by field name."""
    field_errors = {}
    message = "invalid request"
    for error in exc.errors():
        if error.get("type") == "json_invalid":
            message = "invalid body"
            continue
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(location) or "body"
        field_errors.setdefault(field, error.get("msg", "invalid value"))

    body = {"error": message, "message": message, "code": "invalid_input"}
    if field_errors:
        body["fieldErrors"] = field_errors
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message, "message": message, "code": "http_error"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and return a generic JSON response with logging."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)

    message = "internal error"
    if settings.DEBUG:
        message = str(exc)
    return JSONResponse(
        status_code=500,
        content={"error": message, "message": message, "code": "internal"}
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)

app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(portal.router, prefix="/api/portal", tags=["Portal"])
app.include_router(locations.router, prefix="/api/admin/locations", tags=["Locations"])
app.include_router(keys.router, prefix="/api/admin/keys", tags=["Keys"])
app.include_router(users.router, prefix="/api/admin/users", tags=["Users"])
app.include_router(groups.router, prefix="/api/admin/groups", tags=["Groups"])
app.include_router(checkins.router, prefix="/api/admin/checkins", tags=["Check-ins"])
app.include_router(settings_router.router, prefix="/api/admin/settings", tags=["Settings"])
app.include_router(sync.router, prefix="/api/admin/sync", tags=["Directory Sync"])


@app.get("/health")
def health():
    """Health check for load balancers."""
    database_ok = health_check()
    body = {
        "status": "healthy" if database_ok else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": database_ok,
    }
    return JSONResponse(status_code=200 if database_ok else 503, content=body)


@app.get("/api/v1/status")
def status(request: Request):
    """Service name, version and whether directory sync is active."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "syncEnabled": getattr(request.app.state, "sync_worker", None) is not None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("signin.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
