"""
Main FastAPI Application

Entry point for the sigstudio API: multi-tenant email signature
management. Configures middleware, routes, error handlers and
startup/shutdown.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
from contextlib import asynccontextmanager
from pathlib import Path

from sigstudio import __version__
from sigstudio.config import DEFAULT_SECRET_KEY, get_settings
from sigstudio.database import engine, init_db
from sigstudio.middleware.tenant import TenantMiddleware
from sigstudio.middleware.rate_limit import RateLimitMiddleware
from sigstudio.services.uploads import UploadFiles
from sigstudio.utils.logging import setup_logging, get_logger
from sigstudio.core.exceptions import AppError, TenantIsolationError, error_body

from sigstudio.api.endpoints import (
    assets,
    assignments,
    auth,
    dashboard,
    team,
    templates,
    tenants,
)

settings = get_settings()

setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.is_production
)
logger = get_logger(__name__)

# StaticFiles checks the directory when mounted
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown."""
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    if settings.is_production and settings.SECRET_KEY == DEFAULT_SECRET_KEY:
        raise RuntimeError("SECRET_KEY must be set in production")

    # Tables are created here only in development; use migrations elsewhere
    if settings.ENVIRONMENT == "development":
        logger.warning("Initializing database tables (dev mode)")
        init_db()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="sigstudio",
    description="Multi-tenant email signature management API",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

# Starlette runs the last added middleware first. Order on the way in:
# CORS -> timing -> tenant context -> rate limiting -> routes.

app.add_middleware(RateLimitMiddleware)

app.add_middleware(TenantMiddleware)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header to track request duration."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Credentials (the refresh cookie) require an explicit origin list
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(TenantIsolationError)
async def tenant_isolation_error_handler(request: Request, exc: TenantIsolationError):
    """
    Cross-tenant access attempts. The guard has already logged the
    security event; this adds the request line.
    """
    logger.error(
        f"TENANT ISOLATION VIOLATION: {exc.detail}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None),
            "user_id": getattr(request.state, "user_id", None),
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc),
        headers=exc.headers
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Every domain error renders as {"detail", "type", "code"}."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.detail}", extra={"path": request.url.path})
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc),
        headers=exc.headers
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Schema validation failures: 400 with one message per field."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(location) or "body", "message": message})

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Validation failed",
            "type": "validation_error",
            "code": "VALIDATION_ERROR",
            "errors": errors,
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Framework errors (unknown route, wrong method) in the same shape."""
    codes = {
        status.HTTP_404_NOT_FOUND: ("not_found", "NOT_FOUND"),
        status.HTTP_405_METHOD_NOT_ALLOWED: ("method_not_allowed", "METHOD_NOT_ALLOWED"),
    }
    error_type, code = codes.get(exc.status_code, ("error", "ERROR"))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": error_type, "code": code},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler.

    SECURITY: full details go to the log, the client gets a generic error
    unless DEBUG is on.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None)
        }
    )

    detail = str(exc) if settings.DEBUG else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"detail": detail, "type": "internal_error", "code": "INTERNAL_ERROR"}
    )


# ============================================================================
# ROUTES
# ============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": __version__
    }


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "sigstudio API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(auth.router, prefix="/api")
app.include_router(tenants.router, prefix="/api")
app.include_router(team.router, prefix="/api")
app.include_router(templates.router, prefix="/api")
app.include_router(assignments.router, prefix="/api")
app.include_router(assets.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")

# Uploaded images, public by URL
app.mount("/uploads", UploadFiles(directory=settings.UPLOAD_DIR), name="uploads")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    uvicorn.run(
        "sigstudio.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
