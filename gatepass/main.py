"""
Visitor Gate Pass API
Application factory, error envelope and lifecycle hooks
"""

from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from gatepass.core.config import settings
from gatepass.core.database import engine, Base, test_database_connection
from gatepass.routers import admin, visitor
from gatepass.services.container import Services

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format=settings.log_format
)
logger = logging.getLogger(__name__)

# ============================================================================
# FastAPI Application
# ============================================================================

# Disable docs in production
docs_url = "/docs" if not settings.is_production else None
redoc_url = "/redoc" if not settings.is_production else None

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Visitor self-registration, host approval by email link and PDF gate passes",
    docs_url=docs_url,
    redoc_url=redoc_url,
)

# ============================================================================
# CORS Configuration
# ============================================================================

origins = settings.cors_origins
# Browsers reject credentials with a wildcard origin
allow_credentials = origins != ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=allow_credentials,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["Content-Disposition"],
)

# ============================================================================
# Error Envelope
# ============================================================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    details = []
    for err in errors:
        field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        details.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))

    missing = any(err.get("type") == "missing" for err in errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "Missing required fields" if missing else "Invalid input",
            "details": details,
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Server error"},
    )

# ============================================================================
# Root & Health Endpoints
# ============================================================================


@app.get("/", tags=["Root"])
def root():
    """API name, version and entry points"""
    return {
        "name": "Visitor Gate Pass API",
        "version": settings.app_version,
        "status": "running",
        "documentation": docs_url,
        "endpoints": {
            "health": "/health",
            "visitors": "/api/visitors",
            "admin": "/api/admin"
        }
    }


def _health_payload() -> dict:
    database_ok = test_database_connection()
    return {
        "status": "ok" if database_ok else "degraded",
        "database": "ok" if database_ok else "unreachable",
        "version": settings.app_version,
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness plus a database round trip"""
    return _health_payload()


@app.get("/api/health", tags=["Health"])
def api_health():
    """Same payload as /health, under the API prefix"""
    return _health_payload()

# ============================================================================
# Event Handlers
# ============================================================================


@app.on_event("startup")
async def startup_event():
    """Build collaborators and make sure the visitor table exists"""
    logger.info("=" * 60)
    logger.info("Starting Visitor Gate Pass API")
    logger.info("=" * 60)
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Frontend: {settings.frontend_base_url}")
    logger.info(f"Decision links: {settings.backend_base_url}")
    logger.info(f"Email enabled: {settings.email_enabled}")
    logger.info(f"Browser pass rendering: {settings.pass_browser_enabled}")
    logger.info("=" * 60)

    if getattr(app.state, "services", None) is None:
        app.state.services = Services.from_settings(settings)

    try:
        logger.info("Ensuring database tables exist...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        logger.warning("Application will continue, but database operations may fail")


@app.on_event("shutdown")
async def shutdown_event():
    """Log the shutdown banner"""
    logger.info("=" * 60)
    logger.info("Shutting down Visitor Gate Pass API")
    logger.info("=" * 60)

# ============================================================================
# Router Registration
# ============================================================================

app.include_router(visitor.router)  # Registration, decisions, status and admin listing
app.include_router(admin.router)  # Admin dashboard login

if __name__ == "__main__":
    uvicorn.run(
        "gatepass.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
