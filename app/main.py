"""
Waste Watch - FastAPI Application Entry Point

Citizens report waste incidents, field workers claim and resolve them,
administrators monitor and moderate.

DESIGN PRINCIPLES:
- Exactly one worker can hold a report; claiming is a single atomic store write
- Reports only move along the lifecycle table (admin override excepted)
- Rewards are issued at most once per report event
- Every failure reaches the caller as {"success": false, "message": ...}
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.firebase import initialize_firebase
from app.core.exceptions import ConflictError, WasteServiceError
from app.core.logging_config import setup_logging
from app.core.settings import settings
from app.routes import facilities, health, images, reports, workers

setup_logging()
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Waste report lifecycle and work-assignment service",
    debug=settings.DEBUG,
)


@app.exception_handler(WasteServiceError)
async def waste_service_exception_handler(request: Request, exc: WasteServiceError):
    """Render domain errors with their mapped status code."""
    content = {"success": False, "message": exc.detail}
    if isinstance(exc, ConflictError) and exc.holder:
        content["holder"] = exc.holder
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=content)


def _error_list(errors):
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors]


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400, reported with the first failing field."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    logger.info(f"Validation error on {request.method} {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": message, "errors": _error_list(errors)},
    )


# Global exception handler to catch everything else
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures with traceback; never leak internals to the caller."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Currently: Firebase Admin (skipped with the in-memory stores)
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if settings.USE_MOCK_DB:
        logger.info("USE_MOCK_DB is set; using in-memory stores")
        return

    try:
        initialize_firebase()
    except (RuntimeError, ValueError) as e:
        logger.warning(f"Firebase initialization failed: {e}")
        logger.warning("The app will start but datastore operations will fail.")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(reports.router)
app.include_router(images.router)
app.include_router(facilities.router)
app.include_router(workers.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
    }
