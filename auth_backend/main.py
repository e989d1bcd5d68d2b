"""
Main FastAPI application for Auth Backend.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth_backend.api import api_router
from auth_backend.api.utils import validation_detail
from auth_backend.auth.errors import AuthBackendError, AuthenticationError, ValidationError
from auth_backend.config import get_settings
from auth_backend.database import close_db, init_db

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Initializes and cleans up resources.
    """
    settings = get_settings()

    # Initialize database
    logger.info("Initializing database...")
    await init_db()

    if not settings.smtp_configured:
        logger.warning("SMTP is not configured; OTP codes will be written to the log")
    if settings.revoke_tokens_on_logout:
        logger.info("Token revocation on logout is enabled")

    logger.info(f"Auth Backend started (token lifetime: {settings.jwt_expires_in})")

    yield

    # Shutdown
    logger.info("Shutting down...")

    # Close database connections
    await close_db()

    logger.info("Auth Backend stopped.")


# Create FastAPI application
app = FastAPI(
    title="Auth Backend",
    description="Account, session and statistics backend for a multiplayer game client",
    version=VERSION,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Game clients connect from arbitrary origins
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["Authorization"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


# Application error handlers
@app.exception_handler(AuthBackendError)
async def auth_backend_error_handler(request: Request, exc: AuthBackendError):
    """Render a client-safe error envelope."""
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle malformed or missing request fields."""
    error = ValidationError(
        "Please check your input data",
        details=[validation_detail(err) for err in exc.errors()],
    )
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Handle routing errors and other framework HTTP errors."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        content = {
            "error": "Route not found",
            "message": f"Cannot {request.method} {request.url.path}",
        }
    else:
        content = {"error": str(exc.detail), "message": str(exc.detail)}
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


# Database error exception handlers
@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    """Handle database connection/operational errors."""
    logger.error(f"Database operational error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "Service unavailable",
            "message": "Database connection error. Please try again later.",
        },
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """Handle database integrity constraint violations."""
    logger.error(f"Database integrity error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Duplicate field",
            "message": "The operation conflicts with existing data.",
        },
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    """Handle general SQLAlchemy errors."""
    logger.error(f"Database error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": "Database error. Please try again later.",
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Last resort: log the details, return a generic message."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": "Something went wrong. Please try again later.",
        },
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "OK",
        "message": "Auth Backend is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/")
async def root():
    """Describe the service and its route groups."""
    return {
        "message": "Auth Backend Server",
        "version": VERSION,
        "endpoints": {
            "auth": "/api/auth",
            "otp": "/api/otp",
            "user": "/api/user",
            "health": "/health",
        },
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "auth_backend.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug_mode,
    )
