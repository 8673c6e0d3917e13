"""
FastAPI application entry point for the membership access API.

Member routes require a verified Supabase JWT; the license trigger routes
use a shared secret instead.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from membership_access.api.routes import health
from membership_access.api.routes import media
from membership_access.api.routes import access
from membership_access.api.routes import license_check
from membership_access.entitlements.loader import get_license_tier_loader

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting membership access API")

    required_vars = ["SUPABASE_JWT_SECRET", "BUNNY_EMBED_TOKEN_KEY", "LICENSE_SUBJECT_EMAIL"]
    missing_vars = [var for var in required_vars if not os.getenv(var)]
    if missing_vars:
        logger.warning(
            "Some features are not configured and will return 503",
            extra={"missing": missing_vars},
        )

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("DATABASE_URL is not set. Database-backed endpoints will return 503.")
    else:
        # Mask credentials for safe logging
        masked = database_url.split("@")[-1] if "@" in database_url else "(no @ found)"
        logger.info("DATABASE_URL configured", extra={"host_db": masked})

    loader = get_license_tier_loader()
    logger.info(
        "License tier aliases loaded",
        extra={"source": str(loader.source), "alias_count": len(loader.aliases)},
    )

    yield

    logger.info("Shutting down membership access API")


app = FastAPI(
    title="Membership Access API",
    description="License entitlements and signed video access for training content",
    version="0.1.0",
    lifespan=lifespan
)

cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health route (bypasses authentication)
app.include_router(health.router)

# Signed playback URLs (requires caller JWT)
app.include_router(media.router)

# Grant reconciliation (requires caller JWT; admin for other members)
app.include_router(access.router)

# License lapse policy triggers (shared secret)
app.include_router(license_check.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with proper logging."""
    logger.error(
        "Unhandled exception",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
