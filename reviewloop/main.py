"""FastAPI application entry point"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from reviewloop.core.config import settings
from reviewloop.core.logging import api_access_logger, setup_logging
from reviewloop.core.otel import (
    initialize_otel, instrument_fastapi, instrument_httpx, instrument_sqlalchemy, setup_otel_logging
)
from reviewloop.db.redis import get_redis_client
from reviewloop.db.session import engine, init_db
from reviewloop.services.email_service import validate_email_config

# Import routers
from reviewloop.api import email, merchants, products, reviews, submissions, webhooks

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if initialize_otel():
        if setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry metrics/traces initialized but logging setup failed")
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Testing Redis connection...")
    try:
        get_redis_client().ping()
        logger.info("Redis connection successful")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    instrument_sqlalchemy(engine)

    email_ok, email_error = validate_email_config()
    if not email_ok:
        logger.warning(f"Email disabled: {email_error}")

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title="ReviewLoop Backend",
    description="Photo and video review requests rewarded with promo codes",
    version="1.0.0",
    lifespan=lifespan
)

instrument_fastapi(app)
instrument_httpx()

# CORS middleware
allowed_origins = [settings.FRONTEND_URL]
if settings.ENVIRONMENT == "development":
    allowed_origins.extend([
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(webhooks.router)
app.include_router(email.router)
app.include_router(submissions.router)
app.include_router(merchants.router)
app.include_router(products.router)
app.include_router(reviews.router)
app.include_router(reviews.showcase_router)  # Separate router for the public /api/showcase


@app.middleware("http")
async def access_log_middleware(request: Request, call_next):
    """Log every API request with its status and duration"""
    start = time.monotonic()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        if request.url.path not in ("/health", "/metrics"):
            api_access_logger.info(
                f"{request.method} {request.url.path} - {status_code} "
                f"({(time.monotonic() - start) * 1000:.1f}ms)"
            )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


# Prometheus metrics endpoint
@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Health check endpoint
@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
