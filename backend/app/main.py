"""
FastAPI application main entry point.
"""

import time
from contextlib import asynccontextmanager

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from backend.app.api.routes import router
from backend.app.config import API_VERSION, CORS_ORIGINS, DB_INIT_ON_STARTUP
from backend.app.db.init_db import init_db
from backend.app.logging_config import configure_logging
from backend.app.metrics import REQUEST_COUNT, REQUEST_DURATION

# Load environment variables
load_dotenv()
configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed reference data when DB_INIT_ON_STARTUP is set."""
    if DB_INIT_ON_STARTUP:
        init_db()
        logger.info("database_initialized_on_startup")
    yield


# Create FastAPI app
app = FastAPI(
    title="Grant Trail API",
    description="Federal and state grant funding ingestion and money-trail discovery",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add metrics middleware
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Middleware to collect HTTP metrics."""
    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time
    REQUEST_DURATION.observe(duration)

    REQUEST_COUNT.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).inc()

    return response

# Include API routes
app.include_router(router, prefix="/api/v1", tags=["API"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Grant Trail API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/api/v1/health",
        "metrics": "/metrics"
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
