"""
Main FastAPI application for the train schedule service.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging
import time
from contextlib import asynccontextmanager
import os

from app.core.config import settings
from app.core.exceptions import ScheduleError, status_code_for
from app.api.routes import reference, schedule, websocket
from app.db.seed import seed_reference_data
from app.db.session import Database
from app.services.broadcast import ConnectionManager

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting train schedule service...")

    # The test suite injects its own database before startup
    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database.from_settings(settings)
    database = app.state.database
    if getattr(app.state, "broadcaster", None) is None:
        app.state.broadcaster = ConnectionManager()

    # Only create database tables if not in test mode
    if not os.getenv("TESTING"):
        try:
            database.create_all()
            logger.info("Database tables created successfully")
            if settings.seed_reference_data:
                with database.transaction() as db:
                    seed_reference_data(db)
        except Exception as e:
            logger.error(f"Failed to prepare database: {str(e)}")
    else:
        logger.info("Skipping database table creation in test mode")

    yield

    logger.info("Shutting down train schedule service...")
    if owns_database:
        database.dispose()
        app.state.database = None


# Create FastAPI application
app = FastAPI(
    title=settings.project_name,
    version=settings.version,
    description="Recurring train schedule management with conflict detection",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    debug=settings.debug,
    lifespan=lifespan
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Exception handlers
@app.exception_handler(ScheduleError)
async def schedule_error_handler(request: Request, exc: ScheduleError):
    """Map domain errors to their HTTP status and a JSON body."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"Schedule error on {request.url}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Global exception on {request.url}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "path": str(request.url),
            "timestamp": time.time()
        }
    )


# Include API routes
app.include_router(
    schedule.router,
    prefix=f"{settings.api_v1_prefix}/schedules",
    tags=["schedules"]
)

app.include_router(
    reference.router,
    prefix=settings.api_v1_prefix,
    tags=["reference"]
)

app.include_router(
    websocket.router,
    prefix="/ws",
    tags=["websocket"]
)


# Health check endpoints
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.version
    }


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Train Schedule Service",
        "version": settings.version,
        "docs_url": "/docs",
        "health_url": "/health",
        "api_prefix": settings.api_v1_prefix
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
