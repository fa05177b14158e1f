"""
CMMS Analytics API - Main Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cmms_analytics.core.config import get_settings
from cmms_analytics.core.database import init_db
from cmms_analytics.core.exceptions import (
    DataSourceError,
    ForbiddenError,
    InvalidReportQueryError,
    NotFoundError,
)
from cmms_analytics.api.v1.router import api_router

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup and shutdown events.
    """
    logger.info("Starting CMMS Analytics API...")
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down CMMS Analytics API...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## CMMS Analytics - Operational Analytics & Reporting

    * **KPIs** - MTTR, MTBF, backlog, OEE, energy and downtime
    * **Trends** - Daily OEE, energy and downtime series
    * **Dashboard** - Work-order status, PM compliance, cost and labor utilization
    * **Corporate** - Per-site rollups and tenant-wide totals
    * **PM What-If** - Failure probability and PM interval scenarios
    * **Custom Reports** - Query builder, exports and shareable templates

    ### Authentication

    Include an `Authorization: Bearer <token>` header.
    """,
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API router
app.include_router(api_router, prefix="/api/v1")


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.APP_VERSION}


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs_url": "/api/docs",
        "openapi_url": "/api/v1/openapi.json",
    }


@app.exception_handler(InvalidReportQueryError)
async def invalid_query_handler(request: Request, exc: InvalidReportQueryError):
    content = {"detail": str(exc)}
    if exc.field:
        content["field"] = exc.field
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


@app.exception_handler(DataSourceError)
async def data_source_handler(request: Request, exc: DataSourceError):
    logger.error(f"Data source '{exc.source}' failed for {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Record store unavailable"},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cmms_analytics.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
