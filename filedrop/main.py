"""
File Drop Service - Main Application
FastAPI app storing short-lived uploads in S3 under random identifiers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from filedrop.api import drop
from filedrop.core.config import settings
from filedrop.core.dependencies import AppSettings, StorageClient
from filedrop.core.errors import FileDropError
from filedrop.models.upload import ErrorResponse, HealthCheckResponse
from filedrop.s3.client import S3Client

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Creates the shared storage client on startup and releases it on shutdown.
    """
    logger.info("Starting File Drop Service...")

    s3_client = S3Client(settings)
    app.state.s3_client = s3_client

    try:
        s3_client.ensure_bucket_exists(settings.AWS_BUCKET)
    except FileDropError as e:
        logger.error(f"Failed to initialize bucket {settings.AWS_BUCKET}: {e}")
        # Continue anyway - the bucket may become reachable later

    logger.info("File Drop Service started successfully")

    yield

    logger.info("Shutting down File Drop Service...")
    s3_client.close()


# Create FastAPI app
app = FastAPI(
    title="File Drop Service",
    description="Ephemeral file drop: upload a file, share the short URL until it expires",
    version="1.0.0",
    lifespan=lifespan
)


@app.get("/health", tags=["health"], response_model=HealthCheckResponse)
async def health_check(client: StorageClient, config: AppSettings):
    """Health check endpoint."""
    try:
        await client.run(client.check_bucket, config.AWS_BUCKET)
        return HealthCheckResponse(status="healthy", s3_connection="ok")
    except FileDropError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=HealthCheckResponse(status="unhealthy", s3_connection="failed").model_dump()
        )


# Registered after /health so the identifier route does not shadow it
app.include_router(drop.router)


@app.exception_handler(FileDropError)
async def file_drop_exception_handler(request: Request, exc: FileDropError):
    """Map service errors to their status; server-side details stay in the log."""
    if exc.status_code >= 500:
        logger.error(f"Request failed: {request.method} {request.url.path} :: {exc}", exc_info=exc)
        detail = "Internal server error"
    else:
        detail = exc.detail

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=detail, error_code=exc.error_code).model_dump()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(detail="Internal server error").model_dump()
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "filedrop.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_keep_alive=7200,  # Long uploads on slow links
    )
