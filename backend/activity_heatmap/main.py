"""FastAPI application entry point."""
import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from activity_heatmap.config import settings
from activity_heatmap.database import init_db
from activity_heatmap.logging_config import setup_logging
from activity_heatmap.routers import auth, polylines, proxies, tiles, tracks
from activity_heatmap.services.session import ProviderError

setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Activity Heatmap",
    description="Strava and RideWithGPS track heatmaps",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router)
app.include_router(proxies.router)
app.include_router(tracks.router)
app.include_router(polylines.router)
app.include_router(tiles.router)


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    """Relay upstream failures with the upstream status code."""
    logger.warning("%s %s failed upstream: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "provider": exc.provider,
            "upstream_status": exc.status_code,
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Log unexpected errors and hide their details from the client."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    # Ensure database directory exists
    if settings.DATABASE_URL.startswith("sqlite:///"):
        db_path = Path(settings.DATABASE_URL.replace("sqlite:///", ""))
        db_path.parent.mkdir(parents=True, exist_ok=True)

    # Create database tables
    init_db()
    logger.info("Database initialized")
    logger.info("Running in %s mode", settings.ENVIRONMENT)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("activity_heatmap.main:app", host="0.0.0.0", port=8080, reload=settings.is_development)
