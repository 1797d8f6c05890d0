"""
FastAPI backend for the student job portal.

Serves job postings and text content, with a database-backed read-through
cache in front of the read endpoints.
"""

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from constants import JOBS_PATH, TEXTS_PREFIX
from core.container import container
from core.logging import configure_logging, get_logger, log_cache_config
from middleware.cache import CacheMiddleware, EnvelopeCacheMiddleware
from routers import jobs, texts

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)

# Suppress noisy loggers
import logging
logging.getLogger("uvicorn").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("watchfiles").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting job portal services")

    await container.database().startup()
    log_cache_config(logger, settings)
    await container.cleanup().start()

    logger.info("Services started successfully")
    yield

    await container.cleanup().stop()
    await container.database().shutdown()
    logger.info("Services shutdown complete")


app = FastAPI(
    title="Job Portal Services",
    version="1.0.0",
    description="Job portal backend with a read-through response cache",
    lifespan=lifespan,
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )


# Response caches sit innermost so cached hits still get CORS headers
app.add_middleware(EnvelopeCacheMiddleware, paths=[JOBS_PATH])
app.add_middleware(CacheMiddleware, prefixes=[TEXTS_PREFIX], ttl=settings.cache_static_ttl)

app.add_middleware(CatchAllExceptionsMiddleware)

logger.info("Configuring CORS middleware",
            origins_count=len(settings.cors_origins),
            origins=settings.cors_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

app.include_router(jobs.router)
app.include_router(texts.router)


@app.get("/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "OK",
        "service": "jobportal",
        "version": app.version,
        "environment": "development" if settings.debug else "production",
        "database_ready": container.database().is_ready(),
        "cache": {
            "backend": settings.cache_backend,
            "store_ready": container.cache_store().is_ready(),
            "cleanup_running": container.cleanup().running,
        },
        "timestamp": datetime.now().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting job portal services",
                host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers
    )
