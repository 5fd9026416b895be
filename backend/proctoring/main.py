from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import asyncio
import logging

from proctoring.core.config import settings
from proctoring.core.fallback_store import fallback_store
from proctoring.api.v1.api import api_router
from proctoring.services.proctor_session import registry


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Proctor Engine API",
    description="Violation tracking, fullscreen enforcement and auto-submission for proctored assessments",
    version="1.0.0",
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": getattr(request.state, 'request_id', 'unknown')
        }
    )


@app.on_event("startup")
async def startup_event():
    """Application startup tasks"""
    logger.info("Starting Proctor Engine API...")

    try:
        store_health = await fallback_store.ahealth_check()
        if store_health:
            logger.info("Fallback store connection established")
        else:
            logger.warning("Fallback store connection failed - undelivered violations will be dropped")
    except Exception as e:
        logger.error(f"Fallback store initialization error: {e}")

    registry.start_pruning()
    logger.info("Proctor Engine API startup completed")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown tasks"""
    logger.info("Shutting down Proctor Engine API...")

    await registry.close_all()
    logger.info("Open proctoring sessions submitted")

    try:
        await fallback_store.aclose()
        logger.info("Fallback store connections closed")
    except Exception as e:
        logger.error(f"Error closing fallback store connections: {e}")

    logger.info("Proctor Engine API shutdown completed")


app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Service health including the fallback store"""
    health_status = {
        "status": "healthy",
        "timestamp": asyncio.get_event_loop().time(),
        "version": "1.0.0",
        "services": {},
        "sessions": len(registry)
    }

    try:
        store_health = await fallback_store.ahealth_check()
        health_status["services"]["fallback_store"] = "healthy" if store_health else "unhealthy"
    except Exception as e:
        health_status["services"]["fallback_store"] = f"error: {str(e)}"

    return health_status


@app.get("/")
async def read_root():
    return {
        "message": "Proctor Engine API",
        "version": "1.0.0",
        "features": [
            "Violation tracking with per-kind thresholds",
            "Batched delivery with local fallback",
            "Fullscreen pause and grace ceiling",
            "Single-shot auto-submission"
        ]
    }
