from fastapi import APIRouter, Depends
import time

from ....api.deps import get_registry
from ....core.fallback_store import fallback_store
from ....services.proctor_session import SessionRegistry

router = APIRouter()


@router.get("/health")
async def get_basic_health():
    """Get basic service health status"""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "service": "proctor-engine"
    }


@router.get("/system-health")
async def get_system_health(sessions: SessionRegistry = Depends(get_registry)):
    """Fallback store connectivity and live session count"""
    health_status = {
        "timestamp": time.time(),
        "overall_status": "healthy",
        "services": {},
        "alerts": []
    }

    store_health = await fallback_store.ahealth_check()
    health_status["services"]["fallback_store"] = {
        "status": "healthy" if store_health else "unhealthy"
    }
    if not store_health:
        health_status["overall_status"] = "degraded"
        health_status["alerts"].append("Fallback store unreachable; undelivered violations will be dropped")

    health_status["sessions"] = {"active": len(sessions)}
    return health_status
