"""
Health Check Endpoints

- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (database and protection tool)
"""

from fastapi import APIRouter, HTTPException, status
from datetime import datetime, timezone
from typing import Dict, Any
import shutil
import time

from sqlalchemy import text

from app.core.config import settings
from app.core.database import get_session_local
from app.core.logging_config import logger


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity"""
    start = time.time()
    try:
        session_factory = get_session_local()
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
        }
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "error": str(e),
        }


def check_protection_tool() -> Dict[str, Any]:
    """Check the encryption tool is resolvable when protection is enabled"""
    if not settings.PDF_PROTECTION_ENABLED:
        return {"status": "disabled"}
    path = shutil.which(settings.QPDF_BINARY)
    if path is None:
        return {"status": "unhealthy", "error": f"'{settings.QPDF_BINARY}' not found"}
    return {"status": "healthy", "path": path}


@router.get("/live")
async def liveness():
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/ready")
async def readiness():
    checks = {
        "database": await check_database(),
        "protection": check_protection_tool(),
    }
    ready = all(c["status"] in ("healthy", "disabled") for c in checks.values())
    if not ready:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
