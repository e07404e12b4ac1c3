from fastapi import APIRouter
from app.api.v1.endpoints import health, letters, verify

api_router = APIRouter()

# Readiness/liveness checks under /api/v1/health/...
api_router.include_router(health.router)

api_router.include_router(letters.router)
api_router.include_router(verify.router)
