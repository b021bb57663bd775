"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied per route with Depends(get_auth_result), which
resolves the principal through the shared Authenticator. Health is open.
"""

from fastapi import APIRouter

from tenantauth.api.auth import router as auth_router
from tenantauth.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
