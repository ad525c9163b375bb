"""API route aggregation.

Learn: Everything is mounted under /api/v1 in main.py. Authentication is
declared per route: tenant routes take the Bearer identity, customer
sync takes the API key identity, health is open.
"""

from fastapi import APIRouter

from tenantgate.api.api_keys import router as api_keys_router
from tenantgate.api.customers import router as customers_router
from tenantgate.api.health import router as health_router
from tenantgate.api.tenants import router as tenants_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(tenants_router, tags=["tenants"])
api_router.include_router(api_keys_router, tags=["api-keys"])
api_router.include_router(customers_router, tags=["customers"])
