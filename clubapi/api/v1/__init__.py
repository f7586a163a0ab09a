"""API v1 routes. Every route passes through the route-policy gate."""

from fastapi import APIRouter, Depends

from clubapi.api.v1 import auth, health, users
from clubapi.api.v1.auth import enforce_route_policy

router = APIRouter(dependencies=[Depends(enforce_route_policy)])
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
