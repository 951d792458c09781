"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import auth, branches, events, health, media, rbac, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(rbac.router, prefix="/rbac", tags=["rbac"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(events.router, prefix="/events", tags=["events"])
router.include_router(branches.router, prefix="/branches", tags=["branches"])
router.include_router(media.router, tags=["media"])
