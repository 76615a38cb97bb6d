"""API router package."""

from fastapi import APIRouter

from happytail.api.v1 import (
    auth,
    bot,
    door_log,
    health,
    invitations,
    organizations,
    properties,
    tasks,
    users,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(invitations.router, prefix="/invitations", tags=["Invitations"])
router.include_router(properties.router, prefix="/properties", tags=["Properties"])
router.include_router(door_log.router, prefix="/doorLog", tags=["Door Log"])
router.include_router(bot.router, prefix="/bot", tags=["Bot"])
