from fastapi import APIRouter

from planner.api.auth import pages_router as auth_pages_router
from planner.api.auth import router as auth_router
from planner.api.dashboards import router as dashboards_router
from planner.api.events import router as events_router
from planner.api.health import router as health_router
from planner.api.notifications import router as notifications_router
from planner.api.participants import router as participants_router
from planner.api.profiles import router as profiles_router
from planner.api.proposals import router as proposals_router
from planner.api.schedules import router as schedules_router

api_router = APIRouter()

# Include sub-routers
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router)
api_router.include_router(profiles_router)
api_router.include_router(schedules_router)
api_router.include_router(participants_router)
api_router.include_router(proposals_router)
api_router.include_router(events_router)
api_router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])

# Served outside /api/v1
pages_router = APIRouter()
pages_router.include_router(auth_pages_router)
pages_router.include_router(dashboards_router)
