"""Top-level API router."""

from fastapi import APIRouter

from budget_office.api.routes.catalogs import router as catalogs_router
from budget_office.api.routes.health import router as health_router
from budget_office.api.routes.me import router as me_router
from budget_office.api.routes.offices import router as offices_router
from budget_office.api.routes.subunits import router as subunits_router
from budget_office.api.routes.users import router as users_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(offices_router)
api_router.include_router(subunits_router)
api_router.include_router(catalogs_router)
api_router.include_router(users_router)
