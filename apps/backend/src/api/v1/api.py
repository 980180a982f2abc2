from fastapi import APIRouter

from .dishes import router as dishes_router
from .health import router as health_router


# No authentication: every route is public
api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(dishes_router)
