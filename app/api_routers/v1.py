from fastapi import APIRouter

from app.features.link_checker.routes.link_checker import router as link_checker_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(link_checker_router)
