"""API Routes module"""
from fastapi import APIRouter

from .applications import router as applications_router
from .providers import router as providers_router
from .completion_links import router as completion_links_router

# Main API router
api_router = APIRouter()

api_router.include_router(applications_router, prefix="/applications", tags=["Applications"])
api_router.include_router(providers_router, prefix="/providers", tags=["Providers"])
api_router.include_router(completion_links_router, prefix="/completion-links", tags=["Completion Links"])

__all__ = ["api_router"]
