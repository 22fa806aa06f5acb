"""
PURPOSE: API router initialization and exports for RugSense.

Aggregates the API routers into a single api_router that is included in the
main FastAPI application.
"""

from fastapi import APIRouter

from rugsense.api.routes_qlearning import router as qlearning_router

# Create the main API router
api_router = APIRouter(prefix="/api", tags=["api"])

api_router.include_router(qlearning_router, tags=["qlearning"])

__all__ = ["api_router"]
