from fastapi import APIRouter

from case_analysis.api.v1.endpoints import case_law, steps, workflows

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(workflows.router, tags=["Workflows"])
api_router.include_router(steps.router, tags=["Steps"])
api_router.include_router(case_law.router, tags=["Case Law"])

__all__ = ["api_router"]
