"""
Backend API package initialization.

This package contains FastAPI router modules for the laboratory dashboard:
- unsat: Unsatisfactory-sample rankings, rates, province comparison, facility detail
- samples: Monthly and cumulative received/screened counts
- laboratory: Summary card totals
"""

from fastapi import APIRouter

# Import router modules
from labdash.api.unsat import router as unsat_router
from labdash.api.samples import received_router, screened_router
from labdash.api.laboratory import router as laboratory_router

# Create main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(unsat_router, prefix="/api/unsat", tags=["unsat"])
api_router.include_router(received_router, prefix="/api/sample-receive", tags=["sample-receive"])
api_router.include_router(screened_router, prefix="/api/sample-screened", tags=["sample-screened"])
api_router.include_router(laboratory_router, prefix="/api/laboratory", tags=["laboratory"])

# Export all routers for selective imports
__all__ = [
    "api_router",
    "unsat_router",
    "received_router",
    "screened_router",
    "laboratory_router",
]
