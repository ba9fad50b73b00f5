"""
API router aggregation
"""

from fastapi import APIRouter
from custodian.api.endpoints import assets, assignments, audit, system, users

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(
    system.router,
    prefix="/system",
    tags=["System"]
)

api_router.include_router(
    assets.router,
    prefix="/assets",
    tags=["Assets"]
)

api_router.include_router(
    assignments.router,
    prefix="/assignments",
    tags=["Assignments"]
)

api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"]
)

api_router.include_router(
    audit.router,
    prefix="/audit",
    tags=["Audit"]
)
