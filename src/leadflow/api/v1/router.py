"""
Main API router for v1 endpoints
"""
from fastapi import APIRouter

from leadflow.api.v1.endpoints import leads, teams, users

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(leads.router, tags=["leads"])
api_router.include_router(users.router, tags=["users"])
api_router.include_router(teams.router, tags=["teams"])
