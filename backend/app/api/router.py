"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from app.api.routes import events, registrations

api_router = APIRouter(prefix="/api")
api_router.include_router(events.router)
api_router.include_router(registrations.router)
