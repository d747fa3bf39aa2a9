"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from hushryd.api.routes import auth, rides, bookings, offers, users

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(rides.router)
api_router.include_router(bookings.router)
api_router.include_router(offers.router)
