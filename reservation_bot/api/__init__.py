"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import capacity, reservations, webhook

api_router = APIRouter()

api_router.include_router(webhook.router, prefix="/webhook", tags=["webhook"])
api_router.include_router(capacity.router, prefix="/capacity", tags=["capacity"])
api_router.include_router(reservations.router, prefix="/reservations", tags=["reservations"])
