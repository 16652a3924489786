"""API route registration."""

from fastapi import APIRouter

from app.api.routes import auth, health, parts

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(parts.router, tags=["parts"])
