"""API Routes module"""
from fastapi import APIRouter

from .definitions import router as definitions_router
from .templates import router as templates_router
from .routing import router as routing_router
from .instances import router as instances_router

# Main API router
api_router = APIRouter()

api_router.include_router(definitions_router, prefix="/definitions", tags=["Definitions"])
api_router.include_router(templates_router, prefix="/templates", tags=["Templates"])
api_router.include_router(routing_router, prefix="/routing", tags=["Routing"])
api_router.include_router(instances_router, prefix="/instances", tags=["Instances"])

__all__ = ["api_router"]
