"""
API Version 1 Router.

Aggregates all v1 endpoint routers.
"""

from fastapi import APIRouter

from outliner.backend.api.v1.endpoints import nodes

router = APIRouter()

# Node endpoints
router.include_router(nodes.router, prefix="/nodes", tags=["nodes"])
