"""Health-check endpoint.

Docker health checks and load balancers hit this endpoint to verify the
service is running and responsive.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from linkhop.api.deps import get_registry
from linkhop.core.registry import AliasRegistry

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(registry: AliasRegistry = Depends(get_registry)) -> dict[str, str | int]:
    """Return a simple health status.

    Returns 200 with ``{"status": "healthy", "aliases": <count>}``.  An empty
    alias table is still healthy: the next push will fill it.
    """
    return {"status": "healthy", "aliases": registry.alias_count}
