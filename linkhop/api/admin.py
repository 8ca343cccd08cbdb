"""Admin endpoints.

Registry observability and a manual reload for when a webhook delivery
was missed.  The reload endpoint is protected by the ADMIN_SECRET header
and disabled entirely when no secret is configured.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from linkhop.api.deps import get_registry
from linkhop.config import Settings, get_settings
from linkhop.core.registry import AliasRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


@router.get("/stats")
async def admin_stats(registry: AliasRegistry = Depends(get_registry)) -> dict[str, Any]:
    """Return the registry's origin, size, and last reload outcome."""
    last = registry.last_reload
    return {
        "origin": registry.origin,
        "aliases": registry.alias_count,
        "last_reload": None
        if last is None
        else {
            "succeeded": last.succeeded,
            "alias_count": last.alias_count,
            "finished_at": last.finished_at.isoformat(),
            "error": last.error,
        },
    }


@router.post("/reload")
def admin_reload(
    x_admin_secret: str = Header(default=""),
    config: Settings = Depends(get_settings),
    registry: AliasRegistry = Depends(get_registry),
) -> JSONResponse:
    """Reload aliases synchronously and report the result.

    Declared sync so FastAPI runs it in the threadpool; the fetch blocks.

    Raises:
        HTTPException(404): if ADMIN_SECRET is not configured.
        HTTPException(403): if the X-Admin-Secret header does not match.
    """
    if not config.admin_secret:
        raise HTTPException(status_code=404, detail="Not Found")

    if not hmac.compare_digest(x_admin_secret.encode("utf-8"), config.admin_secret.encode("utf-8")):
        logger.warning("Admin reload rejected: bad secret")
        raise HTTPException(status_code=403, detail="Invalid admin secret")

    logger.info("Manual alias reload requested")
    if registry.reload_from_source():
        return JSONResponse({"status": "reloaded", "aliases": registry.alias_count})

    error = registry.last_reload.error if registry.last_reload else ""
    return JSONResponse({"status": "failed", "error": error}, status_code=502)
