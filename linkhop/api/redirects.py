"""Catch-all redirect route.

Any GET/HEAD path not claimed by another router is treated as an alias.
Must be included last: it matches every path.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from linkhop.api.deps import get_registry
from linkhop.core.registry import AliasRegistry
from linkhop.core.resolver import resolve_redirect

router = APIRouter(tags=["redirects"])


@router.api_route("/{alias:path}", methods=["GET", "HEAD"], include_in_schema=False)
async def redirect_alias(
    request: Request,
    registry: AliasRegistry = Depends(get_registry),
) -> RedirectResponse:
    """Redirect to the alias target, or 404 when the path is not an alias."""
    target = resolve_redirect(registry, request.url.path)
    if target is None:
        raise HTTPException(status_code=404, detail="Alias not found")
    return RedirectResponse(target, status_code=302)
