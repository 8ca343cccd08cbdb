"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from linkhop.core.registry import AliasRegistry


def get_registry(request: Request) -> AliasRegistry:
    """Return the process-wide registry created during lifespan startup."""
    return request.app.state.registry
