"""Map an inbound request path to a redirect target."""

from __future__ import annotations

import logging

from linkhop.core.registry import AliasRegistry

logger = logging.getLogger(__name__)


def normalize_path(path: str | None) -> str:
    """Strip a single leading ``/``.

    Trailing slashes, case, and encoding are left alone: ``/Docs/`` and
    ``docs`` are different aliases.
    """
    path = path or ""
    return path[1:] if path.startswith("/") else path


def resolve_redirect(registry: AliasRegistry, path: str | None) -> str | None:
    """Return the redirect target for *path*, or None to pass the request through."""
    alias = normalize_path(path)
    logger.debug("Resolving redirect for %r", alias)

    target = registry.resolve(alias)
    if target:
        logger.info("Redirecting %r to %r", alias, target)
        return target

    logger.info("No redirect for %r", alias)
    return None
