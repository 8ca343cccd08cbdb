"""Remote alias document source.

The alias table is a flat JSON object (``{"alias": "https://target"}``)
committed to a GitHub repository.  ``GitHubAliasSource`` fetches the raw
file over HTTPS with httpx; any transport or parse failure surfaces as a
single ``SourceUnavailableError``.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Protocol

import httpx

from linkhop.core.exceptions import SourceUnavailableError

logger = logging.getLogger(__name__)

RAW_CONTENT_BASE = "https://raw.githubusercontent.com"


class AliasSource(Protocol):
    """Anything that can produce the complete, current alias mapping."""

    def fetch(self) -> dict[str, str]:
        """Return the full alias map or raise ``SourceUnavailableError``."""
        ...


def parse_alias_document(raw: bytes | str) -> dict[str, str]:
    """Decode a flat JSON object of string → string.

    Raises:
        ValueError: If *raw* is not JSON, not an object, or holds a
            non-string value.
    """
    try:
        data: Any = json.loads(raw)
    except RecursionError as exc:
        raise ValueError("alias document is nested too deeply") from exc

    if not isinstance(data, dict):
        raise ValueError(f"alias document must be a JSON object, got {type(data).__name__}")

    for alias, target in data.items():
        if not isinstance(target, str):
            raise ValueError(f"target for alias {alias!r} is not a string")

    return data


class GitHubAliasSource:
    """Fetches ``aliases.json`` from a branch of a GitHub repository.

    Each request carries a ``ts`` query parameter so that the raw-content
    CDN does not serve a stale copy right after a push.
    """

    def __init__(
        self,
        repository: str,
        branch: str,
        file_name: str = "aliases.json",
        *,
        url: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.repository = repository
        self.branch = branch
        self.file_name = file_name
        self.url = url or f"{RAW_CONTENT_BASE}/{repository}/{branch}/{file_name}"
        self.timeout = timeout
        self._transport = transport

    def fetch(self) -> dict[str, str]:
        logger.info("Loading aliases from %s", self.url)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(self.url, params={"ts": time.time_ns()})
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(f"Failed to fetch aliases from {self.url}: {exc}") from exc

        try:
            aliases = parse_alias_document(response.content)
        except ValueError as exc:
            raise SourceUnavailableError(f"Invalid alias document at {self.url}: {exc}") from exc

        logger.debug("Fetched alias document", extra={"url": self.url, "alias_count": len(aliases)})
        return aliases
