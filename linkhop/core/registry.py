"""Alias registry: the process-wide alias table and its reload protocol.

The registry publishes exactly one immutable alias map at a time.

- Readers (``resolve``) never lock.  They take a single reference to the
  published map and look the alias up in it, so a lookup sees either the
  old or the new map, never a mix.
- Reloads are serialized by ``_reload_lock``.  The fetch happens first;
  only a complete, validated map is published, by rebinding one attribute.
- After a successful publish the map is written to the cache file through
  a temp file and ``os.replace``, so the file is never half-written.

On startup the cache file is preferred over the network so that the
service can come up while GitHub is unreachable.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Literal

from linkhop.core.alias_source import AliasSource, parse_alias_document
from linkhop.core.exceptions import (
    CacheUnreadableError,
    RegistryInitError,
    SourceUnavailableError,
)

logger = logging.getLogger(__name__)

Origin = Literal["cache", "source", "empty"]


@dataclass(frozen=True)
class ReloadResult:
    """Outcome of the most recent reload attempt."""

    succeeded: bool
    alias_count: int
    finished_at: datetime
    error: str = ""


class AliasRegistry:
    """Thread-safe owner of the current alias map."""

    def __init__(self, source: AliasSource, cache_file: str | Path) -> None:
        self._source = source
        self._cache_file = Path(cache_file)
        self._reload_lock = threading.Lock()
        self._aliases: Mapping[str, str] = MappingProxyType({})
        self._origin: Origin = "empty"
        self._last_reload: ReloadResult | None = None

        try:
            self._cache_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RegistryInitError(
                f"Cannot create alias cache directory {self._cache_file.parent}: {exc}"
            ) from exc

        self.bootstrap()
        logger.debug("Alias registry initialized")

    # ------------------------------------------------------------------
    #  Status
    # ------------------------------------------------------------------

    @property
    def cache_file(self) -> Path:
        return self._cache_file

    @property
    def alias_count(self) -> int:
        return len(self._aliases)

    @property
    def origin(self) -> Origin:
        """Where the published map came from: the cache file, the source, or nowhere."""
        return self._origin

    @property
    def last_reload(self) -> ReloadResult | None:
        return self._last_reload

    # ------------------------------------------------------------------
    #  Lookup
    # ------------------------------------------------------------------

    def resolve(self, alias: str) -> str | None:
        """Return the target URL for *alias*, or None if it is not mapped."""
        if alias is None:
            raise TypeError("alias must be a string, not None")

        aliases = self._aliases  # one reference read; see module docstring
        return aliases.get(alias)

    # ------------------------------------------------------------------
    #  Loading
    # ------------------------------------------------------------------

    def bootstrap(self) -> None:
        """Adopt the cache file if usable, otherwise load from the source.

        Never raises for an unreachable source: the registry then starts
        empty and every lookup misses until the next successful reload.
        """
        if self._cache_file.exists():
            try:
                aliases = self._read_cache()
            except CacheUnreadableError as exc:
                logger.warning("Ignoring alias cache: %s", exc)
            else:
                self._publish(aliases, origin="cache")
                logger.info(
                    "Loaded %d aliases from cache",
                    len(aliases),
                    extra={"cache_file": str(self._cache_file)},
                )
                return
        else:
            logger.info("No alias cache at %s", self._cache_file)

        if not self.reload_from_source():
            logger.warning("Starting with an empty alias table")

    def reload_from_source(self) -> bool:
        """Fetch a fresh map from the source and publish it.

        Returns:
            True if the new map was published, False if the source was
            unavailable (the current map is then left untouched).
        """
        with self._reload_lock:
            logger.info(
                "Loading aliases from source",
                extra={"source": type(self._source).__name__},
            )
            try:
                aliases = self._source.fetch()
            except SourceUnavailableError as exc:
                logger.error("Alias reload failed, keeping current map: %s", exc)
                self._last_reload = ReloadResult(
                    succeeded=False,
                    alias_count=self.alias_count,
                    finished_at=datetime.now(timezone.utc),
                    error=str(exc),
                )
                return False

            self._publish(aliases, origin="source")
            self._last_reload = ReloadResult(
                succeeded=True,
                alias_count=len(aliases),
                finished_at=datetime.now(timezone.utc),
            )
            logger.info("Published %d aliases", len(aliases))

            try:
                self._write_cache(aliases)
            except OSError:
                # The new map is live; only the next cold start is affected.
                logger.exception("Failed to update alias cache at %s", self._cache_file)

            return True

    def _publish(self, aliases: Mapping[str, str], origin: Origin) -> None:
        self._aliases = MappingProxyType(dict(aliases))
        self._origin = origin

    # ------------------------------------------------------------------
    #  Snapshot cache
    # ------------------------------------------------------------------

    def _read_cache(self) -> dict[str, str]:
        try:
            raw = self._cache_file.read_bytes()
        except OSError as exc:
            raise CacheUnreadableError(f"cannot read {self._cache_file}: {exc}") from exc

        try:
            return parse_alias_document(raw)
        except ValueError as exc:
            raise CacheUnreadableError(f"corrupt cache {self._cache_file}: {exc}") from exc

    def _write_cache(self, aliases: Mapping[str, str]) -> None:
        logger.debug("Updating alias cache", extra={"cache_file": str(self._cache_file)})
        fd, tmp_path = tempfile.mkstemp(
            dir=self._cache_file.parent,
            prefix=f".{self._cache_file.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(dict(aliases), fh, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self._cache_file)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
