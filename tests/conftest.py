"""Shared test doubles for the alias source."""

from __future__ import annotations

import threading

import pytest

from linkhop.core.exceptions import SourceUnavailableError


class StaticAliasSource:
    """Returns a preset map; switch ``aliases``/``fail`` between calls."""

    def __init__(self, aliases: dict[str, str] | None = None, fail: bool = False) -> None:
        self.aliases = dict(aliases or {})
        self.fail = fail
        self.calls = 0

    def fetch(self) -> dict[str, str]:
        self.calls += 1
        if self.fail:
            raise SourceUnavailableError("source is down")
        return dict(self.aliases)


class BlockingAliasSource(StaticAliasSource):
    """Blocks inside ``fetch`` until ``release`` is set."""

    def __init__(self, aliases: dict[str, str] | None = None) -> None:
        super().__init__(aliases)
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch(self) -> dict[str, str]:
        self.entered.set()
        assert self.release.wait(timeout=5), "blocking source was never released"
        return super().fetch()


@pytest.fixture()
def cache_file(tmp_path):
    """Path for a registry snapshot that does not exist yet."""
    return tmp_path / "cache" / "aliases.json"
