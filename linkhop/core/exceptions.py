"""Domain-specific exceptions for linkhop.

Every failure the registry can recover from has its own exception type so
that callers can handle it precisely. Never raise bare Exception or use
generic error types.
"""

from __future__ import annotations


class LinkhopError(Exception):
    """Base exception for all linkhop failures."""


# =============================================================================
# Alias source
# =============================================================================


class SourceUnavailableError(LinkhopError):
    """The alias document could not be fetched or did not parse.

    Transport and parse failures are deliberately folded into one type:
    the registry reacts to both by keeping its current map.
    """


# =============================================================================
# Registry
# =============================================================================


class CacheUnreadableError(LinkhopError):
    """The local alias snapshot is missing, unreadable, or not a flat string map."""


class RegistryInitError(LinkhopError):
    """The registry could not be constructed (e.g. cache directory not creatable)."""
