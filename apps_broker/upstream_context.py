"""
Per-call upstream base URL overrides.

A bridge running next to the MCP client can send ``authBaseUrl`` and
``appsBaseUrl`` with each tool call. The values live in a ContextVar for the
duration of that call only, so concurrent calls never observe each other's
overrides.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass

_LEGACY_SUFFIX = "/Smart2Go"


def normalize_base_url(base_url: str) -> str:
    """Trim a base URL and drop a trailing slash and legacy ``/Smart2Go`` segment."""
    trimmed = base_url.strip().removesuffix("/")
    return trimmed.removesuffix(_LEGACY_SUFFIX)


@dataclass(frozen=True, slots=True)
class UpstreamOverrides:
    auth_base_url: str | None = None
    apps_base_url: str | None = None


_overrides: ContextVar[UpstreamOverrides | None] = ContextVar("upstream_overrides", default=None)


def _normalize_or_none(value: object) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return normalize_base_url(value)


def current_overrides() -> UpstreamOverrides | None:
    return _overrides.get()


@contextmanager
def upstream_overrides(
    auth_base_url: object = None,
    apps_base_url: object = None,
    *,
    enabled: bool = True,
) -> Iterator[UpstreamOverrides | None]:
    """Apply base URL overrides for the enclosed call and always reset them afterwards."""
    auth = _normalize_or_none(auth_base_url)
    apps = _normalize_or_none(apps_base_url)
    overrides = UpstreamOverrides(auth, apps) if enabled and (auth or apps) else None
    token = _overrides.set(overrides)
    try:
        yield overrides
    finally:
        _overrides.reset(token)
