"""HTTP client factory, header helpers and retry policy for upstream calls."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from apps_broker.upstream_context import normalize_base_url

T = TypeVar("T")

# Requests that never reached the server, or never answered in time.
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.TimeoutException)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retry for connection-level failures only."""

    max_retries: int = 2
    initial_backoff: float = 1.0

    async def run(self, call: Callable[[], Awaitable[T]]) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.initial_backoff),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await call()
        raise AssertionError("unreachable")  # pragma: no cover


@dataclass(frozen=True, slots=True)
class CallTimeouts:
    """Per-endpoint timeouts in seconds."""

    login: float = 10.0
    save_app: float = 10.0
    validate: float = 15.0
    import_app: float = 60.0
    upload: float = 600.0


def session_headers(session_token: str | None) -> dict[str, str]:
    """The same token under every header name the backend has historically accepted."""
    if session_token is None:
        return {}
    # Header names are case-insensitive: "sessiontoken" is the SessionToken field.
    return {
        "SessionToken": session_token,
        "X-Session-Token": session_token,
    }


def create_upstream_client(base_url: str, *, timeout: float = 30.0) -> httpx.AsyncClient:
    """Build an AsyncClient for one upstream service."""
    return httpx.AsyncClient(
        base_url=normalize_base_url(base_url),
        timeout=timeout,
    )
