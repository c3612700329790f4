"""Shared HTTP client construction."""

from __future__ import annotations

import httpx

DEFAULT_TIMEOUT = 30.0


def create_async_client(
    timeout: float = DEFAULT_TIMEOUT,
    base_url: str = "",
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` with a bounded timeout and JSON headers.

    Args:
        timeout: Total per-request timeout in seconds.
        base_url: Optional base URL for relative requests.
        transport: Optional transport (tests pass ``httpx.MockTransport``).
    """
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout),
        headers={"Content-Type": "application/json", "Accept": "application/json"},
        transport=transport,
    )
