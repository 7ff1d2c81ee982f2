"""httpx wrapper.

Why a wrapper:
- Standardizes timeouts, headers and redirects for discovery and portal calls.
- Eases testing: callers accept a client factory, tests plug in an
  `httpx.MockTransport`.
"""

from __future__ import annotations

from typing import Any, Callable

import httpx

from core.config import AppSettings

ClientFactory = Callable[[], httpx.AsyncClient]


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with safe defaults."""

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


async def fetch_json(client: httpx.AsyncClient, url: str) -> Any:
    """GET `url` and decode JSON; HTTP errors raise `httpx.HTTPStatusError`."""

    response = await client.get(url)
    response.raise_for_status()
    return response.json()
