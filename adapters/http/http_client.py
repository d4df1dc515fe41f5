from __future__ import annotations

import httpx


def create_http_client(
    *,
    base_url: str,
    timeout_seconds: float = 30.0,
    auth_token: str | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    headers = {"Content-Type": "application/json"}
    if auth_token:
        headers["Authorization"] = f"Bearer {auth_token}"
    return httpx.Client(
        base_url=base_url.rstrip("/"),
        timeout=timeout_seconds,
        headers=headers,
        transport=transport,
    )
