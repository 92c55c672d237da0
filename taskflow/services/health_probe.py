from __future__ import annotations

from typing import Any

import httpx

from taskflow.config import Settings

PROBE_HEADERS = {"x-observability-probe": "internal"}

_client: httpx.AsyncClient | None = None


class UpstreamHealthError(RuntimeError):
    pass


def set_probe_client(client: httpx.AsyncClient | None) -> None:
    global _client
    _client = client


def get_probe_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        _client = httpx.AsyncClient()
    return _client


async def close_probe_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def fetch_internal_health(settings: Settings) -> dict[str, Any]:
    """Call this service's own /health endpoint over loopback."""

    url = f"http://127.0.0.1:{settings.port}/health"
    try:
        response = await get_probe_client().get(
            url,
            headers=PROBE_HEADERS,
            timeout=settings.internal_health_timeout_seconds,
        )
    except httpx.TimeoutException as exc:
        raise UpstreamHealthError("Upstream health check timed out") from exc
    except httpx.HTTPError as exc:
        raise UpstreamHealthError(f"Upstream health check failed: {exc}") from exc

    if response.status_code >= 400:
        raise UpstreamHealthError(f"Upstream health check failed with status {response.status_code}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamHealthError("Failed to parse upstream health response") from exc

    if not isinstance(payload, dict):
        raise UpstreamHealthError("Failed to parse upstream health response")
    return payload
