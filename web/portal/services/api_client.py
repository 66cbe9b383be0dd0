"""
Thin wrapper around httpx for calls to the backend identity service.

Responsibilities:
- Bind requests to API_BASE_URL with the ambient timeout
- Translate transport failures and non-success statuses into ApiClientError
"""
from __future__ import annotations

from typing import Any

import httpx

from portal.core.config import settings


class ApiClientError(Exception):
    """Raised when the backend cannot be reached or answers with a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _client() -> httpx.Client:
    return httpx.Client(
        base_url=settings.API_BASE_URL,
        timeout=settings.API_TIMEOUT_SECONDS,
        headers={"Content-Type": "application/json"},
    )


def api_request(
    method: str,
    path: str,
    *,
    json: dict[str, Any] | None = None,
    ok_statuses: frozenset[int] = frozenset({200}),
) -> httpx.Response:
    try:
        with _client() as client:
            response = client.request(method, path, json=json)
    except httpx.TimeoutException as exc:
        raise ApiClientError(f"API timeout: {method} {path}") from exc
    except httpx.HTTPError as exc:
        raise ApiClientError(f"API transport error: {method} {path}: {exc}") from exc

    if response.status_code not in ok_statuses:
        raise ApiClientError(
            f"API Error: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
            body=response.text,
        )
    return response


def api_get(path: str, **kwargs: Any) -> httpx.Response:
    return api_request("GET", path, **kwargs)


def api_post(path: str, payload: dict[str, Any], **kwargs: Any) -> httpx.Response:
    return api_request("POST", path, json=payload, **kwargs)
