"""
HTTP client for the Workhub API.

Attaches the stored bearer token to every request and turns failures into a
single ApiError whose message is what the UI should show.
"""
from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from workhub.client.storage import TOKEN_KEY, MemoryStorage, TokenStorage

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 10.0


def default_api_base_url() -> str:
    return (os.getenv("API_BASE_URL") or os.getenv("BACKEND_URL") or DEFAULT_API_BASE_URL).rstrip("/")


class ApiError(Exception):
    """Raised for any failed API call. ``str(exc)`` is user-facing."""

    def __init__(self, message: str, *, status_code: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class BackendUnreachable(ApiError):
    """Raised when the API cannot be reached at all."""


def _error_message(response: httpx.Response) -> str:
    text = response.text
    try:
        body = response.json()
    except ValueError:
        return text or f"Request failed with status {response.status_code}"
    if isinstance(body, dict):
        message = body.get("error") or body.get("message")
        if isinstance(message, str) and message:
            return message
    return text or f"Request failed with status {response.status_code}"


class BackendClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        storage: TokenStorage | None = None,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = (base_url or default_api_base_url()).rstrip("/")
        self.storage = storage if storage is not None else MemoryStorage()
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.storage.get(TOKEN_KEY)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.request(method, url, headers=self._headers(headers), json=body)
        except httpx.TransportError as exc:
            logger.error("Network error: cannot reach backend at %s (%s)", url, exc)
            raise BackendUnreachable(
                f"Cannot connect to backend server. Is it running on {self.base_url}?"
            ) from exc

        if response.is_error:
            raise ApiError(
                _error_message(response),
                status_code=response.status_code,
                payload=response.text,
            )
        return response.json()

    def get(self, path: str) -> Any:
        return self.request("GET", path)

    def post(self, path: str, body: Any = None, *, headers: dict[str, str] | None = None) -> Any:
        return self.request("POST", path, body, headers=headers)

    def put(self, path: str, body: Any = None) -> Any:
        return self.request("PUT", path, body)

    def exchange_token(self, access_token: str) -> dict[str, Any]:
        """Trade a provider access token for the canonical session payload."""
        return self.post("/auth/token", {}, headers={"Authorization": f"Bearer {access_token}"})
