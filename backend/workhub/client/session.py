"""
Client-side identity provider session.

Mirrors what the provider's browser SDK does: remembers the active session in
client-local storage and can install a session from tokens found in a
redirect URL.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Protocol

import httpx

from workhub.client.storage import TokenStorage

logger = logging.getLogger(__name__)

SESSION_KEY = "provider_session"


@dataclass(frozen=True)
class ProviderSession:
    access_token: str
    refresh_token: str | None = None


class SessionError(Exception):
    """Raised when the provider refuses to install a session."""


class ProviderSessionStore(Protocol):
    def set_session(self, access_token: str, refresh_token: str) -> ProviderSession: ...

    def get_session(self) -> ProviderSession | None: ...


class SupabaseSessionStore:
    def __init__(
        self,
        url: str,
        anon_key: str,
        *,
        storage: TokenStorage,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = url.rstrip("/")
        self._anon_key = anon_key
        self._storage = storage
        self._client = client or httpx.Client(timeout=timeout)

    def _call(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, f"{self._url}{path}", **kwargs)
        except httpx.TransportError as exc:
            raise SessionError(f"Identity provider unreachable: {exc}") from exc

    def _refresh(self, refresh_token: str) -> ProviderSession:
        response = self._call(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            headers={"apikey": self._anon_key},
            json={"refresh_token": refresh_token},
        )
        if response.status_code != 200:
            raise SessionError("Refresh token rejected")
        try:
            body = response.json()
        except ValueError as exc:
            raise SessionError("Refresh returned an unreadable response") from exc
        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise SessionError("Refresh returned no access token")
        return ProviderSession(access_token=access_token, refresh_token=body.get("refresh_token") or refresh_token)

    def set_session(self, access_token: str, refresh_token: str) -> ProviderSession:
        response = self._call(
            "GET",
            "/auth/v1/user",
            headers={"apikey": self._anon_key, "Authorization": f"Bearer {access_token}"},
        )
        if response.status_code == 200:
            session = ProviderSession(access_token=access_token, refresh_token=refresh_token)
        elif response.status_code in (401, 403) and refresh_token:
            logger.info("Access token from redirect rejected; refreshing session")
            session = self._refresh(refresh_token)
        else:
            raise SessionError(f"Session rejected with status {response.status_code}")

        self._storage.set(SESSION_KEY, json.dumps(asdict(session)))
        return session

    def get_session(self) -> ProviderSession | None:
        raw = self._storage.get(SESSION_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable provider session")
            self._storage.remove(SESSION_KEY)
            return None
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            return None
        return ProviderSession(access_token=access_token, refresh_token=data.get("refresh_token"))
