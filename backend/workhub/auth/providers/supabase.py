"""Supabase (GoTrue) identity provider.

Talks to the GoTrue REST API with httpx:

- ``GET  /auth/v1/user``                      -> verify_token
- ``POST /auth/v1/token?grant_type=password`` -> sign_in
- ``POST /auth/v1/signup``                    -> sign_up

Profile names travel in ``user_metadata.first_name`` / ``last_name``.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

import httpx

from workhub.auth.errors import InvalidCredentials, InvalidToken, ProviderError, ProviderUnavailable
from workhub.auth.identity import ExternalIdentity
from workhub.auth.providers.base import IdentityProvider, SignInResult, SignUpResult
from workhub.core.config import settings

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _json_body(response: httpx.Response) -> dict[str, Any] | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _error_from_response(response: httpx.Response) -> ProviderError:
    body = _json_body(response) or {}

    # GoTrue has used several error shapes over time.
    message = (
        body.get("msg")
        or body.get("message")
        or body.get("error_description")
        or body.get("error")
        or response.text
        or f"Identity provider returned HTTP {response.status_code}"
    )
    code = body.get("error_code") or body.get("error") or str(response.status_code)
    return ProviderError(code=str(code), message=str(message), status=response.status_code)


def identity_from_user(user: Mapping[str, Any]) -> ExternalIdentity:
    metadata = user.get("user_metadata") or {}
    return ExternalIdentity(
        id=str(user["id"]),
        email=(user.get("email") or "").strip(),
        metadata_first_name=metadata.get("first_name"),
        metadata_last_name=metadata.get("last_name"),
        created_at=_parse_timestamp(user.get("created_at")),
        provider="supabase",
        raw_claims=dict(user),
    )


class SupabaseIdentityProvider(IdentityProvider):
    """Identity provider backed by a Supabase project's auth API."""

    def __init__(
        self,
        url: str | None = None,
        anon_key: str | None = None,
        *,
        client: httpx.Client | None = None,
        timeout: float | None = None,
    ) -> None:
        self._url = (url if url is not None else settings.SUPABASE_URL).rstrip("/")
        self._anon_key = anon_key if anon_key is not None else settings.SUPABASE_ANON_KEY
        if not self._url or not self._anon_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be configured")

        self._client = client or httpx.Client(
            base_url=self._url,
            timeout=timeout if timeout is not None else settings.SUPABASE_TIMEOUT_SECONDS,
        )

    @property
    def name(self) -> str:
        return "supabase"

    def _headers(self, bearer: str | None = None) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {bearer or self._anon_key}",
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Supabase %s %s failed: %s", method, path, exc)
            raise ProviderUnavailable() from exc

    def verify_token(self, token: str) -> ExternalIdentity:
        candidate = (token or "").strip()
        if not candidate:
            raise InvalidToken()

        response = self._request("GET", "/auth/v1/user", headers=self._headers(candidate))
        if response.status_code >= 500:
            logger.warning("Supabase token verification returned %s", response.status_code)
            raise ProviderUnavailable()
        if response.status_code != 200:
            raise InvalidToken()

        user = _json_body(response)
        if user is None or not user.get("id"):
            raise InvalidToken()
        return identity_from_user(user)

    def sign_in(self, email: str, password: str) -> SignInResult:
        response = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            headers=self._headers(),
            json={"email": email, "password": password},
        )
        if response.status_code >= 500:
            raise ProviderUnavailable()
        if response.status_code != 200:
            error = _error_from_response(response)
            logger.info("Supabase sign-in rejected: code=%s", error.code)
            raise InvalidCredentials(str(error))

        body = _json_body(response)
        if body is None:
            logger.warning("Supabase sign-in returned an unreadable body")
            raise InvalidCredentials()
        access_token = body.get("access_token")
        user = body.get("user")
        if not access_token or not isinstance(user, dict) or not user.get("id"):
            raise InvalidCredentials()
        return SignInResult(identity=identity_from_user(user), session_token=access_token)

    def sign_up(self, email: str, password: str, attrs: Mapping[str, str]) -> SignUpResult:
        response = self._request(
            "POST",
            "/auth/v1/signup",
            headers=self._headers(),
            json={"email": email, "password": password, "data": dict(attrs)},
        )
        if response.status_code not in (200, 201):
            raise _error_from_response(response)

        body = _json_body(response)
        if body is None:
            raise ProviderError(code="invalid_response", message="Failed to create user")

        # With email confirmation enabled GoTrue answers with the bare user object.
        if body.get("access_token"):
            user = body.get("user") or {}
            session_token = body["access_token"]
        else:
            user = body
            session_token = None

        if not isinstance(user, dict) or not user.get("id"):
            raise ProviderError(code="invalid_response", message="Failed to create user")
        return SignUpResult(identity=identity_from_user(user), session_token=session_token)
