# workhub/auth/cognito.py
"""
Cognito JWT verification.

Used by the Cognito identity provider to validate access tokens locally before
asking Cognito for the user's attributes. Responsibilities:
- Lazy JWKS fetching (no network calls on import)
- In-memory JWKS caching with configurable TTL
- Typed exceptions for verification failures
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any

import httpx
from jose import JWTError, jwk, jwt
from jose.exceptions import JOSEError

from workhub.core.config import settings


logger = logging.getLogger(__name__)

JWKS_FETCH_TIMEOUT = 10.0


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CognitoVerificationError(Exception):
    """Base exception for Cognito JWT verification failures."""


class CognitoNotConfiguredError(CognitoVerificationError):
    """Raised when Cognito settings are not configured."""


class CognitoJWKSFetchError(CognitoVerificationError):
    """Raised when JWKS cannot be fetched from Cognito."""


class CognitoTokenExpiredError(CognitoVerificationError):
    """Raised when the token has expired."""


class CognitoInvalidTokenError(CognitoVerificationError):
    """Raised for signature, issuer, audience and other claim failures."""


# ---------------------------------------------------------------------------
# JWKS Cache
# ---------------------------------------------------------------------------


class _JWKSCache:
    """Thread-safe in-memory cache for the user pool signing keys."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._keys: dict[str, Any] | None = None
        self._fetched_at: float = 0.0

    def get_signing_key(self, kid: str) -> Any:
        with self._lock:
            now = time.time()
            if self._keys is None or (now - self._fetched_at) > settings.COGNITO_JWKS_CACHE_SECONDS:
                self._refresh_keys()

            if kid not in self._keys:
                # Keys may have rotated since the last fetch.
                self._refresh_keys()

            if kid not in self._keys:
                raise CognitoInvalidTokenError(f"Signing key not found for kid: {kid}")

            return self._keys[kid]

    def _refresh_keys(self) -> None:
        jwks_url = settings.cognito_jwks_url
        if not jwks_url:
            raise CognitoNotConfiguredError("Cognito JWKS URL not configured")

        try:
            logger.info("Fetching Cognito JWKS from %s", jwks_url)
            response = httpx.get(jwks_url, timeout=JWKS_FETCH_TIMEOUT)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch Cognito JWKS: %s", e)
            raise CognitoJWKSFetchError(f"Failed to fetch JWKS: {e}") from e

        keys_list = data.get("keys", [])
        if not keys_list:
            raise CognitoJWKSFetchError("JWKS response contains no keys")

        keys: dict[str, Any] = {}
        for key_data in keys_list:
            kid = key_data.get("kid")
            if not kid:
                continue
            try:
                keys[kid] = jwk.construct(key_data)
            except JOSEError as e:
                logger.warning("Failed to construct key for kid=%s: %s", kid, e)

        self._keys = keys
        self._fetched_at = time.time()
        logger.info("Cached %d Cognito signing keys", len(keys))

    def clear(self) -> None:
        with self._lock:
            self._keys = None
            self._fetched_at = 0.0


_jwks_cache = _JWKSCache()


def clear_jwks_cache() -> None:
    """Clear the JWKS cache. Exposed for testing."""
    _jwks_cache.clear()


# ---------------------------------------------------------------------------
# Token Verification
# ---------------------------------------------------------------------------


def verify_cognito_access_token(token: str) -> dict[str, Any]:
    """
    Verify a Cognito access token and return its claims.

    Validates the RS256 signature against the pool JWKS, exp/iat/nbf, the
    issuer, ``token_use == "access"`` and the ``client_id`` claim.

    Raises:
        CognitoNotConfiguredError: Cognito settings not configured
        CognitoJWKSFetchError: signing keys could not be fetched
        CognitoTokenExpiredError: token has expired
        CognitoInvalidTokenError: any other validation failure
    """
    issuer = settings.cognito_issuer
    client_id = settings.COGNITO_APP_CLIENT_ID
    if not issuer or not client_id:
        raise CognitoNotConfiguredError(
            "Cognito not configured (COGNITO_REGION, COGNITO_USER_POOL_ID, COGNITO_APP_CLIENT_ID required)"
        )

    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise CognitoInvalidTokenError(f"Invalid token header: {e}") from e

    kid = unverified_header.get("kid")
    if not kid:
        raise CognitoInvalidTokenError("Token header missing 'kid' claim")

    signing_key = _jwks_cache.get_signing_key(kid)

    try:
        # Access tokens carry client_id instead of aud; checked below.
        claims = jwt.decode(
            token,
            signing_key,
            algorithms=["RS256"],
            issuer=issuer,
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError as e:
        raise CognitoTokenExpiredError("Token has expired") from e
    except JWTError as e:
        raise CognitoInvalidTokenError(f"Token validation failed: {e}") from e

    if claims.get("token_use") != "access":
        raise CognitoInvalidTokenError("Access token required")

    token_client_id = claims.get("client_id", "")
    if token_client_id != client_id:
        raise CognitoInvalidTokenError(f"Expected client_id {client_id}, got {token_client_id}")

    if not claims.get("sub"):
        raise CognitoInvalidTokenError("Token missing subject")

    return claims
