"""Identity provider factory.

The provider is selected via the IDENTITY_PROVIDER setting:

    IDENTITY_PROVIDER=supabase  (default) - Supabase GoTrue REST API
    IDENTITY_PROVIDER=cognito   - Amazon Cognito user pool

Usage:
    from workhub.auth.providers import get_identity_provider

    provider = get_identity_provider()
    identity = provider.verify_token(token)
"""
from __future__ import annotations

from functools import lru_cache

from workhub.auth.providers.base import IdentityProvider, SignInResult, SignUpResult
from workhub.core.config import SUPPORTED_IDENTITY_PROVIDERS, settings


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    """Return the configured provider (cached; see clear_identity_provider_cache)."""
    provider_name = settings.IDENTITY_PROVIDER

    if provider_name == "supabase":
        from workhub.auth.providers.supabase import SupabaseIdentityProvider

        return SupabaseIdentityProvider()

    if provider_name == "cognito":
        from workhub.auth.providers.cognito import CognitoIdentityProvider

        return CognitoIdentityProvider()

    raise ValueError(
        f"Unknown IDENTITY_PROVIDER: {provider_name}. "
        f"Supported values: {', '.join(SUPPORTED_IDENTITY_PROVIDERS)}"
    )


def clear_identity_provider_cache() -> None:
    get_identity_provider.cache_clear()


__all__ = [
    "IdentityProvider",
    "SignInResult",
    "SignUpResult",
    "clear_identity_provider_cache",
    "get_identity_provider",
]
