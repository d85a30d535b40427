"""Base identity provider abstraction.

Identity providers verify tokens and credentials. Profile data beyond what the
provider reports (bio, company, social handles...) lives in the local
``profiles`` table and is reconciled by ``workhub.services.profile_merge``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping

from workhub.auth.identity import ExternalIdentity


@dataclass(frozen=True)
class SignInResult:
    identity: ExternalIdentity
    session_token: str


@dataclass(frozen=True)
class SignUpResult:
    """
    Outcome of a successful sign-up.

    ``session_token`` is None when the provider wants the email confirmed
    before granting a session; that is a success state, not an error.
    """

    identity: ExternalIdentity
    session_token: str | None = None

    @property
    def pending_verification(self) -> bool:
        return not self.session_token


class IdentityProvider(ABC):
    """Abstract base class for identity providers.

    Implementations must not retry: a failed call is classified and raised
    immediately.

    Raises (all methods):
        ProviderUnavailable: the provider could not be reached.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider (e.g. 'supabase', 'cognito')."""
        ...

    @abstractmethod
    def verify_token(self, token: str) -> ExternalIdentity:
        """Validate a bearer token. Raises InvalidToken on rejection."""
        ...

    @abstractmethod
    def sign_in(self, email: str, password: str) -> SignInResult:
        """Password sign-in. Raises InvalidCredentials on failure or missing session."""
        ...

    @abstractmethod
    def sign_up(self, email: str, password: str, attrs: Mapping[str, str]) -> SignUpResult:
        """Create an identity. Raises ProviderError with the provider's code on failure."""
        ...
