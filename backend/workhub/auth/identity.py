# workhub/auth/identity.py
"""
Provider-agnostic view of an authenticated identity.

An ExternalIdentity is rebuilt from the identity provider on every validated
request and is never persisted as-is. The local profile row (see
``workhub.models.profile``) is keyed by ``ExternalIdentity.id``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def clean_name(value: Any) -> str | None:
    """Return the trimmed value, or None when it is missing or blank."""
    if not isinstance(value, str):
        return None
    clean = value.strip()
    return clean or None


@dataclass(frozen=True)
class ExternalIdentity:
    """
    Identity as reported by the provider.

    Attributes:
        id: Stable provider-assigned subject. Immutable.
        email: Email the provider holds for the identity (may be empty).
        metadata_first_name: Provider-side metadata; only the provider changes it.
        metadata_last_name: Provider-side metadata; only the provider changes it.
        created_at: When the provider created the identity, if reported.
        provider: Name of the adapter that produced the identity.
        raw_claims: Provider payload for debugging. Not for authorization decisions.
    """

    id: str
    email: str = ""
    metadata_first_name: str | None = None
    metadata_last_name: str | None = None
    created_at: datetime | None = None
    provider: str = "unknown"
    raw_claims: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def first_name(self) -> str | None:
        return clean_name(self.metadata_first_name)

    @property
    def last_name(self) -> str | None:
        return clean_name(self.metadata_last_name)

    def to_debug_dict(self) -> dict[str, Any]:
        """
        Return a safe subset of identity info for logs.

        Does NOT include raw_claims to avoid leaking sensitive data.
        """
        return {
            "id": self.id,
            "email": self.email,
            "provider": self.provider,
        }
