# workhub/services/users.py
"""
Canonical user helpers.

Responsibilities:
- Deriving display names (full name with email local-part fallback)
- Admin allow-list checks
- Assembling the CanonicalUser payload every auth entry point returns
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import AbstractSet

from workhub.auth.identity import ExternalIdentity
from workhub.services.profile_merge import LocalProfile


def email_local_part(email: str | None) -> str:
    if not email:
        return ""
    return email.split("@", 1)[0]


def full_name(first_name: str | None, last_name: str | None, email: str | None) -> str:
    """``"First Last"`` when both names are set, otherwise the email local part."""
    first = (first_name or "").strip()
    last = (last_name or "").strip()
    if first and last:
        return f"{first} {last}".strip()
    return email_local_part(email)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def is_admin_email(email: str | None, admin_emails: AbstractSet[str]) -> bool:
    normalized = normalize_email(email)
    if not normalized:
        return False
    return normalized in admin_emails


@dataclass(frozen=True)
class CanonicalUser:
    id: str
    email: str
    is_admin: bool
    first_name: str | None
    last_name: str | None
    full_name: str
    bio: str | None = None
    phone: str | None = None
    job_title: str | None = None
    company: str | None = None
    location: str | None = None
    timezone: str | None = None
    website: str | None = None
    linkedin: str | None = None
    twitter: str | None = None
    github: str | None = None
    created_at: datetime | None = None


def build_canonical_user(
    identity: ExternalIdentity,
    profile: LocalProfile,
    admin_emails: AbstractSet[str],
) -> CanonicalUser:
    """
    Combine the verified identity with the (merged) local profile.

    Email comes from the profile when one is stored, so a locally edited
    address shows up in responses; otherwise the identity's email is used.
    Admin status only ever follows the provider-verified email.
    """
    email = profile.email or identity.email or ""
    return CanonicalUser(
        id=identity.id,
        email=email,
        is_admin=is_admin_email(identity.email, admin_emails),
        first_name=profile.first_name,
        last_name=profile.last_name,
        full_name=full_name(profile.first_name, profile.last_name, email),
        created_at=profile.created_at or identity.created_at,
        **profile.attributes(),
    )
