# workhub/services/profile_merge.py
"""
Profile merge engine.

Reconciles an ExternalIdentity with the locally stored profile and computes
the smallest write that brings the row up to date:

- no row yet             -> INSERT built from the identity
- row with blank names   -> PATCH filling only the blank names from metadata
- otherwise              -> NOOP

A name that is already set is never replaced by provider metadata, and the
stored email is never touched here (only an explicit profile update changes it).
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from workhub.auth.identity import ExternalIdentity
from workhub.models.profile import PROFILE_ATTRIBUTES

MERGED_NAME_FIELDS = ("first_name", "last_name")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _is_blank(value: str | None) -> bool:
    return not (value or "").strip()


@dataclass(frozen=True)
class LocalProfile:
    """Detached snapshot of a ``profiles`` row."""

    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
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
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> LocalProfile:
        names = [f.name for f in dataclasses.fields(cls)]
        return cls(**{name: getattr(row, name, None) for name in names})

    def replace(self, **changes: Any) -> LocalProfile:
        return dataclasses.replace(self, **changes)

    def attributes(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in PROFILE_ATTRIBUTES}


class WriteKind(str, Enum):
    NOOP = "noop"
    INSERT = "insert"
    PATCH = "patch"


@dataclass(frozen=True)
class WriteOp:
    kind: WriteKind
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def noop(cls) -> WriteOp:
        return cls(kind=WriteKind.NOOP)


@dataclass(frozen=True)
class MergeOutcome:
    result: LocalProfile
    write: WriteOp


def merge(
    identity: ExternalIdentity,
    existing: LocalProfile | None,
    *,
    now: datetime | None = None,
) -> MergeOutcome:
    """Merge ``identity`` into ``existing`` and return the profile plus the write to apply."""
    if existing is None:
        created = LocalProfile(
            id=identity.id,
            email=identity.email or None,
            first_name=identity.first_name,
            last_name=identity.last_name,
        )
        values = {
            "id": created.id,
            "email": created.email,
            "first_name": created.first_name,
            "last_name": created.last_name,
        }
        return MergeOutcome(result=created, write=WriteOp(kind=WriteKind.INSERT, fields=values))

    metadata = {"first_name": identity.first_name, "last_name": identity.last_name}
    staged: dict[str, Any] = {}
    for name in MERGED_NAME_FIELDS:
        if _is_blank(getattr(existing, name)) and metadata[name]:
            staged[name] = metadata[name]

    if not staged:
        return MergeOutcome(result=existing, write=WriteOp.noop())

    staged["updated_at"] = now or _utc_now()
    return MergeOutcome(
        result=existing.replace(**staged),
        write=WriteOp(kind=WriteKind.PATCH, fields=staged),
    )


def display_profile(identity: ExternalIdentity, existing: LocalProfile | None) -> LocalProfile:
    """Read-only merged view: stored values first, identity metadata for the gaps."""
    return merge(identity, existing).result
