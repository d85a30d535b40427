# workhub/services/profile_store.py
"""
SQLAlchemy-backed profile store.

Responsibilities:
- Lookup of the profile row keyed by identity id
- Idempotent creation via dialect-native ``INSERT .. ON CONFLICT (id)``
- Partial updates of explicitly named columns

All writes commit immediately and raise ``ProfileWriteFailure`` on database
errors after rolling the session back.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from workhub.auth.errors import ProfileWriteFailure
from workhub.models.profile import Profile
from workhub.services.profile_merge import LocalProfile, WriteKind, WriteOp

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

_WRITABLE_COLUMNS = frozenset(c.name for c in Profile.__table__.columns) - {"id", "created_at"}


class ProfileStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_id(self, profile_id: str) -> Optional[LocalProfile]:
        row = self.db.get(Profile, profile_id)
        if row is None:
            return None
        return LocalProfile.from_row(row)

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _INSERT_BY_DIALECT[dialect]
        except KeyError:
            raise RuntimeError(f"Profile upserts are not supported on {dialect}") from None

    def _commit(self, action: str, profile_id: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Profile %s failed for id=%s: %s", action, profile_id, exc)
            raise ProfileWriteFailure() from exc

    def upsert(self, values: Mapping[str, Any], *, update_existing: bool = True) -> LocalProfile:
        """
        Create the row keyed by ``values["id"]``.

        When a row with that id already exists, either overwrite the given
        columns (``update_existing=True``) or leave it untouched. Concurrent
        callers converge on a single row either way.
        """
        profile_id = values.get("id")
        if not profile_id:
            raise ValueError("profile id is required")

        columns = {k: v for k, v in values.items() if k in _WRITABLE_COLUMNS}
        stmt = self._insert()(Profile).values(id=profile_id, **columns)
        if update_existing and columns:
            stmt = stmt.on_conflict_do_update(index_elements=["id"], set_=columns)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=["id"])

        try:
            self.db.execute(stmt)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Profile upsert failed for id=%s: %s", profile_id, exc)
            raise ProfileWriteFailure() from exc
        self._commit("upsert", profile_id)

        profile = self.get_by_id(profile_id)
        if profile is None:
            raise ProfileWriteFailure()
        return profile

    def update(self, profile_id: str, fields: Mapping[str, Any]) -> Optional[LocalProfile]:
        """Apply ``fields`` to an existing row. Returns None if the row does not exist."""
        row = self.db.get(Profile, profile_id)
        if row is None:
            return None

        for name, value in fields.items():
            if name in _WRITABLE_COLUMNS:
                setattr(row, name, value)
        self.db.add(row)
        self._commit("update", profile_id)
        self.db.refresh(row)
        return LocalProfile.from_row(row)

    def apply(self, write: WriteOp, profile_id: str) -> Optional[LocalProfile]:
        """Apply a merge-engine write. NOOP writes touch nothing and return None."""
        if write.kind is WriteKind.INSERT:
            return self.upsert(write.fields, update_existing=False)
        if write.kind is WriteKind.PATCH:
            return self.update(profile_id, write.fields)
        return None
