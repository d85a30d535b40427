# workhub/services/session_bootstrap.py
"""
Session bootstrap service.

Every client entry point (token exchange, password login, registration and
profile read/update) goes through here:

    provider (verify / sign in / sign up) -> merge engine -> profile store
                                          -> CanonicalUser

Profile writes on the login paths are best-effort: a failing store is logged
and the response is derived from the identity alone. Only an explicit
profile update surfaces store failures to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AbstractSet, Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from workhub.auth.errors import (
    MissingCredential,
    ProfileWriteFailure,
    ProviderConfigurationError,
    ProviderError,
    RegistrationRejected,
)
from workhub.auth.identity import ExternalIdentity, clean_name
from workhub.auth.providers.base import IdentityProvider
from workhub.core.password_policy import ensure_strong_password
from workhub.models.profile import EDITABLE_FIELDS
from workhub.services.profile_merge import LocalProfile, WriteKind, display_profile, merge
from workhub.services.profile_store import ProfileStore
from workhub.services.users import CanonicalUser, build_canonical_user

logger = logging.getLogger(__name__)

# Provider sign-up failures that point at a broken deployment rather than bad input.
CONFIGURATION_ERROR_CODES = frozenset({"unexpected_failure"})
CONFIGURATION_ERROR_MARKER = "Database error"
CONFIGURATION_REMEDIATION = (
    "This usually indicates a missing or broken database trigger on the identity "
    "provider's users table. Re-apply the profile trigger SQL in the provider's SQL editor."
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WriteReport:
    """Outcome of a best-effort profile write. Call sites may discard it."""

    kind: WriteKind
    profile: LocalProfile | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Reconciled:
    profile: LocalProfile
    report: WriteReport


@dataclass(frozen=True)
class TokenExchangeResult:
    session_token: str
    user: CanonicalUser


@dataclass(frozen=True)
class LoginResult:
    session_token: str
    email: str
    first_name: str | None
    last_name: str | None


@dataclass(frozen=True)
class RegisterResult:
    email: str
    session_token: str | None = None

    @property
    def requires_email_verification(self) -> bool:
        return not self.session_token


def is_configuration_failure(error: ProviderError) -> bool:
    return error.code in CONFIGURATION_ERROR_CODES or CONFIGURATION_ERROR_MARKER in str(error)


def clean_profile_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    """
    Keep only editable fields that are present in ``patch``.

    Presence decides whether a field is touched; an empty or blank string
    clears the field to None.
    """
    fields: dict[str, Any] = {}
    for name in EDITABLE_FIELDS:
        if name not in patch:
            continue
        value = patch[name]
        if isinstance(value, str):
            value = value.strip() or None
        fields[name] = value
    return fields


class SessionBootstrapService:
    def __init__(
        self,
        provider: IdentityProvider,
        store: ProfileStore,
        *,
        admin_emails: AbstractSet[str] = frozenset(),
        password_min_length: int | None = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.admin_emails = frozenset(email.strip().lower() for email in admin_emails)
        self.password_min_length = password_min_length

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _fetch_profile(self, identity: ExternalIdentity) -> Optional[LocalProfile]:
        try:
            return self.store.get_by_id(identity.id)
        except SQLAlchemyError as exc:
            logger.warning("Profile lookup failed for %s: %s", identity.to_debug_dict(), exc)
            return None

    def reconcile(self, identity: ExternalIdentity) -> Reconciled:
        """Merge ``identity`` with its stored profile and apply the write best-effort."""
        outcome = merge(identity, self._fetch_profile(identity))
        if outcome.write.kind is WriteKind.NOOP:
            return Reconciled(profile=outcome.result, report=WriteReport(kind=WriteKind.NOOP))

        try:
            stored = self.store.apply(outcome.write, identity.id)
        except (ProfileWriteFailure, SQLAlchemyError) as exc:
            logger.warning(
                "Best-effort profile %s failed for %s: %s",
                outcome.write.kind.value,
                identity.to_debug_dict(),
                exc,
            )
            return Reconciled(
                profile=outcome.result,
                report=WriteReport(kind=outcome.write.kind, error=exc),
            )

        profile = stored or outcome.result
        return Reconciled(profile=profile, report=WriteReport(kind=outcome.write.kind, profile=stored))

    def _canonical(self, identity: ExternalIdentity, profile: LocalProfile) -> CanonicalUser:
        return build_canonical_user(identity, profile, self.admin_emails)

    def _verify(self, bearer_token: str | None) -> ExternalIdentity:
        token = (bearer_token or "").strip()
        if not token:
            raise MissingCredential()
        return self.provider.verify_token(token)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def token_exchange(self, bearer_token: str | None) -> TokenExchangeResult:
        identity = self._verify(bearer_token)
        reconciled = self.reconcile(identity)
        return TokenExchangeResult(
            session_token=bearer_token.strip(),
            user=self._canonical(identity, reconciled.profile),
        )

    def login(self, email: str | None, password: str | None) -> LoginResult:
        if not email or not password:
            raise MissingCredential("Email and password are required")

        signed_in = self.provider.sign_in(email, password)
        identity = signed_in.identity
        profile = self.reconcile(identity).profile

        return LoginResult(
            session_token=signed_in.session_token,
            email=identity.email or email,
            first_name=profile.first_name or identity.first_name,
            last_name=profile.last_name or identity.last_name,
        )

    def register(
        self,
        email: str | None,
        password: str | None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> RegisterResult:
        if not email or not password:
            raise MissingCredential("Email and password are required")
        ensure_strong_password(password, min_length=self.password_min_length)

        try:
            signed_up = self.provider.sign_up(
                email,
                password,
                {"first_name": first_name or "", "last_name": last_name or ""},
            )
        except ProviderError as exc:
            logger.error("Provider sign-up failed: code=%s message=%s", exc.code, exc)
            if is_configuration_failure(exc):
                raise ProviderConfigurationError(
                    details=CONFIGURATION_REMEDIATION,
                    code=exc.code,
                ) from exc
            raise RegistrationRejected(str(exc) or None) from exc

        identity = signed_up.identity
        resolved_email = identity.email or email

        if signed_up.pending_verification:
            # No verified session yet: the profile is created on first token exchange.
            logger.info("Sign-up for id=%s awaits email verification", identity.id)
            return RegisterResult(email=resolved_email)

        values = {
            "id": identity.id,
            "email": resolved_email,
            "first_name": clean_name(first_name),
            "last_name": clean_name(last_name),
        }
        try:
            self.store.upsert(values, update_existing=True)
        except (ProfileWriteFailure, SQLAlchemyError) as exc:
            logger.warning("Failed to create profile for %s: %s", identity.to_debug_dict(), exc)

        return RegisterResult(email=resolved_email, session_token=signed_up.session_token)

    def get_profile(self, bearer_token: str | None) -> CanonicalUser:
        identity = self._verify(bearer_token)
        profile = display_profile(identity, self._fetch_profile(identity))
        return self._canonical(identity, profile)

    def update_profile(self, bearer_token: str | None, patch: Mapping[str, Any]) -> CanonicalUser:
        identity = self._verify(bearer_token)
        fields = clean_profile_patch(patch)

        try:
            existing = self.store.get_by_id(identity.id)
        except SQLAlchemyError as exc:
            self.store.db.rollback()
            logger.warning("Profile lookup failed before update for %s: %s", identity.to_debug_dict(), exc)
            raise ProfileWriteFailure() from exc

        if not fields:
            return self._canonical(identity, display_profile(identity, existing))

        fields["updated_at"] = _utc_now()
        profile = None
        if existing is not None:
            profile = self.store.update(identity.id, fields)
        if profile is None:
            # First edit before any token exchange created the row.
            values = {
                "id": identity.id,
                "email": identity.email or None,
                "first_name": identity.first_name,
                "last_name": identity.last_name,
            }
            values.update(fields)
            profile = self.store.upsert(values, update_existing=True)

        logger.info("Profile updated for id=%s fields=%s", identity.id, sorted(fields))
        return self._canonical(identity, profile)
