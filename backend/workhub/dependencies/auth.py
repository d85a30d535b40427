# workhub/dependencies/auth.py
from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from workhub.auth.errors import Unauthorized
from workhub.auth.providers import IdentityProvider, get_identity_provider
from workhub.core.config import settings
from workhub.core.database import get_db
from workhub.services.profile_store import ProfileStore
from workhub.services.session_bootstrap import SessionBootstrapService

bearer_scheme = HTTPBearer(auto_error=False)


def get_provider() -> IdentityProvider:
    return get_identity_provider()


def get_bootstrap_service(
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_provider),
) -> SessionBootstrapService:
    return SessionBootstrapService(
        provider,
        ProfileStore(db),
        admin_emails=settings.ADMIN_EMAILS,
        password_min_length=settings.PASSWORD_MIN_LENGTH,
    )


def get_bearer_token(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Token from ``Authorization: Bearer <token>``, or None when absent."""
    if not creds or creds.scheme.lower() != "bearer":
        return None
    token = creds.credentials.strip()
    return token or None


def require_bearer_token(token: str | None = Depends(get_bearer_token)) -> str:
    if not token:
        raise Unauthorized("Authorization header with Bearer token required")
    return token
