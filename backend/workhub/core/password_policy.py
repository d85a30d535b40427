from __future__ import annotations

from workhub.auth.errors import WeakPassword
from workhub.core.config import settings


def min_password_length() -> int:
    return max(int(getattr(settings, "PASSWORD_MIN_LENGTH", 6) or 0), 1)


def evaluate_password(password: str, *, min_length: int | None = None) -> list[str]:
    """
    Returns a list of violation codes if the password does not meet policy.

    The identity provider enforces its own rules on top of this; the local
    check only rejects passwords the provider would refuse anyway, without
    spending a provider round trip.
    """
    pw = password or ""
    limit = min_length if min_length is not None else min_password_length()
    violations: list[str] = []
    if len(pw) < limit:
        violations.append("min_length")
    return violations


def ensure_strong_password(password: str, *, min_length: int | None = None) -> None:
    limit = min_length if min_length is not None else min_password_length()
    violations = evaluate_password(password, min_length=limit)
    if violations:
        raise WeakPassword(
            f"Password must be at least {limit} characters long",
            details={"violations": violations},
        )
