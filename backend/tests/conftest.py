import os

# Settings are read at import time; keep tests off any local .env provider config.
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("IDENTITY_PROVIDER", "supabase")

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Mapping

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from workhub.auth.errors import InvalidCredentials, InvalidToken, ProviderError
from workhub.auth.identity import ExternalIdentity
from workhub.auth.providers.base import IdentityProvider, SignInResult, SignUpResult
from workhub.core import config as app_config
from workhub.core.base import Base

# Import models so they register with SQLAlchemy metadata.
from workhub.models.profile import Profile  # noqa: F401

from workhub.core.database import get_db
from workhub.dependencies.auth import get_provider


class FakeProvider(IdentityProvider):
    """
    In-memory identity provider.

    Tokens map to identities; passwords map email -> (password, identity).
    Every call is recorded so tests can assert the provider was (or was not) used.
    """

    def __init__(self) -> None:
        self.tokens: dict[str, ExternalIdentity] = {}
        self.accounts: dict[str, tuple[str, ExternalIdentity]] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.sign_up_error: ProviderError | None = None
        self.sign_up_session = True
        self._next_id = 1

    @property
    def name(self) -> str:
        return "fake"

    def issue_token(self, identity: ExternalIdentity, token: str | None = None) -> str:
        token = token or f"token-{identity.id}"
        self.tokens[token] = identity
        return token

    def add_account(self, identity: ExternalIdentity, password: str) -> None:
        self.accounts[identity.email] = (password, identity)

    def verify_token(self, token: str) -> ExternalIdentity:
        self.calls.append(("verify_token", (token,)))
        identity = self.tokens.get(token)
        if identity is None:
            raise InvalidToken()
        return identity

    def sign_in(self, email: str, password: str) -> SignInResult:
        self.calls.append(("sign_in", (email,)))
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise InvalidCredentials()
        identity = account[1]
        return SignInResult(identity=identity, session_token=self.issue_token(identity))

    def sign_up(self, email: str, password: str, attrs: Mapping[str, str]) -> SignUpResult:
        self.calls.append(("sign_up", (email, dict(attrs))))
        if self.sign_up_error is not None:
            raise self.sign_up_error

        identity = ExternalIdentity(
            id=f"new-user-{self._next_id}",
            email=email,
            metadata_first_name=attrs.get("first_name"),
            metadata_last_name=attrs.get("last_name"),
            provider="fake",
        )
        self._next_id += 1
        self.add_account(identity, password)
        if not self.sign_up_session:
            return SignUpResult(identity=identity)
        return SignUpResult(identity=identity, session_token=self.issue_token(identity))

    def called(self, method: str) -> bool:
        return any(name == method for name, _ in self.calls)


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(db_engine):
    # The in-memory DB persists across tests with StaticPool; reset schema per test.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests sometimes tweak global settings (app_config.settings.*). Restore them
    after each test to avoid cross-test coupling.
    """
    keys = [
        "ADMIN_EMAILS",
        "PASSWORD_MIN_LENGTH",
        "FRONTEND_BASE_URL",
        "IDENTITY_PROVIDER",
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "COGNITO_REGION",
        "COGNITO_USER_POOL_ID",
        "COGNITO_APP_CLIENT_ID",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)


@pytest.fixture()
def identity():
    return ExternalIdentity(
        id="user-a",
        email="test@example.com",
        metadata_first_name="Test",
        metadata_last_name="User",
        created_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        provider="fake",
    )


@pytest.fixture()
def provider(identity):
    fake = FakeProvider()
    fake.issue_token(identity, "token-a")
    fake.add_account(identity, "test_password_123")
    return fake


@pytest.fixture()
def app(db_session, provider):
    from workhub.main import app as fastapi_app

    def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_provider] = lambda: provider
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def client_for(app):
    """
    Context manager for a client whose requests carry a bearer token.

    Usage:
        with client_for("token-a") as c:
            ...
    """

    @contextmanager
    def _client_for(token: str):
        with TestClient(app, headers={"Authorization": f"Bearer {token}"}) as c:
            yield c

    return _client_for
