from __future__ import annotations

from sqlalchemy.exc import OperationalError

from workhub.core import config as app_config
from workhub.dependencies.auth import get_bootstrap_service
from workhub.models.profile import Profile
from workhub.services.profile_store import ProfileStore
from workhub.services.session_bootstrap import SessionBootstrapService


USER_KEYS = {
    "id",
    "email",
    "isAdmin",
    "firstName",
    "lastName",
    "fullName",
    "bio",
    "phone",
    "jobTitle",
    "company",
    "location",
    "timezone",
    "website",
    "linkedin",
    "twitter",
    "github",
    "createdAt",
}


# ---------------------------------------------------------------------------
# POST /auth/token
# ---------------------------------------------------------------------------


def test_token_exchange_with_header(client, db_session):
    res = client.post("/auth/token", headers={"Authorization": "Bearer token-a"})

    assert res.status_code == 200
    body = res.json()
    assert body["accessToken"] == "token-a"
    assert set(body["user"]) == USER_KEYS
    assert body["user"]["id"] == "user-a"
    assert body["user"]["email"] == "test@example.com"
    assert body["user"]["fullName"] == "Test User"
    assert body["user"]["isAdmin"] is False
    assert db_session.query(Profile).count() == 1


def test_token_exchange_with_body(client):
    res = client.post("/auth/token", json={"access_token": "token-a"})

    assert res.status_code == 200
    assert res.json()["accessToken"] == "token-a"


def test_token_exchange_header_wins_over_body(client):
    res = client.post(
        "/auth/token",
        headers={"Authorization": "Bearer token-a"},
        json={"access_token": "bogus"},
    )

    assert res.status_code == 200
    assert res.json()["user"]["id"] == "user-a"


def test_token_exchange_is_idempotent(client, db_session):
    first = client.post("/auth/token", headers={"Authorization": "Bearer token-a"}).json()
    second = client.post("/auth/token", headers={"Authorization": "Bearer token-a"}).json()

    assert first == second
    assert db_session.query(Profile).count() == 1


def test_token_exchange_missing_token(client):
    res = client.post("/auth/token")

    assert res.status_code == 400
    assert res.json()["code"] == "MISSING_CREDENTIAL"
    assert res.json()["error"] == "Missing access token"


def test_token_exchange_invalid_token(client, db_session):
    res = client.post("/auth/token", headers={"Authorization": "Bearer nope"})

    assert res.status_code == 401
    assert res.json()["code"] == "INVALID_TOKEN"
    assert db_session.query(Profile).count() == 0


def test_token_exchange_admin_flag(client):
    app_config.settings.ADMIN_EMAILS = frozenset({"test@example.com"})

    res = client.post("/auth/token", headers={"Authorization": "Bearer token-a"})

    assert res.json()["user"]["isAdmin"] is True


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


def test_login_success(client):
    res = client.post("/auth/login", json={"email": "test@example.com", "password": "test_password_123"})

    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Login successful"
    assert body["token"] == "token-user-a"
    assert body["email"] == "test@example.com"
    assert body["firstName"] == "Test"
    assert body["lastName"] == "User"


def test_login_missing_password(client):
    res = client.post("/auth/login", json={"email": "test@example.com"})

    assert res.status_code == 400
    assert res.json()["error"] == "Email and password are required"


def test_login_wrong_password(client):
    res = client.post("/auth/login", json={"email": "test@example.com", "password": "nope"})

    assert res.status_code == 401
    assert res.json()["code"] == "INVALID_CREDENTIALS"
    assert res.headers.get("www-authenticate") == "Bearer"


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------


def test_register_with_session(client, db_session):
    res = client.post(
        "/auth/register",
        json={"email": "new@example.com", "password": "long_enough", "firstName": "Grace", "lastName": "Hopper"},
    )

    assert res.status_code == 201
    body = res.json()
    assert body["message"] == "Account created successfully"
    assert body["email"] == "new@example.com"
    assert body["token"]
    assert "requiresEmailVerification" not in body
    assert ProfileStore(db_session).get_by_id("new-user-1").first_name == "Grace"


def test_register_pending_verification(client, provider, db_session):
    provider.sign_up_session = False

    res = client.post("/auth/register", json={"email": "new@example.com", "password": "long_enough"})

    assert res.status_code == 201
    body = res.json()
    assert body["requiresEmailVerification"] is True
    assert body["message"] == "Account created. Please check your email to verify your account."
    assert "token" not in body
    assert db_session.query(Profile).count() == 0


def test_register_weak_password(client, provider):
    res = client.post("/auth/register", json={"email": "new@example.com", "password": "123"})

    assert res.status_code == 400
    assert res.json()["code"] == "WEAK_PASSWORD"
    assert res.json()["error"] == "Password must be at least 6 characters long"
    assert not provider.called("sign_up")


def test_register_respects_configured_min_length(client):
    app_config.settings.PASSWORD_MIN_LENGTH = 12

    res = client.post("/auth/register", json={"email": "new@example.com", "password": "only_eleven"})

    assert res.status_code == 400
    assert "12" in res.json()["error"]


# ---------------------------------------------------------------------------
# GET/PUT /auth/me
# ---------------------------------------------------------------------------


def test_me_requires_bearer(client):
    res = client.get("/auth/me")

    assert res.status_code == 401
    assert res.json()["error"] == "Authorization header with Bearer token required"


def test_me_returns_merged_view(client_for):
    with client_for("token-a") as c:
        res = c.get("/auth/me")

    assert res.status_code == 200
    assert res.json()["user"]["firstName"] == "Test"
    assert set(res.json()["user"]) == USER_KEYS


def test_update_me_partial(client_for, db_session):
    ProfileStore(db_session).upsert({"id": "user-a", "first_name": "Test", "bio": "old", "github": "ada"})

    with client_for("token-a") as c:
        res = c.put("/auth/me", json={"bio": "new bio", "jobTitle": "Engineer", "github": ""})

    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Profile updated successfully"
    assert body["user"]["bio"] == "new bio"
    assert body["user"]["jobTitle"] == "Engineer"
    assert body["user"]["github"] is None
    assert body["user"]["firstName"] == "Test"


def test_update_me_email_is_local(client_for):
    with client_for("token-a") as c:
        res = c.put("/auth/me", json={"email": "new-address@example.com"})
        me = c.get("/auth/me").json()

    assert res.json()["user"]["email"] == "new-address@example.com"
    assert me["user"]["email"] == "new-address@example.com"


def test_update_me_invalid_token(client_for):
    with client_for("bogus") as c:
        res = c.put("/auth/me", json={"bio": "x"})

    assert res.status_code == 401


def test_update_me_database_down_is_json_500(app, client_for, db_session, provider):
    class UnreadableStore(ProfileStore):
        def get_by_id(self, profile_id):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

    app.dependency_overrides[get_bootstrap_service] = lambda: SessionBootstrapService(
        provider, UnreadableStore(db_session)
    )

    with client_for("token-a") as c:
        res = c.put("/auth/me", json={"bio": "x"})

    assert res.status_code == 500
    assert res.headers["content-type"].startswith("application/json")
    assert res.json()["code"] == "PROFILE_WRITE_FAILURE"
    assert res.json()["error"] == "Failed to update profile"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
