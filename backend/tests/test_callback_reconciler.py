from __future__ import annotations

import json

import httpx

from workhub.client.api import ApiError, BackendUnreachable
from workhub.client.callback import (
    ERROR_MESSAGE,
    ERROR_REDIRECT_DELAY,
    SUCCESS_MESSAGE,
    SUCCESS_REDIRECT_DELAY,
    CallbackParams,
    CallbackReconciler,
    CallbackState,
    TokenSource,
)
from workhub.client.session import SESSION_KEY, ProviderSession, SessionError, SupabaseSessionStore
from workhub.client.storage import EMAIL_KEY, TOKEN_KEY, MemoryStorage


SIGNUP_URL = "http://localhost:8080/auth/callback#access_token=frag-token&refresh_token=refresh-1&type=signup"


class FakeApi:
    def __init__(self, valid: set[str] | None = None, error: ApiError | None = None) -> None:
        self.valid = valid or set()
        self.error = error
        self.exchanged: list[str] = []

    def exchange_token(self, access_token: str) -> dict:
        self.exchanged.append(access_token)
        if access_token in self.valid:
            return {"accessToken": access_token, "user": {"id": "u1", "email": "ada@example.com"}}
        raise self.error or ApiError("Invalid or expired token", status_code=401)


class FakeSessions:
    def __init__(self, active: str | None = None, installed: str | None = None, fail: bool = False) -> None:
        self.active = active
        self.installed = installed
        self.fail = fail
        self.set_calls: list[tuple[str, str]] = []

    def set_session(self, access_token: str, refresh_token: str) -> ProviderSession:
        self.set_calls.append((access_token, refresh_token))
        if self.fail:
            raise SessionError("rejected")
        self.active = self.installed or access_token
        return ProviderSession(access_token=self.active, refresh_token=refresh_token)

    def get_session(self) -> ProviderSession | None:
        return ProviderSession(access_token=self.active) if self.active else None


class FakeScheduler:
    def __init__(self) -> None:
        self.pending: list[tuple[float, object]] = []
        self.cancelled = False

    def schedule(self, delay, callback) -> None:
        self.pending.append((delay, callback))

    def cancel_all(self) -> None:
        self.cancelled = True
        self.pending.clear()

    def fire(self) -> None:
        for _, callback in list(self.pending):
            callback()


def _reconciler(api, sessions, storage=None):
    navigated: list[str] = []
    scheduler = FakeScheduler()
    reconciler = CallbackReconciler(
        api,
        sessions,
        storage if storage is not None else MemoryStorage(),
        navigated.append,
        scheduler=scheduler,
    )
    return reconciler, scheduler, navigated


# ---------------------------------------------------------------------------
# CallbackParams
# ---------------------------------------------------------------------------


def test_params_from_fragment_and_query():
    params = CallbackParams.from_url(SIGNUP_URL)

    assert params.access_token == "frag-token"
    assert params.refresh_token == "refresh-1"
    assert params.is_signup

    query_only = CallbackParams.from_url("http://localhost:8080/auth/callback?type=signup")
    assert query_only.is_signup
    assert query_only.access_token is None

    assert not CallbackParams.from_url("http://localhost:8080/auth/callback#access_token=x").is_signup


# ---------------------------------------------------------------------------
# Source ordering
# ---------------------------------------------------------------------------


def test_fragment_success_stops_immediately():
    api = FakeApi(valid={"frag-token"})
    sessions = FakeSessions()
    storage = MemoryStorage()
    reconciler, scheduler, navigated = _reconciler(api, sessions, storage)

    state = reconciler.run_url(SIGNUP_URL)

    assert state is CallbackState.SUCCESS
    assert reconciler.message == SUCCESS_MESSAGE
    assert reconciler.source is TokenSource.FRAGMENT
    assert reconciler.attempts == [TokenSource.FRAGMENT]
    assert api.exchanged == ["frag-token"]
    assert sessions.set_calls == []
    assert storage.get(TOKEN_KEY) == "frag-token"
    assert storage.get(EMAIL_KEY) == "ada@example.com"

    assert [delay for delay, _ in scheduler.pending] == [SUCCESS_REDIRECT_DELAY]
    scheduler.fire()
    assert navigated == ["/dashboard"]


def test_falls_back_to_installed_session():
    api = FakeApi(valid={"refreshed-token"})
    sessions = FakeSessions(installed="refreshed-token")
    reconciler, _, _ = _reconciler(api, sessions)

    state = reconciler.run_url(SIGNUP_URL)

    assert state is CallbackState.SUCCESS
    assert reconciler.source is TokenSource.INSTALLED_SESSION
    assert reconciler.attempts == [TokenSource.FRAGMENT, TokenSource.INSTALLED_SESSION]
    assert sessions.set_calls == [("frag-token", "refresh-1")]
    assert api.exchanged == ["frag-token", "refreshed-token"]


def test_falls_back_to_active_session():
    api = FakeApi(valid={"existing-token"})
    sessions = FakeSessions(active="existing-token", fail=True)
    reconciler, _, _ = _reconciler(api, sessions)

    state = reconciler.run_url(SIGNUP_URL)

    assert state is CallbackState.SUCCESS
    assert reconciler.source is TokenSource.ACTIVE_SESSION
    assert reconciler.attempts == [TokenSource.FRAGMENT, TokenSource.ACTIVE_SESSION]


def test_unreadable_refresh_falls_through_to_active_session():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/v1/user":
            return httpx.Response(401, json={"msg": "expired"})
        return httpx.Response(200, text="not json")

    storage = MemoryStorage({SESSION_KEY: json.dumps({"access_token": "existing-token"})})
    sessions = SupabaseSessionStore(
        "https://project.supabase.test",
        "anon",
        storage=storage,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    api = FakeApi(valid={"existing-token"})
    reconciler, _, _ = _reconciler(api, sessions, storage)

    state = reconciler.run_url(SIGNUP_URL)

    assert state is CallbackState.SUCCESS
    assert reconciler.source is TokenSource.ACTIVE_SESSION
    assert reconciler.attempts == [TokenSource.FRAGMENT, TokenSource.ACTIVE_SESSION]


def test_non_signup_callback_uses_active_session_only():
    api = FakeApi(valid={"existing-token"})
    sessions = FakeSessions(active="existing-token")
    reconciler, _, _ = _reconciler(api, sessions)

    state = reconciler.run_url("http://localhost:8080/auth/callback#access_token=frag-token")

    assert state is CallbackState.SUCCESS
    assert reconciler.attempts == [TokenSource.ACTIVE_SESSION]
    assert sessions.set_calls == []


# ---------------------------------------------------------------------------
# Failure
# ---------------------------------------------------------------------------


def test_no_tokens_anywhere_fails_with_signin_redirect():
    api = FakeApi()
    reconciler, scheduler, navigated = _reconciler(api, FakeSessions())

    state = reconciler.run_url("http://localhost:8080/auth/callback")

    assert state is CallbackState.ERROR
    assert reconciler.message == ERROR_MESSAGE
    assert reconciler.attempts == []
    assert api.exchanged == []
    assert [delay for delay, _ in scheduler.pending] == [ERROR_REDIRECT_DELAY]
    scheduler.fire()
    assert navigated == ["/signin"]


def test_every_source_rejected_fails():
    api = FakeApi()
    sessions = FakeSessions(installed="installed-token")
    storage = MemoryStorage()
    reconciler, _, _ = _reconciler(api, sessions, storage)

    state = reconciler.run_url(SIGNUP_URL)

    assert state is CallbackState.ERROR
    # The active session is the installed one; each source still gets its exchange.
    assert api.exchanged == ["frag-token", "installed-token", "installed-token"]
    assert reconciler.attempts == [
        TokenSource.FRAGMENT,
        TokenSource.INSTALLED_SESSION,
        TokenSource.ACTIVE_SESSION,
    ]
    assert storage.get(TOKEN_KEY) is None


def test_installed_session_retries_unchanged_token():
    class FlakyApi(FakeApi):
        def exchange_token(self, access_token: str) -> dict:
            if not self.exchanged:
                self.exchanged.append(access_token)
                raise ApiError("Bad Gateway", status_code=502)
            return super().exchange_token(access_token)

    api = FlakyApi(valid={"frag-token"})
    sessions = FakeSessions()
    reconciler, _, _ = _reconciler(api, sessions)

    state = reconciler.run_url(SIGNUP_URL)

    assert state is CallbackState.SUCCESS
    assert reconciler.source is TokenSource.INSTALLED_SESSION
    assert reconciler.attempts == [TokenSource.FRAGMENT, TokenSource.INSTALLED_SESSION]
    assert api.exchanged == ["frag-token", "frag-token"]
    assert sessions.set_calls == [("frag-token", "refresh-1")]


def test_backend_unreachable_message_is_shown():
    api = FakeApi(error=BackendUnreachable("Cannot connect to backend server. Is it running on http://api?"))
    reconciler, _, _ = _reconciler(api, FakeSessions(fail=True))

    state = reconciler.run_url(SIGNUP_URL)

    assert state is CallbackState.ERROR
    assert reconciler.message.startswith("Cannot connect to backend server")


def test_unexpected_exception_ends_in_error():
    class CrashingSessions(FakeSessions):
        def get_session(self):
            raise RuntimeError("storage corrupted")

    reconciler, scheduler, navigated = _reconciler(FakeApi(), CrashingSessions())

    state = reconciler.run_url("http://localhost:8080/auth/callback")

    assert state is CallbackState.ERROR
    assert reconciler.message == "storage corrupted"
    scheduler.fire()
    assert navigated == ["/signin"]


def test_run_is_terminal():
    api = FakeApi(valid={"frag-token"})
    reconciler, scheduler, _ = _reconciler(api, FakeSessions())

    reconciler.run_url(SIGNUP_URL)
    reconciler.run_url(SIGNUP_URL)

    assert api.exchanged == ["frag-token"]
    assert len(scheduler.pending) == 1


# ---------------------------------------------------------------------------
# Disposal
# ---------------------------------------------------------------------------


def test_dispose_cancels_pending_redirect():
    api = FakeApi(valid={"frag-token"})
    reconciler, scheduler, navigated = _reconciler(api, FakeSessions())
    reconciler.run_url(SIGNUP_URL)
    callbacks = [cb for _, cb in scheduler.pending]

    reconciler.dispose()

    assert scheduler.cancelled
    for callback in callbacks:
        callback()
    assert navigated == []


def test_result_after_dispose_is_discarded():
    storage = MemoryStorage()

    class SlowApi(FakeApi):
        def exchange_token(self, access_token: str) -> dict:
            reconciler.dispose()
            return super().exchange_token(access_token)

    api = SlowApi(valid={"frag-token"})
    reconciler, scheduler, navigated = _reconciler(api, FakeSessions(), storage)

    state = reconciler.run_url(SIGNUP_URL)

    assert state is CallbackState.LOADING
    assert storage.get(TOKEN_KEY) is None
    assert scheduler.pending == []
    assert navigated == []
