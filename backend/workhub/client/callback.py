"""
Email-confirmation callback reconciler.

After the identity provider redirects back from a confirmation link, the
client has to find a usable access token and trade it for a Workhub session.
Token sources are tried strictly in order, each only after the previous one
failed:

    1. FRAGMENT           access_token in the URL fragment of a signup redirect
    2. INSTALLED_SESSION  install fragment access+refresh tokens as the provider
                          session, then use the session's token
    3. ACTIVE_SESSION     a provider session the client already holds

States: LOADING -> SUCCESS | ERROR. Both outcomes schedule a redirect; timers
are cancelled by ``dispose()`` and results arriving after it are discarded.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from urllib.parse import parse_qs, urlsplit

from workhub.client.api import ApiError, BackendClient, BackendUnreachable
from workhub.client.session import ProviderSessionStore, SessionError
from workhub.client.storage import EMAIL_KEY, TOKEN_KEY, TokenStorage

logger = logging.getLogger(__name__)

SUCCESS_REDIRECT_DELAY = 2.0
ERROR_REDIRECT_DELAY = 3.0

LOADING_MESSAGE = "Verifying your email..."
SUCCESS_MESSAGE = "Email verified successfully! Redirecting..."
ERROR_MESSAGE = "Failed to verify email. Please try signing in."

SIGNUP_TYPE = "signup"


class CallbackState(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class TokenSource(str, Enum):
    FRAGMENT = "fragment"
    INSTALLED_SESSION = "installed_session"
    ACTIVE_SESSION = "active_session"


def _first(values: dict[str, list[str]], key: str) -> str | None:
    items = values.get(key) or []
    return items[0] if items and items[0] else None


@dataclass(frozen=True)
class CallbackParams:
    access_token: str | None = None
    refresh_token: str | None = None
    fragment_type: str | None = None
    query_type: str | None = None

    @classmethod
    def from_url(cls, url: str) -> CallbackParams:
        parts = urlsplit(url)
        fragment = parse_qs(parts.fragment)
        query = parse_qs(parts.query)
        return cls(
            access_token=_first(fragment, "access_token"),
            refresh_token=_first(fragment, "refresh_token"),
            fragment_type=_first(fragment, "type"),
            query_type=_first(query, "type"),
        )

    @property
    def is_signup(self) -> bool:
        return SIGNUP_TYPE in (self.fragment_type, self.query_type)


class TimerScheduler:
    """Runs callbacks after a delay on daemon threads; ``cancel_all`` stops pending ones."""

    def __init__(self) -> None:
        self._timers: list[threading.Timer] = []
        self._lock = threading.Lock()

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        with self._lock:
            self._timers.append(timer)
        timer.start()

    def cancel_all(self) -> None:
        with self._lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()


class CallbackReconciler:
    def __init__(
        self,
        api: BackendClient,
        sessions: ProviderSessionStore,
        storage: TokenStorage,
        navigate: Callable[[str], None],
        *,
        scheduler: Optional[TimerScheduler] = None,
        success_path: str = "/dashboard",
        signin_path: str = "/signin",
    ) -> None:
        self.api = api
        self.sessions = sessions
        self.storage = storage
        self.navigate = navigate
        self.scheduler = scheduler or TimerScheduler()
        self.success_path = success_path
        self.signin_path = signin_path

        self.state = CallbackState.LOADING
        self.message = LOADING_MESSAGE
        self.source: TokenSource | None = None
        self.attempts: list[TokenSource] = []
        self._disposed = False
        self._last_error: Exception | None = None

    # ------------------------------------------------------------------
    # Token sources
    # ------------------------------------------------------------------

    def _fragment_token(self, params: CallbackParams) -> str | None:
        if not params.is_signup:
            return None
        return params.access_token

    def _installed_session_token(self, params: CallbackParams) -> str | None:
        if not (params.is_signup and params.access_token and params.refresh_token):
            return None
        try:
            self.sessions.set_session(params.access_token, params.refresh_token)
        except SessionError as exc:
            logger.warning("Could not install provider session from redirect: %s", exc)
            return None
        session = self.sessions.get_session()
        return session.access_token if session else None

    def _active_session_token(self, params: CallbackParams) -> str | None:  # noqa: ARG002
        session = self.sessions.get_session()
        return session.access_token if session else None

    def _sources(self) -> list[tuple[TokenSource, Callable[[CallbackParams], str | None]]]:
        return [
            (TokenSource.FRAGMENT, self._fragment_token),
            (TokenSource.INSTALLED_SESSION, self._installed_session_token),
            (TokenSource.ACTIVE_SESSION, self._active_session_token),
        ]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _redirect_later(self, delay: float, path: str) -> None:
        def _go() -> None:
            if not self._disposed:
                self.navigate(path)

        self.scheduler.schedule(delay, _go)

    def _succeed(self, source: TokenSource, payload: dict) -> CallbackState:
        self.storage.set(TOKEN_KEY, payload["accessToken"])
        email = (payload.get("user") or {}).get("email")
        if email:
            self.storage.set(EMAIL_KEY, email)

        self.state = CallbackState.SUCCESS
        self.source = source
        self.message = SUCCESS_MESSAGE
        logger.info("Email confirmation completed via %s", source.value)
        self._redirect_later(SUCCESS_REDIRECT_DELAY, self.success_path)
        return self.state

    def _fail(self, message: str = ERROR_MESSAGE) -> CallbackState:
        self.state = CallbackState.ERROR
        self.message = message
        logger.info("Email confirmation failed after %d attempt(s)", len(self.attempts))
        self._redirect_later(ERROR_REDIRECT_DELAY, self.signin_path)
        return self.state

    def run(self, params: CallbackParams) -> CallbackState:
        """Drive the flow to a terminal state. Calling it again is a no-op."""
        if self.state is not CallbackState.LOADING or self._disposed:
            return self.state

        try:
            return self._run_sources(params)
        except Exception as exc:
            logger.exception("Email confirmation flow crashed")
            if self._disposed:
                return self.state
            return self._fail(str(exc) or ERROR_MESSAGE)

    def _run_sources(self, params: CallbackParams) -> CallbackState:
        for source, token_for in self._sources():
            token = token_for(params)
            if self._disposed:
                return self.state
            if not token:
                continue

            self.attempts.append(source)
            try:
                payload = self.api.exchange_token(token)
            except ApiError as exc:
                logger.warning("Token exchange via %s failed: %s", source.value, exc)
                self._last_error = exc
                continue

            if self._disposed:
                # The view went away while the request was in flight.
                return self.state
            if isinstance(payload, dict) and payload.get("accessToken"):
                return self._succeed(source, payload)

        if isinstance(self._last_error, BackendUnreachable):
            return self._fail(str(self._last_error))
        return self._fail()

    def run_url(self, url: str) -> CallbackState:
        return self.run(CallbackParams.from_url(url))

    def dispose(self) -> None:
        """Cancel pending redirects and ignore any result that arrives later."""
        self._disposed = True
        self.scheduler.cancel_all()
