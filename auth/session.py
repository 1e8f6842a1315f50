"""
auth/session.py -- Identity Session Manager.

Owns the application's view of "who is signed in". It holds exactly one
subscription on the identity provider client for as long as it is started,
turns provider users into read-only Session values, and pushes every change
to its dependents.

State machine:

    UNINITIALIZED --start()--> LOADING --first provider callback--> UNAUTHENTICATED
                                                              \\--> AUTHENTICATED(session)
    UNAUTHENTICATED --sign-in / restored session--> AUTHENTICATED
    AUTHENTICATED   --sign-out--> UNAUTHENTICATED
    AUTHENTICATED   --provider replaces user--> AUTHENTICATED (tolerated)
    any             --close()--> UNINITIALIZED

UNINITIALIZED is explicit: every operation raises SessionManagerNotStarted
until start() has run, so nothing can silently call a no-op. LOADING means
"not yet known" and must never be read as signed out.

The provider callback is authoritative. Sign-in / sign-out calls do not set
state themselves; they wait for the provider to report, so the last received
session always wins even when it contradicts a concurrent call.

Layer rule: no imports from resources/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

from auth.errors import SessionManagerNotStarted
from auth.identity import IdentityProviderClient
from auth.models import ProviderUser, Session, SessionState, SessionStatus

logger = logging.getLogger("vet1stop.auth.session")

StateListener = Callable[[SessionState], None]


def _to_session(user: ProviderUser) -> Session:
    return Session(
        uid=user.local_id,
        email=user.email,
        display_name=user.display_name,
        photo_url=user.photo_url,
    )


class SessionManager:
    """Session state holder and the single provider subscription.

    Usage:
        with SessionManager(identity_client) as manager:
            manager.subscribe(render_header)
            manager.sign_in("vet@example.com", "secret")
            print(manager.state.status)
    """

    def __init__(self, provider: IdentityProviderClient) -> None:
        self._provider = provider
        self._state = SessionState(SessionStatus.UNINITIALIZED)
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._state.session

    @property
    def loading(self) -> bool:
        return self._state.status == SessionStatus.LOADING

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a dependent. It is called now with the current state and on every change.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)
        self._deliver(listener, self._state)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        for listener in list(self._listeners):
            self._deliver(listener, state)

    @staticmethod
    def _deliver(listener: StateListener, state: SessionState) -> None:
        try:
            listener(state)
        except Exception:
            logger.exception("Session listener %r failed", listener)

    def _on_provider_change(self, user: Optional[ProviderUser]) -> None:
        if user is None:
            self._set_state(SessionState(SessionStatus.UNAUTHENTICATED))
            return
        if self._state.status == SessionStatus.AUTHENTICATED and self._state.session.uid != user.local_id:
            logger.info("Provider replaced session %s with %s", self._state.session.uid, user.local_id)
        self._set_state(SessionState(SessionStatus.AUTHENTICATED, _to_session(user)))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "SessionManager":
        """Subscribe to the provider. Idempotent while started."""
        if self._unsubscribe is not None:
            return self
        self._set_state(SessionState(SessionStatus.LOADING))
        try:
            self._unsubscribe = self._provider.on_session_changed(self._on_provider_change)
        except Exception:
            self._set_state(SessionState(SessionStatus.UNINITIALIZED))
            raise
        logger.debug("Session manager started (status=%s)", self._state.status.value)
        return self

    def close(self) -> None:
        """Tear down the provider subscription. Safe to call more than once."""
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None
        self._set_state(SessionState(SessionStatus.UNINITIALIZED))
        logger.debug("Session manager closed")

    def __enter__(self) -> "SessionManager":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _require_started(self) -> None:
        if self._unsubscribe is None:
            raise SessionManagerNotStarted("Session manager has not been started")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def sign_in(self, email: str, password: str) -> None:
        """Sign in with email and password. Raises InvalidCredentials or NetworkError."""
        self._require_started()
        self._provider.sign_in_with_password(email, password)

    def sign_up(self, email: str, password: str) -> None:
        """Create an account and sign in. Raises AccountExists, WeakPassword or NetworkError."""
        self._require_started()
        self._provider.create_account_with_password(email, password)

    def sign_in_with_federated_provider(self) -> None:
        """Run the interactive Google consent flow. Raises UserCancelled or NetworkError."""
        self._require_started()
        self._provider.sign_in_interactive_federated()

    def sign_out(self) -> None:
        """Sign out. Idempotent; the next observation is always "no session"."""
        self._require_started()
        self._provider.sign_out()
