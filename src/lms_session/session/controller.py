"""The session lifecycle state machine.

Pattern: Single Writer, Timer-Driven Transitions
-------------------------------------------------
``SessionController`` is constructed once at startup and handed to every
consumer (CLI, route guard, API clients).  It is the only writer of the live
``Session``, the ``WarningState``, and the three timers in its ``TimerSet``.

States::

    UNAUTHENTICATED --login/initialize--> AUTHENTICATED
    AUTHENTICATED   --warning-start-----> WARNING(window)
    WARNING         --cancel_warning----> AUTHENTICATED
    any             --hard-logout / force_logout / logout--> UNAUTHENTICATED

Two rules keep the terminal transition single-shot:

  1. The hard-logout timer is the only thing that ends a session on time.
     The countdown is display-only; reaching zero stops the ticker and
     nothing else.
  2. ``cancel_all`` runs before every new set of timers is armed and at the
     start of every logout, so a timer from a previous session can never
     fire into the next one.  Any callback that still arrives late finds the
     state it expected gone and returns without doing anything.

Everything runs on one event loop thread, so no locks are needed.  The only
suspension point is the network call inside ``login``.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from lms_session.auth.authenticator import Authenticator, ServerError
from lms_session.auth.codec import MalformedCredential
from lms_session.auth.expiry import expiry_instant, is_expired, remaining_millis
from lms_session.auth.session import (
    Session,
    SessionEvent,
    SessionEventType,
    SessionState,
    User,
    WarningState,
)
from lms_session.scheduling.timers import TimerKey, TimerSet
from lms_session.storage.store import SessionStore

logger = logging.getLogger(__name__)

WARNING_WINDOW_SECONDS = 300
COUNTDOWN_INTERVAL_SECONDS = 1

SessionListener = Callable[[SessionEvent], None]


class NotAuthenticated(Exception):
    """Raised when an operation needs a live session and there is none."""


class SessionController:
    """Owns the current session and drives its time-based transitions."""

    def __init__(
        self,
        store: SessionStore,
        authenticator: Authenticator,
        timers: Optional[TimerSet] = None,
        clock: Callable[[], float] = time.time,
        warning_window_seconds: int = WARNING_WINDOW_SECONDS,
        countdown_interval_seconds: int = COUNTDOWN_INTERVAL_SECONDS,
    ) -> None:
        self._store = store
        self._authenticator = authenticator
        self._timers = timers or TimerSet()
        self._clock = clock
        self._warning_window_ms = warning_window_seconds * 1000
        self._countdown_interval_ms = countdown_interval_seconds * 1000

        self._session: Optional[Session] = None
        self._state = SessionState.UNAUTHENTICATED
        self._warning = WarningState.inactive()
        self._initialized = False
        self._listeners: list[SessionListener] = []

    # -- read-only surface ---------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None and not self._session.is_expired(self._now_ms())

    @property
    def current_user(self) -> Optional[User]:
        return self._session.user if self._session is not None else None

    @property
    def credential(self) -> Optional[str]:
        return self._session.credential if self._session is not None else None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def seconds_until_expiry(self) -> Optional[int]:
        if self._session is None:
            return None
        return max((self._session.expires_at_millis - self._now_ms()) // 1000, 0)

    @property
    def warning_state(self) -> WarningState:
        return self._warning

    @property
    def timers(self) -> TimerSet:
        return self._timers

    def has_required_role(self, role: str) -> bool:
        """Return ``True`` if an authenticated user of type *role* is signed in."""
        user = self.current_user
        return self.is_authenticated and user is not None and user.user_type == role

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register *listener* for session events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -- public operations ---------------------------------------------------

    def initialize(self) -> None:
        """Restore a persisted session, if any.  Runs once per controller."""
        if self._initialized:
            logger.debug("Session controller already initialised; ignoring")
            return
        self._initialized = True

        stored = self._store.load()
        if stored is None:
            logger.info("No persisted session")
            return

        now = self._now_ms()
        if is_expired(stored.credential, now):
            # Already dead (or unreadable) before we started: no warning, no dialog.
            logger.info("Persisted session for user %s has expired", stored.user.id)
            self._store.clear()
            return
        expires_at = now + remaining_millis(stored.credential, now)

        self._session = Session(
            user=stored.user,
            credential=stored.credential,
            expires_at_millis=expires_at,
        )
        self._state = SessionState.AUTHENTICATED
        self._warning = WarningState.inactive()
        logger.info("Restored session for user %s", stored.user.id)
        self._start(self._session, reason="restored")

    async def login(self, email: str, password: str) -> Session:
        """Authenticate and start a new session, replacing any current one.

        Raises ``LoginError`` (``InvalidCredentials``, ``NetworkFailure``,
        ``ServerError``) with the controller state left unchanged.
        """
        result = await self._authenticator.authenticate(email, password)

        try:
            expires_at = expiry_instant(result.credential)
        except MalformedCredential as exc:
            raise ServerError(f"Login returned an unreadable credential: {exc}") from exc

        self._timers.cancel_all()
        self._store.save(result.user, result.credential)
        self._session = Session(
            user=result.user,
            credential=result.credential,
            expires_at_millis=expires_at,
        )
        self._state = SessionState.AUTHENTICATED
        self._warning = WarningState.inactive()
        logger.info("User %s logged in", result.user.id)

        session = self._session
        self._start(session, reason="login")
        return session

    def cancel_warning(self) -> None:
        """Dismiss the expiry warning.  The hard-logout timer keeps running."""
        if self._state is not SessionState.WARNING:
            return
        self._timers.cancel(TimerKey.COUNTDOWN_TICK)
        self._warning = WarningState.inactive()
        self._state = SessionState.AUTHENTICATED
        logger.info("Expiry warning dismissed")
        self._emit("warning_cancelled")

    def force_logout(self) -> None:
        """End the session now, as if the hard-logout timer had fired early."""
        self.logout(reason="user")

    def logout(self, reason: str = "logout") -> None:
        """Tear the session down.  Safe to call any number of times."""
        if self._state is SessionState.UNAUTHENTICATED and self._session is None:
            return
        user = self.current_user
        self._timers.cancel_all()
        self._store.clear()
        self._session = None
        self._warning = WarningState.inactive()
        self._state = SessionState.UNAUTHENTICATED
        logger.info("User %s logged out (%s)", user.id if user else None, reason)
        self._emit("logout", user=user, reason=reason)

    def update_user(self, user: User) -> None:
        """Replace the signed-in user's profile without touching expiry."""
        if self._session is None:
            raise NotAuthenticated("Cannot update the user record without a live session")
        self._session = self._session.with_user(user)
        self._store.save_user(user)
        self._emit("user_changed")

    # -- scheduling ----------------------------------------------------------

    def _start(self, session: Session, reason: str) -> None:
        """Arm timers for a newly adopted *session*, then announce it.

        Listeners only hear about a session whose timers are already armed.
        A listener may end the session from inside a notification; later
        notifications for it are then dropped.
        """
        self._arm_schedules()
        if self._session is not session:
            return
        self._emit("login", reason=reason)
        if self._session is session and self._state is SessionState.WARNING:
            self._emit("warning_started")

    def _arm_schedules(self) -> None:
        if self._session is None:
            return
        remaining = self._session.expires_at_millis - self._now_ms()
        if remaining <= 0:
            logger.info("Session expired before timers could be armed")
            self.logout(reason="expired")
            return

        self._timers.schedule_once(TimerKey.HARD_LOGOUT, remaining, self._on_hard_logout)
        if remaining > self._warning_window_ms:
            self._timers.schedule_once(
                TimerKey.WARNING_START,
                remaining - self._warning_window_ms,
                self._on_warning_start,
            )
        else:
            self._enter_warning(remaining // 1000, announce=False)

    def _enter_warning(self, seconds: int, announce: bool = True) -> None:
        self._state = SessionState.WARNING
        self._warning = WarningState(active=True, seconds_remaining=seconds)
        if seconds > 0:
            self._timers.schedule_repeating(
                TimerKey.COUNTDOWN_TICK,
                self._countdown_interval_ms,
                self._on_countdown_tick,
            )
        logger.info("Session expires in %ds; warning shown", seconds)
        if announce:
            self._emit("warning_started")

    # -- timer callbacks -----------------------------------------------------

    def _on_warning_start(self) -> None:
        if self._state is not SessionState.AUTHENTICATED:
            return
        self._enter_warning(self._warning_window_ms // 1000)

    def _on_countdown_tick(self) -> None:
        if self._state is not SessionState.WARNING:
            return
        step = self._countdown_interval_ms // 1000
        seconds = max(self._warning.seconds_remaining - step, 0)
        self._warning = WarningState(active=True, seconds_remaining=seconds)
        if seconds == 0:
            # Display only: the hard-logout timer ends the session.
            self._timers.cancel(TimerKey.COUNTDOWN_TICK)
        self._emit("warning_tick")

    def _on_hard_logout(self) -> None:
        if self._state is SessionState.UNAUTHENTICATED:
            return
        self.logout(reason="expired")

    # -- private helpers -----------------------------------------------------

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _emit(
        self,
        event_type: SessionEventType,
        user: Optional[User] = None,
        reason: str = "",
    ) -> None:
        event = SessionEvent(
            type=event_type,
            state=self._state,
            user=user if user is not None else self.current_user,
            warning=self._warning,
            reason=reason,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener %r failed on %s", listener, event_type)
