"""Shared fixtures for tests."""

from __future__ import annotations

import heapq
import itertools
import pathlib
from typing import Any, Callable

import jwt
import pytest

from lms_session.auth.authenticator import LoginError, LoginResult
from lms_session.auth.session import User
from lms_session.policy.engine import RoutePolicyEngine
from lms_session.scheduling.timers import TimerSet
from lms_session.session.controller import SessionController
from lms_session.storage.backends import MemoryStorage
from lms_session.storage.store import SessionStore

START_TIME = 1_700_000_000


def make_credential(exp: int, **claims: Any) -> str:
    """Sign a credential the way the backend does; the client never checks the key."""
    return jwt.encode({"id": 1, "email": "alice@example.com", "exp": exp, **claims}, "backend-secret", algorithm="HS256")


class _VirtualHandle:
    def __init__(self, when: float, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualLoop:
    """Deterministic stand-in for the event loop and the wall clock.

    ``call_later`` queues callbacks; nothing runs until ``advance`` moves the
    clock.  ``now`` is epoch seconds, so it doubles as the controller clock.
    """

    def __init__(self, start: float = START_TIME) -> None:
        self._now = float(start)
        self._queue: list[tuple[float, int, _VirtualHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _VirtualHandle:
        handle = _VirtualHandle(self._now + max(delay, 0), callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, when)
            handle.callback(*handle.args)
        self._now = target

    def run_ready(self) -> None:
        self.advance(0)

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)


class FakeAuthenticator:
    """Returns queued login outcomes in order."""

    def __init__(self) -> None:
        self.outcomes: list[LoginResult | LoginError] = []
        self.calls: list[tuple[str, str]] = []

    def succeed_with(self, credential: str, user: User | None = None) -> None:
        self.outcomes.append(LoginResult(user=user or make_user(), credential=credential))

    def fail_with(self, error: LoginError) -> None:
        self.outcomes.append(error)

    async def authenticate(self, email: str, password: str) -> LoginResult:
        self.calls.append((email, password))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, LoginError):
            raise outcome
        return outcome


def make_user(user_id: int = 1, user_type: str = "user", **fields: Any) -> User:
    return User(
        id=user_id,
        email=fields.pop("email", "alice@example.com"),
        first_name=fields.pop("first_name", "Alice"),
        last_name=fields.pop("last_name", "Example"),
        user_type=user_type,
        **fields,
    )


@pytest.fixture
def vloop() -> VirtualLoop:
    return VirtualLoop()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage) -> SessionStore:
    return SessionStore(storage)


@pytest.fixture
def authenticator() -> FakeAuthenticator:
    return FakeAuthenticator()


@pytest.fixture
def controller(
    store: SessionStore,
    authenticator: FakeAuthenticator,
    vloop: VirtualLoop,
) -> SessionController:
    return SessionController(
        store=store,
        authenticator=authenticator,
        timers=TimerSet(vloop),
        clock=vloop.now,
    )


@pytest.fixture
def policy_engine() -> RoutePolicyEngine:
    """Return a RoutePolicyEngine loaded from the real routes.yaml."""
    real_path = pathlib.Path(__file__).resolve().parents[1] / "policies" / "routes.yaml"
    return RoutePolicyEngine(policy_path=real_path)
