"""Persistence of the current session under two fixed storage keys.

The user record is stored as JSON under ``userData`` and the raw credential
under ``token``, matching what the web client keeps in ``localStorage``.  The
store never decides whether a session is still valid; that is the
controller's job.  It only guarantees that what it hands back is complete:
if either half is missing or the user blob cannot be parsed, both keys are
wiped and the caller sees no session at all.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import Optional

from lms_session.auth.session import User
from lms_session.storage.backends import KeyValueStorage

logger = logging.getLogger(__name__)

USER_KEY = "userData"
CREDENTIAL_KEY = "token"


class StorageCorruption(Exception):
    """Raised internally when persisted session data is incomplete or unparsable."""


@dataclasses.dataclass(frozen=True)
class StoredSession:
    user: User
    credential: str


class SessionStore:
    """The only component that reads or writes durable session state."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def load(self) -> Optional[StoredSession]:
        """Return the persisted session, or ``None`` if there is none.

        Incomplete or corrupt data is cleared before returning ``None``.
        """
        raw_user = self._storage.get(USER_KEY)
        credential = self._storage.get(CREDENTIAL_KEY)

        if raw_user is None and credential is None:
            return None

        try:
            return self._parse(raw_user, credential)
        except StorageCorruption as exc:
            logger.warning("Discarding persisted session: %s", exc)
            self.clear()
            return None

    def save(self, user: User, credential: str) -> None:
        self._storage.set(USER_KEY, json.dumps(user.to_dict()))
        self._storage.set(CREDENTIAL_KEY, credential)

    def save_user(self, user: User) -> None:
        self._storage.set(USER_KEY, json.dumps(user.to_dict()))

    def clear(self) -> None:
        self._storage.remove(USER_KEY)
        self._storage.remove(CREDENTIAL_KEY)

    # -- private helpers -----------------------------------------------------

    @staticmethod
    def _parse(raw_user: Optional[str], credential: Optional[str]) -> StoredSession:
        if not raw_user or not credential:
            raise StorageCorruption("user record or credential is missing")
        try:
            user = User.from_dict(json.loads(raw_user))
        except ValueError as exc:
            raise StorageCorruption(f"user record is unreadable: {exc}") from exc
        return StoredSession(user=user, credential=credential)
