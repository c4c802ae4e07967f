"""Session value objects shared by the controller, the store, and the UI.

Pattern: Replace, Never Mutate
-------------------------------
A ``Session`` binds a user record to the credential it was issued with.  It
is a frozen value: a fresh login produces a new ``Session`` and a profile
edit produces a copy via ``with_user``.  The credential inside a session is
never swapped in place, so anything holding a reference to an old session
holds a consistent (if stale) snapshot.

``WarningState`` is the only piece of transient UI state the controller
exposes.  It is never persisted.
"""

from __future__ import annotations

import dataclasses
import enum
from typing import Any, Literal, Optional

UserType = Literal["admin", "sub_admin", "user"]

# Wire names used by the backend and by the persisted user blob.
_WIRE_FIELDS: list[tuple[str, str]] = [
    ("id", "id"),
    ("email", "email"),
    ("first_name", "firstName"),
    ("last_name", "lastName"),
    ("user_type", "userType"),
    ("organization", "organization"),
    ("sub_organization", "subOrganization"),
    ("asset", "asset"),
    ("sub_asset", "subAsset"),
]


@dataclasses.dataclass(frozen=True)
class User:
    """The authenticated user's profile as returned by the login endpoint.

    Only ``id`` is required by the session machinery.  Fields the backend
    sends that are not modelled here (e.g. ``normalUserDetails``) are kept in
    ``extra`` so that a save/load cycle does not lose them.
    """

    id: Any
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    user_type: Optional[str] = None
    organization: Optional[str] = None
    sub_organization: Optional[str] = None
    asset: Optional[str] = None
    sub_asset: Optional[str] = None
    extra: dict[str, Any] = dataclasses.field(default_factory=dict)

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.email or str(self.id)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        for attr, wire in _WIRE_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                data[wire] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        if not isinstance(data, dict):
            raise ValueError(f"User record must be an object, got {type(data).__name__}")
        if data.get("id") is None:
            raise ValueError("User record has no 'id'")
        known = {wire for _, wire in _WIRE_FIELDS}
        kwargs = {attr: data[wire] for attr, wire in _WIRE_FIELDS if wire in data}
        return cls(**kwargs, extra={k: v for k, v in data.items() if k not in known})


@dataclasses.dataclass(frozen=True, repr=False)
class Session:
    """A live authenticated identity.

    Attributes:
        user:              Profile of the signed-in user.
        credential:        Raw bearer credential sent with every API call.
        expires_at_millis: Decoded ``exp`` claim in epoch milliseconds.
    """

    user: User
    credential: str
    expires_at_millis: int

    def is_expired(self, now_millis: int) -> bool:
        return self.expires_at_millis <= now_millis

    def with_user(self, user: User) -> Session:
        return dataclasses.replace(self, user=user)

    def __str__(self) -> str:
        # The credential is a secret; keep it out of logs and tracebacks.
        return f"Session(user={self.user.id}, expires_at={self.expires_at_millis})"

    __repr__ = __str__


@dataclasses.dataclass(frozen=True)
class WarningState:
    """Expiry warning shown to the user.  Inactive means zero seconds."""

    active: bool = False
    seconds_remaining: int = 0

    def __post_init__(self) -> None:
        if not self.active and self.seconds_remaining != 0:
            raise ValueError("An inactive warning cannot have seconds remaining")
        if self.seconds_remaining < 0:
            raise ValueError("seconds_remaining cannot be negative")

    @classmethod
    def inactive(cls) -> WarningState:
        return cls()


class SessionState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    WARNING = "authenticated_warning"


SessionEventType = Literal[
    "login",
    "logout",
    "user_changed",
    "warning_started",
    "warning_tick",
    "warning_cancelled",
]


@dataclasses.dataclass(frozen=True)
class SessionEvent:
    """Notification delivered to controller subscribers after each transition."""

    type: SessionEventType
    state: SessionState
    user: Optional[User] = None
    warning: WarningState = dataclasses.field(default_factory=WarningState.inactive)
    reason: str = ""
