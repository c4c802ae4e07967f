"""Expiry arithmetic on top of the credential codec.

All instants are integer milliseconds since the Unix epoch.  The functions
are pure: the caller supplies ``now`` so that tests can use a virtual clock.
"""

from __future__ import annotations

from lms_session.auth.codec import MalformedCredential, decode_credential


def expiry_instant(credential: str) -> int:
    """Return the absolute expiry of *credential* in epoch milliseconds.

    Raises ``MalformedCredential`` if the credential cannot be decoded or its
    ``exp`` claim is missing or not an integer.
    """
    claims = decode_credential(credential)
    exp = claims.get("exp")
    # bool is an int subclass; a boolean exp is still garbage.
    if isinstance(exp, bool) or not isinstance(exp, int):
        raise MalformedCredential(f"Credential has no integer 'exp' claim: {exp!r}")
    return exp * 1000


def is_expired(credential: str, now_millis: int) -> bool:
    """Return ``True`` if *credential* is expired at *now_millis*.

    An undecodable credential counts as expired (fail closed).
    """
    try:
        return expiry_instant(credential) <= now_millis
    except MalformedCredential:
        return True


def remaining_millis(credential: str, now_millis: int) -> int:
    """Milliseconds left before *credential* expires; zero or negative once dead."""
    return expiry_instant(credential) - now_millis
