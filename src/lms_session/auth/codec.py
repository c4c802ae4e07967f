"""Decoding of the bearer credential issued by the platform backend.

Pattern: Unverified Claims for UX Timing
-----------------------------------------
The backend signs a JWT (``header.payload.signature``) on login.  The client
cannot verify that signature: it does not hold the signing secret, and it has
no business holding it.  We therefore read the payload *without* verification
and use the claims for one thing only: scheduling the expiry warning and the
local logout.

This is not a security decision.  Every API call carries the credential and
is authorised server-side; a forged ``exp`` can at most keep a dead session's
banner on screen.  Nothing in this package may treat a decoded claim as proof
of identity.
"""

from __future__ import annotations

import json
from typing import Any

from jwt.utils import base64url_decode


class MalformedCredential(Exception):
    """Raised when a credential cannot be split, decoded, or parsed."""


def decode_credential(credential: str) -> dict[str, Any]:
    """Return the payload claims of *credential* without checking the signature.

    Only the middle segment is read.  The header and signature segments are
    opaque to the client and may hold anything.

    Raises ``MalformedCredential`` if the credential is not three
    dot-separated segments, the payload is not valid base64url, or it is not
    a JSON object.
    """
    if not isinstance(credential, str) or credential.count(".") != 2:
        raise MalformedCredential("Credential must have exactly three segments")
    payload = credential.split(".")[1]
    try:
        claims = json.loads(base64url_decode(payload))
    except ValueError as exc:
        # binascii.Error, UnicodeError and JSONDecodeError are all ValueErrors.
        raise MalformedCredential(f"Credential payload could not be decoded: {exc}") from exc
    if not isinstance(claims, dict):
        raise MalformedCredential("Credential payload is not a JSON object")
    return claims
