"""Password login against the platform backend.

Pattern: Backend as Credential Issuer
--------------------------------------
The backend is the single source of truth for *who the user is*.  The client
posts an email and password to ``/api/users/login`` and receives a signed
credential plus the user's profile.  Everything after that (expiry warnings,
local logout) is derived from the credential by the session controller.

The authenticator only translates HTTP outcomes into a small error taxonomy.
It never retries: a failed login is reported to the caller, who decides
whether to ask the user again.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Optional, Protocol

import httpx

from lms_session.auth.codec import MalformedCredential
from lms_session.auth.expiry import expiry_instant
from lms_session.auth.session import User

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/users/login"

# Statuses that mean "the server understood you and said no".
_REJECTION_STATUSES = frozenset({400, 401, 403, 404})


class LoginError(Exception):
    """Base class for login failures surfaced to the caller."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidCredentials(LoginError):
    """The backend rejected the email/password pair."""


class NetworkFailure(LoginError):
    """The backend could not be reached or did not answer in time."""


class ServerError(LoginError):
    """The backend failed or answered with something we cannot use."""


@dataclasses.dataclass(frozen=True)
class LoginResult:
    """A successful login: the user's profile and their bearer credential."""

    user: User
    credential: str
    message: str = ""


class Authenticator(Protocol):
    async def authenticate(self, email: str, password: str) -> LoginResult: ...


class HttpAuthenticator:
    """Authenticates a user against the backend's login endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    async def authenticate(self, email: str, password: str) -> LoginResult:
        """Log *email* in and return a ``LoginResult``.

        Raises ``InvalidCredentials``, ``NetworkFailure`` or ``ServerError``.
        """
        url = f"{self._base_url}{LOGIN_PATH}"
        try:
            response = await self._post(url, {"email": email, "password": password})
        except httpx.TransportError as exc:
            logger.warning("Login request to %s failed: %s", url, exc)
            raise NetworkFailure(f"Could not reach the login service: {exc}") from exc

        body = self._json_body(response)

        if response.status_code in _REJECTION_STATUSES:
            raise InvalidCredentials(
                body.get("message") or "Invalid credentials",
                status_code=response.status_code,
            )
        if response.status_code >= 300:
            raise ServerError(
                f"Login service answered HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if not body.get("success"):
            raise InvalidCredentials(
                body.get("message") or "Login failed",
                status_code=response.status_code,
            )

        result = self._parse_result(body)
        logger.info("User %s authenticated (type=%s)", result.user.id, result.user.user_type)
        return result

    # -- private helpers -----------------------------------------------------

    async def _post(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, json=payload)

    @staticmethod
    def _json_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            if response.status_code >= 500 or response.is_success:
                raise ServerError(
                    f"Login service returned a non-JSON body (HTTP {response.status_code})",
                    status_code=response.status_code,
                )
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _parse_result(body: dict[str, Any]) -> LoginResult:
        credential = body.get("token")
        if not isinstance(credential, str) or not credential:
            raise ServerError("Login response carried no credential")
        try:
            expiry_instant(credential)
            user = User.from_dict(body.get("user"))
        except (MalformedCredential, ValueError) as exc:
            raise ServerError(f"Login response was malformed: {exc}") from exc
        return LoginResult(user=user, credential=credential, message=body.get("message", ""))
