"""Route permission engine that decides which user types may open which paths.

Pattern: Declarative Route Permissions
---------------------------------------
A YAML file (``policies/routes.yaml``) is the single declarative source for
*which user types may navigate where*.  It is loaded once at startup and
queried by the route guard on every navigation.

Why a file instead of checks scattered through the views?
Because the answer to "may a sub-admin see /admin/courses?" should be
auditable in one place and testable without rendering anything.  The backend
still enforces the same rules on its API; this table only decides where the
client sends the user.

The engine is stateless apart from the loaded document: it receives a path
and a user type and returns an answer.  No caching of decisions.
"""

from __future__ import annotations

import dataclasses
import pathlib
from typing import Any, Optional

import yaml


@dataclasses.dataclass(frozen=True)
class RoutePermission:
    """One entry of the route table.

    Attributes:
        path:               Route pattern; ``:name`` segments match anything.
        allowed_user_types: User types that may open the route.
        requires_auth:      Whether a signed-in session is needed at all.
        description:        Human-readable label.
    """

    path: str
    allowed_user_types: frozenset[str]
    requires_auth: bool
    description: str = ""

    def matches(self, path: str) -> bool:
        if ":" not in self.path:
            return self.path == path
        pattern = self.path.split("/")
        segments = path.split("/")
        if len(pattern) != len(segments):
            return False
        return all(p.startswith(":") or p == s for p, s in zip(pattern, segments))


class PolicyError(Exception):
    """Raised when the route policy file is missing or malformed."""


class RoutePolicyEngine:
    """Loads ``routes.yaml`` and answers route access questions."""

    def __init__(self, policy_path: str | pathlib.Path | None = None) -> None:
        if policy_path is None:
            policy_path = pathlib.Path(__file__).resolve().parents[3] / "policies" / "routes.yaml"
        self._policy_path = pathlib.Path(policy_path)
        self._data: dict[str, Any] = {}
        self._routes: list[RoutePermission] = []
        self.reload()

    def reload(self) -> None:
        """Re-read the policy file from disk."""
        self._data = self._load()
        self._routes = [self._parse_route(entry) for entry in self._data["routes"]]

    def resolve(self, path: str) -> Optional[RoutePermission]:
        """Return the first route entry matching *path*, or ``None``."""
        for route in self._routes:
            if route.matches(path):
                return route
        return None

    def has_route_access(self, path: str, user_type: Optional[str]) -> bool:
        """Return ``True`` if *user_type* may open *path*.  Unknown routes are denied."""
        if not user_type:
            return False
        route = self.resolve(path)
        return route is not None and user_type in route.allowed_user_types

    def accessible_routes(self, user_type: Optional[str]) -> list[RoutePermission]:
        if not user_type:
            return []
        return [r for r in self._routes if user_type in r.allowed_user_types]

    def dashboard_path(self, user_type: Optional[str]) -> str:
        """Landing page for *user_type*; the login page for anyone else."""
        dashboards: dict[str, str] = self._data.get("dashboards", {})
        if user_type and user_type in dashboards:
            return dashboards[user_type]
        return self.login_path

    def home_path(self, user_type: Optional[str]) -> str:
        if not user_type:
            return self._data.get("home_path", "/home")
        return self.dashboard_path(user_type)

    @property
    def login_path(self) -> str:
        return self._data.get("login_path", "/login")

    def is_public(self, path: str) -> bool:
        route = self.resolve(path)
        return route is not None and not route.requires_auth

    @staticmethod
    def is_admin_route(path: str) -> bool:
        return path.startswith("/admin/")

    @staticmethod
    def is_sub_admin_route(path: str) -> bool:
        return path.startswith("/sub-admin")

    def list_user_types(self) -> list[str]:
        """Return every user type that has a dashboard."""
        return list(self._data.get("dashboards", {}).keys())

    # -- private helpers -----------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if not self._policy_path.exists():
            raise PolicyError(f"Policy file not found: {self._policy_path}")
        with open(self._policy_path) as fh:
            data = yaml.safe_load(fh)
        if not isinstance(data, dict) or not isinstance(data.get("routes"), list):
            raise PolicyError("Policy file must contain a top-level 'routes' list")
        return data

    @staticmethod
    def _parse_route(entry: Any) -> RoutePermission:
        if not isinstance(entry, dict) or "path" not in entry:
            raise PolicyError(f"Route entry must be a mapping with a 'path': {entry!r}")
        return RoutePermission(
            path=entry["path"],
            allowed_user_types=frozenset(entry.get("allowed_user_types", [])),
            requires_auth=bool(entry.get("requires_auth", True)),
            description=entry.get("description", ""),
        )
