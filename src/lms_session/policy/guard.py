"""Navigation guard combining the live session with the route table.

The guard is what a view layer asks before showing a page.  It never raises
and never changes the session; it only answers "show it" or "send the user
here instead".
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional

from lms_session.policy.engine import RoutePolicyEngine
from lms_session.session.controller import SessionController

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    redirect_to: Optional[str] = None


class RouteGuard:
    """Decides whether the current user may open a path."""

    def __init__(self, controller: SessionController, engine: RoutePolicyEngine) -> None:
        self._controller = controller
        self._engine = engine

    def check(self, path: str, required_user_type: Optional[str] = None) -> GuardDecision:
        """Return whether *path* may be shown, and where to go if not.

        *required_user_type* narrows a route further, the way a view may
        demand one specific user type on top of the route table.
        """
        if required_user_type is None and self._engine.is_public(path):
            return GuardDecision(allowed=True)

        user = self._controller.current_user
        if not self._controller.is_authenticated or user is None:
            return GuardDecision(allowed=False, redirect_to=self._engine.login_path)

        permitted = self._engine.has_route_access(path, user.user_type)
        if required_user_type is not None:
            permitted = permitted and self._controller.has_required_role(required_user_type)

        if permitted:
            return GuardDecision(allowed=True)

        logger.info("User %s (%s) denied %s", user.id, user.user_type, path)
        return GuardDecision(
            allowed=False,
            redirect_to=self._engine.dashboard_path(user.user_type),
        )

    def landing_path(self) -> str:
        """Where to send the user after startup or login."""
        user = self._controller.current_user
        if self._controller.is_authenticated and user is not None:
            return self._engine.dashboard_path(user.user_type)
        return self._engine.login_path
