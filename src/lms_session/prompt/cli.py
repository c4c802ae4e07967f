"""Interactive terminal front-end for the session controller.

Pattern: Prompt Renderer
-------------------------
The CLI is the human-facing boundary.  It handles three responsibilities:

  1. **Login** — collect credentials and delegate to ``SessionController.login``.
  2. **Warning banner** — render the expiry countdown pushed by the controller
     and offer the two actions: stay signed in, or sign out now.
  3. **Navigation** — ask the ``RouteGuard`` whether a path may be opened.

Rich is used for display.  Input is read on a worker thread so the event
loop keeps running the session timers while the prompt waits.  The CLI knows
nothing about credentials or timers; it only reacts to session events.
"""

from __future__ import annotations

import asyncio
import getpass
import logging

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lms_session.auth.authenticator import HttpAuthenticator, LoginError
from lms_session.auth.session import SessionEvent, SessionState
from lms_session.policy.engine import RoutePolicyEngine
from lms_session.policy.guard import RouteGuard
from lms_session.scheduling.timers import TimerSet
from lms_session.session.controller import SessionController
from lms_session.settings import Settings
from lms_session.storage.backends import FileStorage
from lms_session.storage.store import SessionStore

logger = logging.getLogger(__name__)
console = Console()

HELP_TEXT = "Commands: status, whoami, open <path>, stay, logout, quit"


def _print_banner() -> None:
    console.print(
        Panel(
            "[bold]LMS Session[/bold]\n"
            "Signed-in session with expiry warnings",
            border_style="blue",
        )
    )


def _render_event(event: SessionEvent) -> None:
    """Print the parts of a session event a user needs to see."""
    if event.type == "warning_started":
        console.print(
            Panel(
                f"Your session expires in [bold]{_format_seconds(event.warning.seconds_remaining)}[/bold].\n"
                "Type [bold]stay[/bold] to keep working or [bold]logout[/bold] to sign out now.",
                title="Session expiring",
                border_style="yellow",
            )
        )
    elif event.type == "warning_tick":
        seconds = event.warning.seconds_remaining
        if seconds <= 10 or seconds % 60 == 0:
            console.print(f"[yellow]Session expires in {_format_seconds(seconds)}[/yellow]")
    elif event.type == "warning_cancelled":
        console.print("[green]Staying signed in.[/green]")
    elif event.type == "logout":
        if event.reason == "expired":
            console.print("\n[red]Your session has expired.[/red] Please sign in again.")
        else:
            console.print("[dim]Signed out.[/dim]")


def _format_seconds(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"


def _print_status(controller: SessionController) -> None:
    table = Table(title="Session")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="bold")

    user = controller.current_user
    table.add_row("State", controller.state.value)
    table.add_row("User", user.display_name if user else "-")
    table.add_row("User type", (user.user_type or "-") if user else "-")
    remaining = controller.seconds_until_expiry
    if remaining is not None:
        table.add_row("Expires in", _format_seconds(remaining))
    warning = controller.warning_state
    table.add_row("Warning", _format_seconds(warning.seconds_remaining) if warning.active else "off")
    console.print(table)


async def _read_line(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, prompt)


async def _login(controller: SessionController) -> bool:
    """Prompt for credentials until login succeeds; ``False`` if the user gives up."""
    console.print("\n[bold yellow]Login[/bold yellow]\n")
    while True:
        email = (await _read_line("  Email (blank to quit): ")).strip()
        if not email:
            return False
        password = await asyncio.get_running_loop().run_in_executor(
            None, getpass.getpass, "  Password: "
        )
        try:
            await controller.login(email, password)
        except LoginError as exc:
            console.print(f"[red]Login failed:[/red] {exc.message}")
            continue
        user = controller.current_user
        console.print(f"\n  [green]Signed in[/green] as [bold]{user.display_name}[/bold]\n")
        return True


async def _command_loop(controller: SessionController, guard: RouteGuard) -> None:
    console.print(f"[dim]{HELP_TEXT}[/dim]")
    console.print(f"  Landing page: [bold]{guard.landing_path()}[/bold]\n")

    while True:
        try:
            line = (await _read_line("> ")).strip()
        except (EOFError, KeyboardInterrupt):
            return

        if controller.state is SessionState.UNAUTHENTICATED:
            if not await _login(controller):
                return
            console.print(f"  Landing page: [bold]{guard.landing_path()}[/bold]\n")
            continue

        command, _, arg = line.partition(" ")
        command = command.lower()
        if not command:
            continue
        if command in ("quit", "exit"):
            return
        if command == "status":
            _print_status(controller)
        elif command == "whoami":
            user = controller.current_user
            console.print(f"{user.display_name} <{user.email}> ({user.user_type})" if user else "-")
        elif command == "open":
            decision = guard.check(arg.strip() or "/")
            if decision.allowed:
                console.print(f"[green]Opened[/green] {arg.strip() or '/'}")
            else:
                console.print(f"[red]Not allowed.[/red] Redirecting to {decision.redirect_to}")
        elif command == "stay":
            controller.cancel_warning()
        elif command == "logout":
            controller.force_logout()
            if not await _login(controller):
                return
        else:
            console.print(f"[dim]{HELP_TEXT}[/dim]")


async def run_cli(settings: Settings, policy_path: str | None = None) -> None:
    """Main entry point for the interactive CLI."""
    _print_banner()
    engine = RoutePolicyEngine(policy_path=policy_path)
    controller = SessionController(
        store=SessionStore(FileStorage(settings.storage_path)),
        authenticator=HttpAuthenticator(
            base_url=settings.backend_url,
            timeout=settings.backend_timeout_seconds,
        ),
        timers=TimerSet(asyncio.get_running_loop()),
        warning_window_seconds=settings.warning_window_seconds,
        countdown_interval_seconds=settings.countdown_interval_seconds,
    )
    controller.subscribe(_render_event)
    guard = RouteGuard(controller, engine)

    controller.initialize()
    try:
        if not controller.is_authenticated and not await _login(controller):
            return
        await _command_loop(controller, guard)
    finally:
        # Leave the persisted session in place; only stop our own timers.
        controller.timers.cancel_all()
    console.print("\n[dim]Session ended.[/dim]")
