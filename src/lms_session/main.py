"""Command-line entry point: load settings, then hand over to the session prompt."""

from __future__ import annotations

import argparse
import asyncio
import logging

from lms_session.settings import DEFAULT_SETTINGS_PATH, load_settings


def main() -> None:
    parser = argparse.ArgumentParser(
        description="LMS Session: signed-in session with expiry warnings",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_SETTINGS_PATH),
        help="Path to settings.yaml",
    )
    parser.add_argument(
        "--policies",
        default=None,
        help="Path to routes.yaml (default: policies/routes.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    settings = load_settings(args.config)

    from lms_session.prompt.cli import run_cli

    asyncio.run(run_cli(settings, policy_path=args.policies))


if __name__ == "__main__":
    main()
