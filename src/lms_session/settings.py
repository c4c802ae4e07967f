"""Runtime settings loaded from ``config/settings.yaml``."""

from __future__ import annotations

import dataclasses
import pathlib
from typing import Any

import yaml

DEFAULT_SETTINGS_PATH = pathlib.Path(__file__).resolve().parents[2] / "config" / "settings.yaml"


class SettingsError(Exception):
    """Raised when the settings file cannot be used."""


@dataclasses.dataclass(frozen=True)
class Settings:
    backend_url: str = "http://localhost:3000"
    backend_timeout_seconds: float = 10.0
    warning_window_seconds: int = 300
    countdown_interval_seconds: int = 1
    storage_path: str = "~/.lms-session/session.json"

    @classmethod
    def from_mapping(cls, config: dict[str, Any]) -> Settings:
        backend = config.get("backend") or {}
        session = config.get("session") or {}
        storage = config.get("storage") or {}
        try:
            return cls(
                backend_url=str(backend.get("url", cls.backend_url)),
                backend_timeout_seconds=float(backend.get("timeout_seconds", cls.backend_timeout_seconds)),
                warning_window_seconds=int(session.get("warning_window_seconds", cls.warning_window_seconds)),
                countdown_interval_seconds=int(
                    session.get("countdown_interval_seconds", cls.countdown_interval_seconds)
                ),
                storage_path=str(storage.get("path", cls.storage_path)),
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise SettingsError(f"Invalid settings: {exc}") from exc


def load_settings(path: str | pathlib.Path | None = None) -> Settings:
    """Read settings from *path*; a missing file yields the defaults."""
    settings_path = pathlib.Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    if not settings_path.exists():
        return Settings()
    with open(settings_path) as fh:
        config = yaml.safe_load(fh)
    if config is None:
        return Settings()
    if not isinstance(config, dict):
        raise SettingsError(f"Settings file {settings_path} must contain a mapping")
    settings = Settings.from_mapping(config)
    if settings.countdown_interval_seconds <= 0 or settings.warning_window_seconds < 0:
        raise SettingsError("Session timings must be positive")
    return settings
