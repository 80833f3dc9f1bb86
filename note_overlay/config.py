"""Settings shared by the overlay and settings launchers."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from note_store.store import resolve_store_path

SETTINGS_FILE = "site_notes_settings.json"
STORE_ENV_VAR = "SITE_NOTES_STORE"
DEBUG_ENV_VAR = "SITE_NOTES_DEBUG"
LOG_RETENTION_MIN = 1
LOG_RETENTION_MAX = 20


@dataclass(frozen=True)
class NotesSettings:
    """Values read once at startup; every field tolerates missing or bad input."""

    store_path: Path
    log_retention: int = 5
    debug: bool = False
    write_attempts: int = 3
    retry_backoff_seconds: float = 0.25
    watch_interval_seconds: float = 1.0
    settings_debounce_ms: int = 750


def _env_flag(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None:
        return None
    token = value.strip().lower()
    if token in {"1", "true", "yes", "on"}:
        return True
    if token in {"0", "false", "no", "off"}:
        return False
    return None


def _int(value: Any, fallback: int, *, minimum: int, maximum: Optional[int] = None) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return fallback
    number = max(minimum, number)
    return min(number, maximum) if maximum is not None else number


def _float(value: Any, fallback: float, *, minimum: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return max(minimum, number)


def default_settings_path() -> Path:
    config_home = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return config_home / "site-notes" / SETTINGS_FILE


def load_settings(settings_path: Optional[Path] = None) -> NotesSettings:
    """Read ``site_notes_settings.json`` (if present) and apply env overrides."""
    path = settings_path if settings_path is not None else default_settings_path()
    data: Dict[str, Any] = {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (FileNotFoundError, OSError, json.JSONDecodeError):
        raw = {}
    if isinstance(raw, dict):
        data = raw

    defaults = NotesSettings(store_path=resolve_store_path())
    store_value = os.getenv(STORE_ENV_VAR) or data.get("store_path")
    store_path = Path(str(store_value)).expanduser() if store_value else defaults.store_path

    debug = _env_flag(DEBUG_ENV_VAR)
    if debug is None:
        debug = bool(data.get("debug", defaults.debug))

    return NotesSettings(
        store_path=store_path,
        log_retention=_int(
            data.get("log_retention"), defaults.log_retention, minimum=LOG_RETENTION_MIN, maximum=LOG_RETENTION_MAX
        ),
        debug=debug,
        write_attempts=_int(data.get("write_attempts"), defaults.write_attempts, minimum=1, maximum=10),
        retry_backoff_seconds=_float(data.get("retry_backoff_seconds"), defaults.retry_backoff_seconds, minimum=0.0),
        watch_interval_seconds=_float(
            data.get("watch_interval_seconds"), defaults.watch_interval_seconds, minimum=0.1
        ),
        settings_debounce_ms=_int(data.get("settings_debounce_ms"), defaults.settings_debounce_ms, minimum=0),
    )
