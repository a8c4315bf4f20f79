"""Persistent JSON config helpers.

Stores forest behavior settings (auto-collapse, child policy on close,
indent size, close-button hint) next to the persisted forest blob.
Loading is defensive: malformed or missing config falls back to defaults.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

from .types import CHILD_POLICIES, CHILD_POLICY_CLOSE, CHILD_POLICY_PROMOTE

APP_NAME = "tabforest"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH

MIN_INDENT_SIZE = 10
MAX_INDENT_SIZE = 50


@dataclass(frozen=True)
class ForestSettings:
    """Behavior switches read by sync, mutations, and text rendering."""

    auto_collapse: bool = False
    child_policy: str = CHILD_POLICY_PROMOTE
    indent_size: int = 20
    show_close_button: bool = True


def load_config(path: Path | None = None) -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    config_path = path if path is not None else CONFIG_PATH
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def write_config(data: dict[str, object], path: Path | None = None) -> None:
    """Persist config data as pretty-printed JSON, raising on failure."""
    config_path = path if path is not None else CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def save_config(data: dict[str, object], path: Path | None = None) -> None:
    """Persist config data, ignoring filesystem/serialization errors."""
    try:
        write_config(data, path)
    except Exception:
        pass


def _coerce_bool(value: object, default: bool) -> bool:
    """Accept explicit booleans only; anything else yields ``default``."""
    return value if isinstance(value, bool) else default


def _coerce_indent(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return ForestSettings.indent_size
    if value < MIN_INDENT_SIZE or value > MAX_INDENT_SIZE:
        return ForestSettings.indent_size
    return value


def _coerce_child_policy(data: dict[str, object]) -> str:
    """Read ``child_policy``, honoring the legacy ``collapse_on_close`` flag."""
    value = data.get("child_policy")
    if isinstance(value, str) and value in CHILD_POLICIES:
        return value
    legacy = data.get("collapse_on_close")
    if isinstance(legacy, bool):
        return CHILD_POLICY_PROMOTE if legacy else CHILD_POLICY_CLOSE
    return ForestSettings.child_policy


def settings_from_mapping(data: dict[str, object]) -> ForestSettings:
    """Build validated settings from a raw config mapping."""
    return ForestSettings(
        auto_collapse=_coerce_bool(data.get("auto_collapse"), ForestSettings.auto_collapse),
        child_policy=_coerce_child_policy(data),
        indent_size=_coerce_indent(data.get("indent_size")),
        show_close_button=_coerce_bool(data.get("show_close_button"), ForestSettings.show_close_button),
    )


def load_settings(path: Path | None = None) -> ForestSettings:
    """Load forest settings from the config file (defaults when absent)."""
    return settings_from_mapping(load_config(path))


def _merged_settings(settings: ForestSettings, path: Path | None) -> dict[str, object]:
    config = load_config(path)
    config.pop("collapse_on_close", None)
    config["auto_collapse"] = bool(settings.auto_collapse)
    config["child_policy"] = (
        settings.child_policy if settings.child_policy in CHILD_POLICIES else CHILD_POLICY_PROMOTE
    )
    config["indent_size"] = _coerce_indent(settings.indent_size)
    config["show_close_button"] = bool(settings.show_close_button)
    return config


def write_settings(settings: ForestSettings, path: Path | None = None) -> None:
    """Persist ``settings`` without touching other config keys, raising on failure."""
    write_config(_merged_settings(settings, path), path)


def save_settings(settings: ForestSettings, path: Path | None = None) -> None:
    """Persist ``settings`` without touching other config keys."""
    save_config(_merged_settings(settings, path), path)
