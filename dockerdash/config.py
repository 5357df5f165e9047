"""Configuration loading for dockerdash.

Loads preferences from a JSON config file with sensible defaults.
Search order: explicit --config path → ~/.config/dockerdash/config.json → defaults only.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "refreshInterval": 2000,  # ms
    "logTail": 100,
    "showAllContainers": True,
    "theme": "default",
}

CONFIG_DIR = Path.home() / ".config" / "dockerdash"
_DEFAULT_PATH = CONFIG_DIR / "config.json"


def _is_valid(key: str, value: Any) -> bool:
    """Check a recognised key's value against the type of its default."""
    default = DEFAULT_CONFIG[key]
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(default, int):
        # bool is an int subclass; reject it for numeric settings
        return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0
    return isinstance(value, type(default))


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base. Recognised keys with a bad type keep the default."""
    merged = dict(base)
    for key, value in overlay.items():
        if key in DEFAULT_CONFIG and not _is_valid(key, value):
            continue
        merged[key] = value
    return merged


def _read_json(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("top-level value must be a JSON object")
    return data


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user JSON over defaults.

    Args:
        path: Explicit config file path (from --config). If None, tries the
              default location ~/.config/dockerdash/config.json.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed.
    """
    if path is not None:
        if not path.is_file():
            print(f"dockerdash: config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            user_config = _read_json(path)
        except ValueError as e:
            print(f"dockerdash: invalid JSON in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e
        return _merge(DEFAULT_CONFIG, user_config)

    # Try default location silently
    if _DEFAULT_PATH.is_file():
        try:
            return _merge(DEFAULT_CONFIG, _read_json(_DEFAULT_PATH))
        except ValueError:
            print(
                f"dockerdash: warning: ignoring invalid JSON in {_DEFAULT_PATH}",
                file=sys.stderr,
            )

    return dict(DEFAULT_CONFIG)


def save_config(config: dict[str, Any], path: Path | None = None) -> Path:
    """Write the config as pretty-printed JSON, creating the directory if needed."""
    target = path or _DEFAULT_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(config, indent=2) + "\n", encoding="utf-8")
    return target


def get_config(key: str, path: Path | None = None) -> Any:
    return load_config(path).get(key)


def set_config(key: str, value: Any, path: Path | None = None) -> dict[str, Any]:
    """Persist a single key. Returns the config as it will be loaded next time."""
    if key in DEFAULT_CONFIG and not _is_valid(key, value):
        raise ValueError(
            f"invalid value for {key}: {value!r} "
            f"(expected {type(DEFAULT_CONFIG[key]).__name__})"
        )
    config = load_config(path) if path is None or path.is_file() else dict(DEFAULT_CONFIG)
    config[key] = value
    save_config(config, path)
    return config


def dump_default_config() -> str:
    """Return the default configuration as a JSON string."""
    return json.dumps(DEFAULT_CONFIG, indent=2) + "\n"
