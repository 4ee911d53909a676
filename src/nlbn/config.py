"""User configuration stored as nlbn.json in the KiCad config directory."""

import json
import logging
import os
import sys

from .kicad.version import DEFAULT_KICAD_VERSION

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = {
    "lib_name": "nlbn",
    "parallel": 4,
    "kicad_version": DEFAULT_KICAD_VERSION,
    # [[regex, pin type], ...] tried before the built-in power pin rules
    "pin_type_rules": [],
}


def _kicad_config_base() -> str:
    """Get the base KiCad config directory (without version)."""
    if sys.platform == "darwin":
        return os.path.expanduser("~/Library/Preferences/kicad")
    elif sys.platform == "win32":
        return os.path.join(os.environ.get("APPDATA", ""), "kicad")
    else:
        return os.path.expanduser("~/.config/kicad")


def _config_path() -> str:
    """Get path to the nlbn config file."""
    return os.path.join(_kicad_config_base(), "nlbn.json")


def load_config() -> dict:
    """Load config from nlbn.json, returning defaults for missing keys.

    Auto-creates the file if missing and backfills any new default keys
    into existing files.
    """
    config = dict(_DEFAULT_CONFIG)
    path = _config_path()
    needs_write = False
    if os.path.exists(path):
        try:
            with open(path, encoding="utf-8") as f:
                stored = json.load(f)
            if isinstance(stored, dict):
                for key in _DEFAULT_CONFIG:
                    if key not in stored:
                        needs_write = True
                config.update(stored)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            needs_write = True
    else:
        needs_write = True
    if needs_write:
        save_config(config)
    return config


def save_config(config: dict) -> None:
    """Save config to nlbn.json."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)
        f.write("\n")
