"""Configuration for VetLab.

Settings live in .vetlab/config.json under the project directory:

    {
      "history": {"max_entries": 300},
      "infusion": {"default_drop_factor": 20},
      "display": {"dark_mode": false}
    }

Missing files or sections fall back to defaults.
"""

import json
import math
from dataclasses import dataclass
from pathlib import Path

VETLAB_DIR = ".vetlab"
CONFIG_FILE = "config.json"
STORAGE_FILE = "storage.json"

MAX_HISTORY_ENTRIES = 300
DEFAULT_DROP_FACTOR = 20.0

# Dotted keys accepted by save/set operations, with their value types
SETTABLE_KEYS = {
    "history.max_entries": int,
    "infusion.default_drop_factor": float,
    "display.dark_mode": bool,
}


@dataclass
class VetlabConfig:
    """VetLab configuration options."""

    max_history_entries: int = MAX_HISTORY_ENTRIES
    default_drop_factor: float = DEFAULT_DROP_FACTOR
    dark_mode: bool = False

    def to_dict(self) -> dict:
        """Convert to the nested config.json layout."""
        return {
            "history": {"max_entries": self.max_history_entries},
            "infusion": {"default_drop_factor": self.default_drop_factor},
            "display": {"dark_mode": self.dark_mode},
        }


def vetlab_dir(project_path: str) -> Path:
    """Directory holding VetLab state for a project."""
    return Path(project_path) / VETLAB_DIR


def storage_path(project_path: str) -> Path:
    """Path of the key-value storage file."""
    return vetlab_dir(project_path) / STORAGE_FILE


def load_config(project_path: str) -> VetlabConfig:
    """Load configuration from the project config file.

    Args:
        project_path: Path to project root.

    Returns:
        VetlabConfig with settings from config.json or defaults.
    """
    config_file = vetlab_dir(project_path) / CONFIG_FILE

    if config_file.exists():
        try:
            with open(config_file) as f:
                data = json.load(f)
            max_entries = int(data.get("history", {}).get("max_entries", MAX_HISTORY_ENTRIES))
            drop_factor = float(
                data.get("infusion", {}).get("default_drop_factor", DEFAULT_DROP_FACTOR)
            )
            if not math.isfinite(drop_factor) or drop_factor <= 0:
                drop_factor = DEFAULT_DROP_FACTOR
            return VetlabConfig(
                max_history_entries=max(1, min(max_entries, MAX_HISTORY_ENTRIES)),
                default_drop_factor=drop_factor,
                dark_mode=bool(data.get("display", {}).get("dark_mode", False)),
            )
        except (json.JSONDecodeError, IOError, AttributeError, TypeError, ValueError, OverflowError):
            pass

    return VetlabConfig()


def save_config(project_path: str, config: VetlabConfig) -> None:
    """Write configuration to the project config file."""
    config_file = vetlab_dir(project_path) / CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, "w") as f:
        json.dump(config.to_dict(), f, indent=2)


def parse_setting(key: str, value: str):
    """Convert a textual setting value to the key's type.

    Raises:
        KeyError: If the key is not settable.
        ValueError: If the value does not parse.
    """
    if key not in SETTABLE_KEYS:
        raise KeyError(key)

    kind = SETTABLE_KEYS[key]
    if kind is bool:
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Expected true/false, got {value}")

    parsed = kind(value)
    if kind is float and not math.isfinite(parsed):
        raise ValueError(f"{key} must be a finite number")
    if parsed <= 0:
        raise ValueError(f"{key} must be positive")
    if key == "history.max_entries" and parsed > MAX_HISTORY_ENTRIES:
        raise ValueError(f"{key} cannot exceed {MAX_HISTORY_ENTRIES}")
    return parsed


def apply_setting(config: VetlabConfig, key: str, value: str) -> VetlabConfig:
    """Return a config with one dotted key updated from text."""
    parsed = parse_setting(key, value)
    if key == "history.max_entries":
        config.max_history_entries = parsed
    elif key == "infusion.default_drop_factor":
        config.default_drop_factor = parsed
    elif key == "display.dark_mode":
        config.dark_mode = parsed
    return config
