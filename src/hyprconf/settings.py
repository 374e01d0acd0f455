"""Engine settings loaded from YAML and the environment.

Search order for the settings file:
    $HYPRCONF_SETTINGS
    ./hyprconf.yaml
    ~/.config/hyprconf/settings.yaml

Environment overrides (applied last):
    HYPRCONF_CONFIG_PATH, HYPRCONF_DATA_DIR, HYPRCONF_HYPRCTL, HYPRCONF_NIX_USER

Example ``hyprconf.yaml``:

```yaml
hyprland_config_path: ~/.config/hypr/hyprland.conf
data_dir: ~/.hyprconf
hyprctl_binary: hyprctl
nix_user: alice
max_backups: 20
max_history: 50
push_to_channel: true
```
"""
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from .errors import SettingsError

logger = logging.getLogger(__name__)

ENV_OVERRIDES = {
    "HYPRCONF_CONFIG_PATH": "hyprland_config_path",
    "HYPRCONF_DATA_DIR": "data_dir",
    "HYPRCONF_HYPRCTL": "hyprctl_binary",
    "HYPRCONF_NIX_USER": "nix_user",
}

PATH_SETTINGS = ("hyprland_config_path", "data_dir")


def _default_config_path() -> Path:
    return Path.home() / ".config" / "hypr" / "hyprland.conf"


def _default_data_dir() -> Path:
    return Path.home() / ".hyprconf"


def _default_user() -> str:
    return os.environ.get("USER", "user")


@dataclass
class EngineSettings:
    """Every path and knob the engine needs."""
    hyprland_config_path: Path = field(default_factory=_default_config_path)
    data_dir: Path = field(default_factory=_default_data_dir)
    hyprctl_binary: str = "hyprctl"
    nix_user: str = field(default_factory=_default_user)
    max_backups: int = 50
    max_history: int = 50
    push_to_channel: bool = True

    def __post_init__(self) -> None:
        self.hyprland_config_path = Path(self.hyprland_config_path).expanduser()
        self.data_dir = Path(self.data_dir).expanduser()

    @staticmethod
    def find_settings_file() -> Optional[Path]:
        """First existing settings file on the search path, if any."""
        search_paths = []
        explicit = os.environ.get("HYPRCONF_SETTINGS")
        if explicit:
            search_paths.append(Path(explicit).expanduser())
        search_paths.extend([
            Path.cwd() / "hyprconf.yaml",
            Path.home() / ".config" / "hyprconf" / "settings.yaml",
        ])

        for path in search_paths:
            if path.exists():
                return path
        if explicit:
            raise SettingsError(f"HYPRCONF_SETTINGS points to a missing file: {explicit}")
        return None

    @classmethod
    def from_dict(cls, data: dict, source: str = "<dict>") -> "EngineSettings":
        """
        Build settings from a mapping, ignoring unknown keys.

        Raises:
            SettingsError: If a value has the wrong type
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown setting '{key}' in {source}")
                continue
            values[key] = value

        for key in ("max_backups", "max_history"):
            if key not in values:
                continue
            if isinstance(values[key], bool) or not isinstance(values[key], int):
                raise SettingsError(f"{source}: {key} must be an integer")
            if values[key] < 0:
                raise SettingsError(f"{source}: {key} must be non-negative")
        if "push_to_channel" in values and not isinstance(values["push_to_channel"], bool):
            raise SettingsError(f"{source}: push_to_channel must be true or false")
        for key in ("hyprctl_binary", "nix_user", *PATH_SETTINGS):
            if key in values and not isinstance(values[key], str):
                raise SettingsError(f"{source}: {key} must be a string")

        return cls(**values)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "EngineSettings":
        """
        Load settings from a file (or the search path) plus environment overrides.

        Args:
            path: Explicit settings file; searched for when omitted

        Raises:
            SettingsError: If the file is unreadable or malformed
        """
        path = Path(path) if path else cls.find_settings_file()
        data: dict = {}
        if path is not None:
            try:
                with open(path, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except OSError as e:
                raise SettingsError(f"Cannot read settings file {path}: {e}") from e
            except yaml.YAMLError as e:
                raise SettingsError(f"Malformed settings file {path}: {e}") from e
            if not isinstance(data, dict):
                raise SettingsError(f"Settings file {path} must contain a mapping")
            logger.info(f"Loaded settings from {path}")

        for env_name, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                data[key] = value

        return cls.from_dict(data, str(path) if path else "<defaults>")

    def to_dict(self) -> dict:
        return {
            "hyprland_config_path": str(self.hyprland_config_path),
            "data_dir": str(self.data_dir),
            "hyprctl_binary": self.hyprctl_binary,
            "nix_user": self.nix_user,
            "max_backups": self.max_backups,
            "max_history": self.max_history,
            "push_to_channel": self.push_to_channel,
        }
