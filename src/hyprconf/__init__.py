"""hyprconf - configuration engine for the Hyprland window manager.

Keeps three views of one configuration consistent:
- the live control channel (``hyprctl``)
- the hand-edited ``hyprland.conf``
- named profiles persisted as YAML snapshots

Usage:
    from hyprconf import ConfigEngine, EngineSettings

    engine = ConfigEngine(EngineSettings.load())
    document = await engine.load()
    result = await engine.set_field("general", "border_size", "3")
"""

__version__ = "0.4.0"

from .config_engine import ConfigEngine, EngineResult, ExportTarget
from .settings import EngineSettings

__all__ = [
    "__version__",
    "ConfigEngine",
    "EngineResult",
    "ExportTarget",
    "EngineSettings",
]
