"""Live channel adapter for a running Hyprland session (hyprctl)."""
from .hyprctl import CommandResult, HyprCtl, OptionReading, OptionSnapshot, run_subprocess
from .replies import (
    decode_binds_reply,
    decode_list_reply,
    decode_modmask,
    decode_scalar_reply,
    read_scalar_reply,
    split_scalar_reply,
)

__all__ = [
    "HyprCtl",
    "CommandResult",
    "OptionReading",
    "OptionSnapshot",
    "run_subprocess",
    "decode_scalar_reply",
    "read_scalar_reply",
    "split_scalar_reply",
    "decode_list_reply",
    "decode_binds_reply",
    "decode_modmask",
]
