"""The supported settings table.

Built once at import time and exposed read-only. Declaration order is the
serialization order within each section.
"""
from types import MappingProxyType
from typing import Optional

from .schema import FieldKind, FieldSpec, FieldValue, Section
from .values import validate

_K = FieldKind
_S = Section


def _spec(section, key, kind, default, description, **rules) -> FieldSpec:
    return FieldSpec(
        section=section,
        key=key,
        kind=kind,
        description=description,
        default=default,
        **rules,
    )


_FIELD_TABLE = [
    # general
    _spec(_S.GENERAL, "gaps_in", _K.SCALAR_LIST, "5 5 5 5",
          "Gaps between windows (top right bottom left)",
          length=4, broadcast=True, non_negative=True),
    _spec(_S.GENERAL, "gaps_out", _K.SCALAR_LIST, "20 20 20 20",
          "Gaps between windows and monitor edges (top right bottom left)",
          length=4, broadcast=True, non_negative=True),
    _spec(_S.GENERAL, "border_size", _K.INTEGER, "1",
          "Size of the window border", non_negative=True),
    _spec(_S.GENERAL, "col.active_border", _K.COLOR, "0xffffffff",
          "Border color of the active window"),
    _spec(_S.GENERAL, "col.inactive_border", _K.COLOR, "0xff444444",
          "Border color of inactive windows"),
    _spec(_S.GENERAL, "resize_on_border", _K.BOOLEAN, "false",
          "Resize windows by dragging their borders"),
    _spec(_S.GENERAL, "extend_border_grab_area", _K.INTEGER, "15",
          "Extra pixels around the border usable for resizing", non_negative=True),
    _spec(_S.GENERAL, "hover_icon_on_border", _K.BOOLEAN, "true",
          "Show a cursor icon when hovering over borders"),
    _spec(_S.GENERAL, "layout", _K.ENUM, "dwindle",
          "Tiling layout", options=("dwindle", "master")),
    # input
    _spec(_S.INPUT, "kb_layout", _K.TEXT, "us", "XKB keyboard layout"),
    _spec(_S.INPUT, "kb_variant", _K.TEXT, "", "XKB layout variant"),
    _spec(_S.INPUT, "kb_model", _K.TEXT, "", "XKB keyboard model"),
    _spec(_S.INPUT, "kb_options", _K.TEXT, "", "XKB options"),
    _spec(_S.INPUT, "kb_rules", _K.TEXT, "", "XKB rules"),
    _spec(_S.INPUT, "follow_mouse", _K.INTEGER, "1",
          "Focus behaviour when the cursor moves (0-3)", minimum=0, maximum=3),
    _spec(_S.INPUT, "mouse_refocus", _K.BOOLEAN, "true",
          "Refocus the window under the cursor when it moves"),
    _spec(_S.INPUT, "sensitivity", _K.FLOAT, "0",
          "Pointer sensitivity (-1.0 to 1.0)", minimum=-1.0, maximum=1.0),
    _spec(_S.INPUT, "accel_profile", _K.ENUM, "adaptive",
          "Pointer acceleration profile", options=("adaptive", "flat", "custom")),
    _spec(_S.INPUT, "natural_scroll", _K.BOOLEAN, "false",
          "Invert scrolling direction"),
    # decoration
    _spec(_S.DECORATION, "rounding", _K.INTEGER, "0",
          "Corner rounding radius", non_negative=True),
    _spec(_S.DECORATION, "active_opacity", _K.FLOAT, "1.0",
          "Opacity of the active window", minimum=0.0, maximum=1.0),
    _spec(_S.DECORATION, "inactive_opacity", _K.FLOAT, "1.0",
          "Opacity of inactive windows", minimum=0.0, maximum=1.0),
    _spec(_S.DECORATION, "blur:enabled", _K.BOOLEAN, "true",
          "Enable background blur"),
    _spec(_S.DECORATION, "blur:size", _K.INTEGER, "8",
          "Blur kernel size", minimum=1),
    _spec(_S.DECORATION, "blur:passes", _K.INTEGER, "1",
          "Number of blur passes", minimum=1),
    _spec(_S.DECORATION, "drop_shadow", _K.BOOLEAN, "true",
          "Draw shadows under windows"),
    _spec(_S.DECORATION, "shadow_range", _K.INTEGER, "4",
          "Shadow range in pixels", non_negative=True),
    _spec(_S.DECORATION, "shadow_render_power", _K.INTEGER, "3",
          "Shadow falloff power (1-4)", minimum=1, maximum=4),
    _spec(_S.DECORATION, "col.shadow", _K.COLOR, "0xee1a1a1a",
          "Shadow color"),
    _spec(_S.DECORATION, "dim_inactive", _K.BOOLEAN, "false",
          "Dim inactive windows"),
    _spec(_S.DECORATION, "dim_strength", _K.FLOAT, "0.5",
          "How much inactive windows are dimmed", minimum=0.0, maximum=1.0),
    # animations
    _spec(_S.ANIMATION, "enabled", _K.BOOLEAN, "true",
          "Enable animations"),
    _spec(_S.ANIMATION, "first_launch_animation", _K.BOOLEAN, "true",
          "Fade in on first launch"),
    # gestures
    _spec(_S.GESTURE, "workspace_swipe", _K.BOOLEAN, "false",
          "Switch workspaces with a touchpad swipe"),
    _spec(_S.GESTURE, "workspace_swipe_fingers", _K.INTEGER, "3",
          "Fingers used for the swipe", minimum=2, maximum=5),
    _spec(_S.GESTURE, "workspace_swipe_distance", _K.INTEGER, "300",
          "Swipe distance in pixels", non_negative=True),
    _spec(_S.GESTURE, "workspace_swipe_invert", _K.BOOLEAN, "true",
          "Invert swipe direction"),
    _spec(_S.GESTURE, "workspace_swipe_min_speed_to_force", _K.INTEGER, "30",
          "Minimum speed that forces a workspace change", non_negative=True),
    _spec(_S.GESTURE, "workspace_swipe_cancel_ratio", _K.FLOAT, "0.5",
          "Fraction of the distance below which the swipe is cancelled",
          minimum=0.0, maximum=1.0),
    _spec(_S.GESTURE, "workspace_swipe_create_new", _K.BOOLEAN, "true",
          "Swiping past the last workspace creates a new one"),
    _spec(_S.GESTURE, "workspace_swipe_forever", _K.BOOLEAN, "false",
          "Keep swiping past neighbouring workspaces"),
    # misc
    _spec(_S.MISC, "disable_hyprland_logo", _K.BOOLEAN, "false",
          "Hide the default wallpaper logo"),
    _spec(_S.MISC, "disable_splash_rendering", _K.BOOLEAN, "false",
          "Hide the splash text"),
    _spec(_S.MISC, "mouse_move_enables_dpms", _K.BOOLEAN, "false",
          "Wake monitors on mouse movement"),
    _spec(_S.MISC, "key_press_enables_dpms", _K.BOOLEAN, "false",
          "Wake monitors on key press"),
    _spec(_S.MISC, "always_follow_on_dnd", _K.BOOLEAN, "true",
          "Focus follows the dragged window"),
    _spec(_S.MISC, "layers_hog_keyboard_focus", _K.BOOLEAN, "true",
          "Keyboard-interactive layers keep focus"),
    _spec(_S.MISC, "animate_manual_resizes", _K.BOOLEAN, "false",
          "Animate manual window resizes"),
    _spec(_S.MISC, "animate_mouse_windowdragging", _K.BOOLEAN, "false",
          "Animate windows dragged with the mouse"),
    _spec(_S.MISC, "disable_autoreload", _K.BOOLEAN, "false",
          "Do not reload the config when the file changes"),
    _spec(_S.MISC, "enable_swallow", _K.BOOLEAN, "false",
          "Terminals swallow the windows they spawn"),
    _spec(_S.MISC, "swallow_regex", _K.TEXT, "",
          "Class regex of windows that can swallow"),
    _spec(_S.MISC, "background_color", _K.COLOR, "0xff111111",
          "Background color behind the wallpaper"),
]

FIELD_SPECS: "MappingProxyType[str, FieldSpec]" = MappingProxyType(
    {spec.path: spec for spec in _FIELD_TABLE}
)

DEFAULT_VALUES: "MappingProxyType[str, FieldValue]" = MappingProxyType(
    {spec.path: validate(spec, spec.default) for spec in _FIELD_TABLE}
)

_BY_SECTION: dict[Section, tuple[FieldSpec, ...]] = {
    section: tuple(spec for spec in _FIELD_TABLE if spec.section == section)
    for section in Section
}


def get_spec(section: "str | Section", key: str) -> Optional[FieldSpec]:
    """Descriptor for a section/key pair, None if the field is not supported."""
    try:
        section = Section.from_name(section)
    except KeyError:
        return None
    return FIELD_SPECS.get(f"{section.native}:{key}")


def spec_for_path(path: str) -> Optional[FieldSpec]:
    """Descriptor for a full option path such as ``general:border_size``."""
    return FIELD_SPECS.get(path)


def specs_in(section: "str | Section") -> tuple[FieldSpec, ...]:
    """Descriptors of a section in declaration order."""
    return _BY_SECTION[Section.from_name(section)]


def default_value(spec: FieldSpec) -> FieldValue:
    return DEFAULT_VALUES[spec.path]


def is_default(spec: FieldSpec, value: Optional[FieldValue]) -> bool:
    """True when a field is unset or holds its schema default."""
    return value is None or value == DEFAULT_VALUES[spec.path]
