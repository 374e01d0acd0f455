"""Schema definitions for the Config Engine.

Defines the typed value model, the static field descriptors, the structured
entries (keybinds, rules, curves) and the ConfigDocument that holds them.
"""
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Iterator, Optional, Union


class FieldKind(str, Enum):
    """Value tag of a field. Fixed per FieldSpec."""
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    COLOR = "color"
    SCALAR_LIST = "scalar_list"
    TEXT = "text"
    ENUM = "enum"


class Section(str, Enum):
    """Top-level sections of a configuration document."""
    GENERAL = "general"
    INPUT = "input"
    DECORATION = "decoration"
    ANIMATION = "animation"
    GESTURE = "gesture"
    BIND = "bind"
    WINDOWRULE = "windowrule"
    LAYERRULE = "layerrule"
    MISC = "misc"

    @property
    def native(self) -> str:
        """Category name used in hyprland.conf and by hyprctl."""
        return _NATIVE_NAMES.get(self, self.value)

    @property
    def is_list(self) -> bool:
        """List sections hold structured entries instead of scalar fields."""
        return self in (Section.BIND, Section.WINDOWRULE, Section.LAYERRULE)

    @classmethod
    def from_name(cls, name: "str | Section") -> "Section":
        """Resolve a section from its own name or its native category name."""
        if isinstance(name, Section):
            return name
        lowered = name.strip().lower()
        for section in cls:
            if lowered in (section.value, section.native):
                return section
        raise KeyError(f"Unknown section: {name}")

    @classmethod
    def from_native(cls, name: str) -> Optional["Section"]:
        """Scalar section for a native category name, None if not managed."""
        for section in SCALAR_SECTIONS:
            if section.native == name:
                return section
        return None


_NATIVE_NAMES = {
    Section.ANIMATION: "animations",
    Section.GESTURE: "gestures",
}

SCALAR_SECTIONS = (
    Section.GENERAL,
    Section.INPUT,
    Section.DECORATION,
    Section.ANIMATION,
    Section.GESTURE,
    Section.MISC,
)


def format_number(value: float) -> str:
    """Canonical text for a number: integral values without a fraction."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


# --- Field values (closed tagged variant) ---

@dataclass(frozen=True)
class IntegerValue:
    value: int
    kind: ClassVar[FieldKind] = FieldKind.INTEGER

    def render(self) -> str:
        return str(self.value)

    def to_plain(self) -> int:
        return self.value


@dataclass(frozen=True)
class FloatValue:
    value: float
    kind: ClassVar[FieldKind] = FieldKind.FLOAT

    def render(self) -> str:
        return format_number(self.value)

    def to_plain(self) -> float:
        return self.value


@dataclass(frozen=True)
class BooleanValue:
    value: bool
    kind: ClassVar[FieldKind] = FieldKind.BOOLEAN

    def render(self) -> str:
        return "true" if self.value else "false"

    def to_plain(self) -> bool:
        return self.value


@dataclass(frozen=True)
class ColorValue:
    """One or more ARGB colors, optionally with a gradient angle in degrees."""
    colors: tuple[int, ...]
    angle: Optional[int] = None
    kind: ClassVar[FieldKind] = FieldKind.COLOR

    def render(self) -> str:
        parts = [f"0x{color:08x}" for color in self.colors]
        if self.angle is not None:
            parts.append(f"{self.angle}deg")
        return " ".join(parts)

    def to_plain(self) -> str:
        return self.render()


@dataclass(frozen=True)
class ScalarListValue:
    values: tuple[float, ...]
    kind: ClassVar[FieldKind] = FieldKind.SCALAR_LIST

    def render(self) -> str:
        return " ".join(format_number(v) for v in self.values)

    def to_plain(self) -> list:
        return list(self.values)


@dataclass(frozen=True)
class TextValue:
    value: str
    kind: ClassVar[FieldKind] = FieldKind.TEXT

    def render(self) -> str:
        return self.value

    def to_plain(self) -> str:
        return self.value


@dataclass(frozen=True)
class EnumValue:
    value: str
    kind: ClassVar[FieldKind] = FieldKind.ENUM

    def render(self) -> str:
        return self.value

    def to_plain(self) -> str:
        return self.value


FieldValue = Union[
    IntegerValue,
    FloatValue,
    BooleanValue,
    ColorValue,
    ScalarListValue,
    TextValue,
    EnumValue,
]


@dataclass(frozen=True)
class FieldSpec:
    """Static descriptor for one supported setting."""
    section: Section
    key: str
    kind: FieldKind
    description: str
    default: str
    non_negative: bool = False
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    length: int = 0              # scalar lists: exact token count
    broadcast: bool = False      # scalar lists: a single token fills every slot
    options: tuple[str, ...] = ()

    @property
    def path(self) -> str:
        """Option path as used by hyprctl, e.g. ``decoration:blur:enabled``."""
        return f"{self.section.native}:{self.key}"


# --- Structured entries ---

@dataclass
class KeybindEntry:
    """A key binding statement (``bind``, ``binde``, ``bindd`` ...)."""
    modifiers: tuple[str, ...]
    key: str
    dispatcher: str
    arg: str = ""
    label: Optional[str] = None
    bind_type: str = "bind"
    submap: str = ""

    @property
    def flags(self) -> str:
        return self.bind_type[len("bind"):]

    @property
    def identity(self) -> tuple:
        """Two binds with the same identity are duplicates."""
        return (
            frozenset(m.upper() for m in self.modifiers),
            self.key.casefold(),
            self.dispatcher,
            self.submap,
        )

    def render_value(self) -> str:
        fields = [" ".join(self.modifiers), self.key]
        if "d" in self.flags:
            fields.append(self.label or "")
        fields.append(self.dispatcher)
        return ", ".join(fields) + f", {self.arg}".rstrip()

    def render(self) -> str:
        return f"{self.bind_type} = {self.render_value()}"

    def display_string(self) -> str:
        mods = " + ".join(self.modifiers)
        prefix = f"{mods} + " if mods else ""
        suffix = f" [{self.arg}]" if self.arg else ""
        return f"{prefix}{self.key} → {self.dispatcher}{suffix}"


@dataclass
class RuleEntry:
    """Rule name + parameters applied to everything matching ``pattern``."""
    rule: str
    pattern: str
    params: str = ""
    keyword: ClassVar[str] = ""

    @property
    def identity(self) -> tuple:
        return (self.rule, self.pattern)

    @property
    def effect(self) -> str:
        return f"{self.rule} {self.params}" if self.params else self.rule

    def render_value(self) -> str:
        return f"{self.effect}, {self.pattern}"

    def render(self) -> str:
        return f"{self.syntax} = {self.render_value()}"

    @property
    def syntax(self) -> str:
        return self.keyword


@dataclass
class WindowRuleEntry(RuleEntry):
    version: int = 1
    keyword: ClassVar[str] = "windowrule"

    @property
    def syntax(self) -> str:
        return "windowrulev2" if self.version == 2 else "windowrule"


@dataclass
class LayerRuleEntry(RuleEntry):
    keyword: ClassVar[str] = "layerrule"


@dataclass(frozen=True)
class BezierCurve:
    """Named cubic bezier used by animation entries."""
    name: str
    points: tuple[float, float, float, float]

    def render_value(self) -> str:
        return ", ".join([self.name] + [format_number(p) for p in self.points])


@dataclass
class AnimationEntry:
    name: str
    enabled: bool = True
    speed: float = 0.0
    curve: str = ""
    style: str = ""

    def render_value(self) -> str:
        parts = [self.name, "1" if self.enabled else "0"]
        if self.speed or self.curve:
            parts.extend([format_number(self.speed), self.curve or "default"])
            if self.style:
                parts.append(self.style)
        return ", ".join(parts)


@dataclass
class UnrecognizedEntry:
    """A statement the schema does not model, kept verbatim.

    ``section`` is the native category ("" for top level); ``block`` tells
    repeated blocks of the same name apart (e.g. several ``device`` blocks).
    """
    section: str
    key: str
    value: str
    block: int = 0

    @property
    def group_key(self) -> tuple:
        """Serialization order: top level, then managed sections, then other blocks."""
        if not self.section:
            return (0, 0, "", 0)
        managed = Section.from_native(self.section)
        if managed is not None:
            return (1, SCALAR_SECTIONS.index(managed), "", 0)
        return (2, 0, self.section, self.block)


@dataclass
class DocumentLayout:
    """Comments and blank lines recorded while parsing, keyed by anchor."""
    leading: dict[str, list[str]] = field(default_factory=dict)
    inline: dict[str, str] = field(default_factory=dict)


# --- Document ---

def _empty_fields() -> dict[Section, dict[str, FieldValue]]:
    return {section: {} for section in SCALAR_SECTIONS}


@dataclass
class ConfigDocument:
    """One complete configuration state."""
    fields: dict[Section, dict[str, FieldValue]] = field(default_factory=_empty_fields)
    keybinds: list[KeybindEntry] = field(default_factory=list)
    window_rules: list[WindowRuleEntry] = field(default_factory=list)
    layer_rules: list[LayerRuleEntry] = field(default_factory=list)
    beziers: dict[str, BezierCurve] = field(default_factory=dict)
    animations: list[AnimationEntry] = field(default_factory=list)
    unrecognized: list[UnrecognizedEntry] = field(default_factory=list)
    layout: Optional[DocumentLayout] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        normalized = _empty_fields()
        for name, values in self.fields.items():
            section = Section.from_name(name)
            if section.is_list:
                raise KeyError(f"Section '{section.value}' holds entries, not fields")
            normalized[section] = dict(values)
        self.fields = normalized

    def get(self, section: "str | Section", key: str) -> Optional[FieldValue]:
        return self.fields[Section.from_name(section)].get(key)

    def put_field(
        self,
        section: "str | Section",
        key: str,
        value: FieldValue,
    ) -> Optional[FieldValue]:
        """Store an already-validated value, returning the previous one.

        Verbatim assignments of the same key (such as ``$variable`` values)
        are dropped; the typed value is the only one written back.
        Callers go through ConfigValidator.apply_field.
        """
        section = Section.from_name(section)
        values = self.fields[section]
        previous = values.get(key)
        values[key] = value
        self.drop_verbatim(section, key)
        return previous

    def verbatim_for(self, section: "str | Section", key: str) -> list[UnrecognizedEntry]:
        """Verbatim assignments of a known field."""
        native = Section.from_name(section).native
        return [e for e in self.unrecognized if e.section == native and e.key == key]

    def drop_verbatim(self, section: "str | Section", key: str) -> list[UnrecognizedEntry]:
        dropped = self.verbatim_for(section, key)
        if dropped:
            self.unrecognized = [e for e in self.unrecognized if e not in dropped]
        return dropped

    def remove_field(self, section: "str | Section", key: str) -> Optional[FieldValue]:
        return self.fields[Section.from_name(section)].pop(key, None)

    def iter_fields(self) -> Iterator[tuple[Section, str, FieldValue]]:
        for section in SCALAR_SECTIONS:
            for key, value in self.fields[section].items():
                yield section, key, value

    def entries(self, section: "str | Section") -> list:
        """Structured entry list for a list section."""
        section = Section.from_name(section)
        if section == Section.BIND:
            return self.keybinds
        if section == Section.WINDOWRULE:
            return self.window_rules
        if section == Section.LAYERRULE:
            return self.layer_rules
        raise KeyError(f"Section '{section.value}' holds fields, not entries")

    @property
    def field_count(self) -> int:
        return sum(len(values) for values in self.fields.values())

    def is_empty(self) -> bool:
        return (
            self.field_count == 0
            and not self.keybinds
            and not self.window_rules
            and not self.layer_rules
            and not self.beziers
            and not self.animations
            and not self.unrecognized
        )

    def copy(self) -> "ConfigDocument":
        """Deep copy, layout included."""
        return copy.deepcopy(self)


# --- Validation Results ---

@dataclass
class ValidationResult:
    """Result of whole-document validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
