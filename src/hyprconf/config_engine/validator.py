"""Validate-then-apply gatekeeper.

Every value that enters a ConfigDocument, whether it comes from the config
file, the live channel, a profile or the user, goes through ConfigValidator.
It is also the only place that words error messages.
"""
import logging
import re
from typing import Any, Optional

from ..errors import ValidationError
from .fields import get_spec, specs_in
from .schema import (
    AnimationEntry,
    BezierCurve,
    ConfigDocument,
    FieldSpec,
    FieldValue,
    KeybindEntry,
    LayerRuleEntry,
    SCALAR_SECTIONS,
    Section,
    ValidationResult,
    WindowRuleEntry,
)
from .values import parse_boolean, parse_float, validate

logger = logging.getLogger(__name__)


BIND_KEYWORD = re.compile(r"^bind([lroenmtisdpcgu]*)$")
WINDOWRULE_KEYWORDS = ("windowrule", "windowrulev2")
LAYERRULE_KEYWORD = "layerrule"

# Modifier names understood by the compositor, possibly run together (SUPERSHIFT)
MODIFIER_PATTERN = re.compile(
    r"^(SHIFT|CAPS|CTRL|CONTROL|ALT|MOD2|MOD3|SUPER|WIN|LOGO|MOD4|MOD5)+$"
)
MODIFIER_SPLIT = re.compile(r"[\s+]+")

RESERVED_CURVES = ("", "default")


def is_bind_keyword(keyword: str) -> bool:
    return BIND_KEYWORD.match(keyword) is not None


def split_modifiers(text: str) -> tuple[str, ...]:
    """``SUPER SHIFT``, ``SUPER_SHIFT`` and ``SUPER+SHIFT`` all name two modifiers."""
    modifiers: list[str] = []
    for token in MODIFIER_SPLIT.split(text.strip()):
        if token.startswith("$"):
            modifiers.append(token)
        else:
            modifiers.extend(part for part in token.split("_") if part)
    return tuple(modifiers)


class ConfigValidator:
    """Single gatekeeper for every mutation of a ConfigDocument."""

    # === Scalar fields ===

    def spec_for(self, section: "str | Section", key: str) -> FieldSpec:
        """
        Look up a supported field.

        Raises:
            ValidationError: If the section or key is not supported
        """
        try:
            resolved = Section.from_name(section)
        except KeyError:
            raise ValidationError(f"{section}:{key}", f"unknown section '{section}'")
        if resolved.is_list:
            raise ValidationError(
                f"{resolved.native}:{key}",
                f"section '{resolved.value}' holds entries, not fields",
            )
        spec = get_spec(resolved, key)
        if spec is None:
            raise ValidationError(f"{resolved.native}:{key}", "unknown field")
        return spec

    def check_field(self, section: "str | Section", key: str, raw: Any) -> FieldValue:
        """Validate raw input for a field without touching any document."""
        return validate(self.spec_for(section, key), raw)

    def apply_field(
        self,
        document: ConfigDocument,
        section: "str | Section",
        key: str,
        raw: Any,
    ) -> tuple[Optional[FieldValue], FieldValue]:
        """
        Validate a value and store it in the document.

        Args:
            document: Document to mutate
            section: Section name (own or native)
            key: Field key within the section
            raw: Raw input

        Returns:
            (previous value or None, new value)

        Raises:
            ValidationError: If the value is rejected; the document is untouched
        """
        spec = self.spec_for(section, key)
        value = validate(spec, raw)
        previous = document.put_field(spec.section, spec.key, value)
        logger.debug(f"Applied {spec.path} = {value.render()}")
        return previous, value

    def accept_value(self, spec: FieldSpec, value: FieldValue) -> FieldValue:
        """Re-check an already typed value, e.g. one loaded from a profile."""
        if value.kind != spec.kind:
            raise ValidationError(
                spec.path,
                f"expected a {spec.kind.value} value, got {value.kind.value}",
                value.render(),
            )
        return validate(spec, value.render())

    # === Keybinds ===

    def parse_keybind(self, bind_type: str, text: str, submap: str = "") -> KeybindEntry:
        """
        Parse the value of a ``bind*`` statement.

        ``bindd`` carries a label between the key and the dispatcher.

        Raises:
            ValidationError: If the statement is malformed
        """
        match = BIND_KEYWORD.match(bind_type)
        if not match:
            raise ValidationError(bind_type, "unknown bind keyword")
        described = "d" in match.group(1)
        expected = 5 if described else 4
        parts = [p.strip() for p in text.split(",", expected - 1)]
        if len(parts) < expected - 1:
            shape = "MODS, key, label, dispatcher[, arg]" if described else "MODS, key, dispatcher[, arg]"
            raise ValidationError(bind_type, f"expected '{shape}'", text)
        while len(parts) < expected:
            parts.append("")
        label = parts[2] if described else None
        dispatcher, arg = parts[-2], parts[-1]
        entry = KeybindEntry(
            modifiers=split_modifiers(parts[0]),
            key=parts[1],
            dispatcher=dispatcher,
            arg=arg,
            label=label,
            bind_type=bind_type,
            submap=submap,
        )
        self.validate_keybind(entry)
        return entry

    def validate_keybind(self, entry: KeybindEntry) -> KeybindEntry:
        if not BIND_KEYWORD.match(entry.bind_type):
            raise ValidationError(entry.bind_type, "unknown bind keyword")
        if not entry.key:
            raise ValidationError(entry.bind_type, "keybind requires a key", entry.render_value())
        if not entry.dispatcher:
            raise ValidationError(
                entry.bind_type, "keybind requires a dispatcher", entry.render_value()
            )
        for modifier in entry.modifiers:
            if modifier.startswith("$"):
                continue
            if not MODIFIER_PATTERN.match(modifier.upper()):
                raise ValidationError(
                    entry.bind_type, f"unknown modifier '{modifier}'", entry.render_value()
                )
        for text in (entry.key, entry.dispatcher, entry.arg, entry.label or ""):
            if "\n" in text:
                raise ValidationError(entry.bind_type, "must be a single line", text)
        return entry

    # === Rules ===

    def parse_window_rule(self, keyword: str, text: str) -> WindowRuleEntry:
        if keyword not in WINDOWRULE_KEYWORDS:
            raise ValidationError(keyword, "unknown window rule keyword")
        rule, params, pattern = self._split_rule(keyword, text)
        entry = WindowRuleEntry(
            rule=rule,
            pattern=pattern,
            params=params,
            version=2 if keyword == "windowrulev2" else 1,
        )
        return self.validate_rule(entry)

    def parse_layer_rule(self, text: str) -> LayerRuleEntry:
        rule, params, pattern = self._split_rule(LAYERRULE_KEYWORD, text)
        return self.validate_rule(LayerRuleEntry(rule=rule, pattern=pattern, params=params))

    def _split_rule(self, keyword: str, text: str) -> tuple[str, str, str]:
        effect, sep, pattern = text.partition(",")
        if not sep:
            raise ValidationError(keyword, "expected 'rule, pattern'", text)
        rule, _, params = effect.strip().partition(" ")
        return rule, params.strip(), pattern.strip()

    def validate_rule(self, entry):
        keyword = entry.syntax
        if not entry.rule:
            raise ValidationError(keyword, "rule name cannot be empty", entry.render_value())
        if not entry.pattern:
            raise ValidationError(keyword, "match pattern cannot be empty", entry.render_value())
        if "\n" in entry.render_value():
            raise ValidationError(keyword, "must be a single line", entry.render_value())
        return entry

    # === Animations ===

    def parse_bezier(self, text: str) -> BezierCurve:
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 5:
            raise ValidationError("bezier", "expected 'name, x0, y0, x1, y1'", text)
        name = parts[0]
        if not name or " " in name:
            raise ValidationError("bezier", "curve name must be a single word", text)
        if name in RESERVED_CURVES:
            raise ValidationError("bezier", f"'{name}' is a reserved curve name", text)
        try:
            points = tuple(parse_float(p) for p in parts[1:])
        except ValueError as e:
            raise ValidationError("bezier", str(e), text)
        return BezierCurve(name, points)

    def parse_animation(self, text: str) -> AnimationEntry:
        parts = [p.strip() for p in text.split(",")]
        if len(parts) < 2 or len(parts) > 5 or len(parts) == 3:
            raise ValidationError(
                "animation", "expected 'name, on/off[, speed, curve[, style]]'", text
            )
        name = parts[0]
        if not name:
            raise ValidationError("animation", "animation name cannot be empty", text)
        try:
            enabled = parse_boolean(parts[1])
        except ValueError as e:
            raise ValidationError("animation", str(e), text)
        entry = AnimationEntry(name=name, enabled=enabled)
        if len(parts) >= 4:
            try:
                entry.speed = parse_float(parts[2])
            except ValueError as e:
                raise ValidationError("animation", str(e), text)
            if entry.speed < 0:
                raise ValidationError("animation", "speed must be non-negative", text)
            if not parts[3]:
                raise ValidationError("animation", "curve name cannot be empty", text)
            entry.curve = parts[3]
        if len(parts) == 5:
            entry.style = parts[4]
        return entry

    # === Whole document ===

    def validate_document(self, document: ConfigDocument) -> ValidationResult:
        """
        Check a complete document before it is persisted or imported.

        Errors: values that no longer fit their field, malformed entries.
        Warnings: duplicate binds, animations using undefined curves.
        """
        errors: list[str] = []
        warnings: list[str] = []

        self._check_fields(document, errors)
        self._check_keybinds(document, errors, warnings)
        self._check_rules(document, errors)
        self._check_animations(document, warnings)

        return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)

    def _check_fields(self, document: ConfigDocument, errors: list[str]) -> None:
        for section in SCALAR_SECTIONS:
            known = {spec.key: spec for spec in specs_in(section)}
            for key, value in document.fields[section].items():
                spec = known.get(key)
                if spec is None:
                    errors.append(str(ValidationError(f"{section.native}:{key}", "unknown field")))
                    continue
                try:
                    self.accept_value(spec, value)
                except ValidationError as e:
                    errors.append(str(e))

    def _check_keybinds(
        self, document: ConfigDocument, errors: list[str], warnings: list[str]
    ) -> None:
        seen: dict[tuple, KeybindEntry] = {}
        for entry in document.keybinds:
            try:
                self.validate_keybind(entry)
            except ValidationError as e:
                errors.append(str(e))
                continue
            if entry.identity in seen:
                warnings.append(f"Duplicate keybind: {entry.display_string()}")
            else:
                seen[entry.identity] = entry

    def _check_rules(self, document: ConfigDocument, errors: list[str]) -> None:
        for entry in [*document.window_rules, *document.layer_rules]:
            try:
                self.validate_rule(entry)
            except ValidationError as e:
                errors.append(str(e))

    def _check_animations(self, document: ConfigDocument, warnings: list[str]) -> None:
        for animation in document.animations:
            if animation.curve not in RESERVED_CURVES and animation.curve not in document.beziers:
                warnings.append(
                    f"Animation '{animation.name}' uses undefined curve '{animation.curve}'"
                )
