"""Serializer for the native hyprland.conf syntax.

Output is deterministic: managed sections in a fixed order, known keys in
declaration order, every value in the canonical form hyprctl accepts.
Comments recorded by the parser are re-emitted next to the statement they
preceded.
"""
import itertools
import logging
from typing import Optional

from .fields import specs_in
from .parser import (
    EOF_ANCHOR,
    block_anchor,
    block_end_anchor,
    escape_value,
    field_anchor,
    keybind_anchor,
    raw_anchor,
)
from .schema import (
    SCALAR_SECTIONS,
    ConfigDocument,
    DocumentLayout,
    FieldSpec,
    Section,
    UnrecognizedEntry,
)

logger = logging.getLogger(__name__)


def _nested_prefix(spec: FieldSpec) -> Optional[str]:
    prefix, sep, _ = spec.key.partition(":")
    return prefix if sep else None


class _Writer:
    """Accumulates output lines and re-attaches recorded comments."""

    def __init__(self, layout: DocumentLayout, indent: str):
        self.layout = layout
        self.indent = indent
        self.lines: list[str] = []
        self.used: set[str] = set()
        self.new_group = False

    def group(self) -> None:
        """Next line starts a new top-level group, separated by a blank line."""
        self.new_group = True

    def line(self, anchor: str, text: str, depth: int = 0) -> None:
        first = anchor not in self.used
        self.used.add(anchor)
        leading = list(self.layout.leading.get(anchor, [])) if first else []
        if self.new_group:
            while leading and not leading[0]:
                leading.pop(0)
            if self.lines:
                self.lines.append("")
            self.new_group = False

        prefix = self.indent * depth
        for comment in leading:
            self.lines.append(prefix + comment if comment else "")
        inline = self.layout.inline.get(anchor) if first else None
        self.lines.append(prefix + text + (f" {inline}" if inline else ""))

    def statement(self, anchor: str, key: str, value: str, depth: int = 0) -> None:
        self.line(anchor, f"{key} = {escape_value(value)}".rstrip(), depth)

    def text(self) -> str:
        trailer = self.layout.leading.get(EOF_ANCHOR, [])
        if trailer:
            while trailer and not trailer[0]:
                trailer = trailer[1:]
            if self.lines:
                self.lines.append("")
            self.lines.extend(trailer)
        if not self.lines:
            return ""
        return "\n".join(self.lines) + "\n"


class ConfigSerializer:
    """Render a ConfigDocument as hyprland.conf text."""

    def __init__(self, indent: str = "    "):
        self.indent = indent

    def serialize(self, document: ConfigDocument) -> str:
        """
        Serialize a document.

        Args:
            document: Document to render

        Returns:
            Config text; parsing it yields an equal document
        """
        out = _Writer(document.layout or DocumentLayout(), self.indent)
        raw_groups = self._group_unrecognized(document.unrecognized)

        top_level = raw_groups.pop(("", 0), [])
        if top_level:
            out.group()
            for anchor, entry in top_level:
                out.statement(anchor, entry.key, entry.value)

        for section in SCALAR_SECTIONS:
            self._write_section(out, document, section, raw_groups.pop((section.native, 0), []))

        for (name, block), entries in sorted(raw_groups.items()):
            anchor = f"{name}#{block}"
            out.group()
            out.line(block_anchor(anchor), f"{name} {{")
            for raw, entry in entries:
                out.statement(raw, entry.key, entry.value, 1)
            out.line(block_end_anchor(anchor), "}")

        self._write_keybinds(out, document)

        for rules in (document.window_rules, document.layer_rules):
            if rules:
                out.group()
                for rule in rules:
                    out.statement(f"rule:{rule.render()}", rule.syntax, rule.render_value())

        text = out.text()
        logger.debug(f"Serialized {document.field_count} fields, {len(document.keybinds)} keybinds")
        return text

    def _group_unrecognized(
        self, entries: list[UnrecognizedEntry]
    ) -> dict[tuple[str, int], list[tuple[str, UnrecognizedEntry]]]:
        groups: dict[tuple[str, int], list[tuple[str, UnrecognizedEntry]]] = {}
        occurrences: dict[tuple, int] = {}
        for entry in sorted(entries, key=lambda e: e.group_key):
            key = (entry.section, entry.block, entry.key)
            occurrence = occurrences.get(key, 0)
            occurrences[key] = occurrence + 1
            block = 0 if Section.from_native(entry.section) else entry.block
            groups.setdefault((entry.section, block), []).append(
                (raw_anchor(entry, occurrence), entry)
            )
        return groups

    def _write_section(
        self,
        out: _Writer,
        document: ConfigDocument,
        section: Section,
        raw_entries: list[tuple[str, UnrecognizedEntry]],
    ) -> None:
        values = document.fields[section]
        present = [spec for spec in specs_in(section) if spec.key in values]
        is_animations = section == Section.ANIMATION
        has_curves = is_animations and (document.beziers or document.animations)
        if not present and not raw_entries and not has_curves:
            return

        native = section.native
        out.group()
        out.line(block_anchor(native), f"{native} {{")

        for prefix, run in itertools.groupby(present, key=_nested_prefix):
            if prefix is None:
                for spec in run:
                    out.statement(field_anchor(section, spec.key), spec.key, values[spec.key].render(), 1)
                continue
            nested = f"{native}:{prefix}"
            out.line(block_anchor(nested), f"{prefix} {{", 1)
            for spec in run:
                subkey = spec.key.split(":", 1)[1]
                out.statement(field_anchor(section, spec.key), subkey, values[spec.key].render(), 2)
            out.line(block_end_anchor(nested), "}", 1)

        for anchor, entry in raw_entries:
            out.statement(anchor, entry.key, entry.value, 1)

        if is_animations:
            for curve in document.beziers.values():
                out.statement(f"bezier:{curve.name}", "bezier", curve.render_value(), 1)
            for animation in document.animations:
                out.statement(f"animation:{animation.name}", "animation", animation.render_value(), 1)

        out.line(block_end_anchor(native), "}")

    def _write_keybinds(self, out: _Writer, document: ConfigDocument) -> None:
        global_binds = [bind for bind in document.keybinds if not bind.submap]
        if global_binds:
            out.group()
            for bind in global_binds:
                out.statement(keybind_anchor(bind), bind.bind_type, bind.render_value())

        submaps = dict.fromkeys(bind.submap for bind in document.keybinds if bind.submap)
        for name in submaps:
            out.group()
            out.statement(f"submap:{name}", "submap", name)
            for bind in document.keybinds:
                if bind.submap == name:
                    out.statement(keybind_anchor(bind), bind.bind_type, bind.render_value())
            out.statement(f"submap-end:{name}", "submap", "reset")
