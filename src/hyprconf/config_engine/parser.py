"""Parser for the native hyprland.conf syntax.

Converts config text into a ConfigDocument. Malformed statements become
line-scoped ParseWarnings and are skipped; the rest of the file still loads.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ..errors import ParseWarning, ValidationError
from .schema import (
    ConfigDocument,
    DocumentLayout,
    KeybindEntry,
    Section,
    UnrecognizedEntry,
)
from .validator import (
    LAYERRULE_KEYWORD,
    RESERVED_CURVES,
    WINDOWRULE_KEYWORDS,
    ConfigValidator,
    is_bind_keyword,
)

logger = logging.getLogger(__name__)


KEY_PATTERN = re.compile(r"^\$?[A-Za-z0-9_.:\-]+$")
BLOCK_PATTERN = re.compile(r"^[A-Za-z0-9_.:\-]+$")
SUBMAP_RESET = "reset"
EOF_ANCHOR = "eof"


def split_comment(line: str) -> tuple[str, Optional[str]]:
    """
    Split a line into content and trailing comment.

    ``##`` is an escaped literal ``#``; a single ``#`` starts a comment.
    """
    if line.lstrip().startswith("#"):
        return "", line.strip()
    content: list[str] = []
    i = 0
    while i < len(line):
        char = line[i]
        if char == "#":
            if line.startswith("##", i):
                content.append("#")
                i += 2
                continue
            return "".join(content), line[i:].strip()
        content.append(char)
        i += 1
    return "".join(content), None


def escape_value(text: str) -> str:
    return text.replace("#", "##")


# Layout anchors, shared with the serializer

def field_anchor(section: Section, key: str) -> str:
    return f"field:{section.native}:{key}"


def raw_anchor(entry: UnrecognizedEntry, occurrence: int) -> str:
    return f"raw:{entry.section}:{entry.block}:{entry.key}:{occurrence}"


def keybind_anchor(entry: KeybindEntry) -> str:
    return f"bind:{entry.submap}:{entry.render()}"


def block_anchor(path: str) -> str:
    return f"block:{path}"


def block_end_anchor(path: str) -> str:
    return f"end:{path}"


@dataclass
class ParseResult:
    """Parsed document plus the statements that were skipped."""
    document: ConfigDocument
    warnings: list[ParseWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


@dataclass
class _Block:
    header: Optional[str]          # None for a block whose header was rejected
    anchor: str
    occurrence: int = 0


class ConfigParser:
    """Parse hyprland.conf text into a ConfigDocument."""

    def __init__(self, validator: Optional[ConfigValidator] = None):
        self.validator = validator or ConfigValidator()

    def parse(self, text: str) -> ParseResult:
        """
        Parse config text.

        Args:
            text: Full contents of a native config file

        Returns:
            ParseResult with the document and any per-line warnings
        """
        state = _ParseState(ConfigDocument(layout=DocumentLayout()))

        for lineno, line in enumerate(text.splitlines(), start=1):
            content, comment = split_comment(line)
            stripped = content.strip()
            if not stripped:
                state.pending.append(comment or "")
                continue
            self._parse_line(state, lineno, stripped, comment, line)

        if state.stack:
            state.warn(
                len(text.splitlines()),
                state.stack[-1].header or "",
                f"{len(state.stack)} unclosed block(s) at end of file",
            )
        if state.pending:
            state.layout.leading[EOF_ANCHOR] = _trim_blank(state.pending)

        document = state.document
        # Canonical order: top level first, submap groups after global binds
        document.unrecognized.sort(key=lambda entry: entry.group_key)
        submap_order = {name: i for i, name in enumerate(dict.fromkeys(
            bind.submap for bind in document.keybinds if bind.submap
        ))}
        document.keybinds.sort(key=lambda bind: (bind.submap != "", submap_order.get(bind.submap, 0)))

        for warning in state.warnings:
            logger.warning(f"Skipped config line {warning.line}: {warning.reason}")

        return ParseResult(document=document, warnings=state.warnings)

    def _parse_line(
        self,
        state: "_ParseState",
        lineno: int,
        stripped: str,
        comment: Optional[str],
        line: str,
    ) -> None:
        if stripped == "}":
            if not state.stack:
                state.warn(lineno, line, "unmatched '}'")
                return
            block = state.stack.pop()
            state.attach(block_end_anchor(block.anchor[len("block:"):]), comment)
            return

        if stripped.endswith("{"):
            self._open_block(state, lineno, stripped[:-1].strip(), comment, line)
            return

        key, sep, value = stripped.partition("=")
        key, value = key.strip(), value.strip()
        if not sep or not KEY_PATTERN.match(key):
            state.warn(lineno, line, "expected 'key = value'")
            return

        try:
            anchor = self._parse_statement(state, key, value)
        except ValidationError as e:
            state.warn(lineno, line, str(e))
            return
        except _SkipStatement as e:
            state.warn(lineno, line, str(e))
            return
        if anchor is not None:
            state.attach(anchor, comment)

    def _open_block(
        self,
        state: "_ParseState",
        lineno: int,
        header: str,
        comment: Optional[str],
        line: str,
    ) -> None:
        if not BLOCK_PATTERN.match(header):
            state.warn(lineno, line, "invalid block name")
            state.stack.append(_Block(header=None, anchor="block:"))
            return
        if state.stack:
            parent = state.stack[-1]
            anchor = f"{parent.anchor}:{header}"
            state.stack.append(_Block(header, anchor, parent.occurrence))
        elif Section.from_native(header.split(":")[0]) is not None:
            state.stack.append(_Block(header, block_anchor(header)))
        else:
            occurrence = state.block_counts.get(header, 0)
            state.block_counts[header] = occurrence + 1
            state.stack.append(_Block(header, block_anchor(f"{header}#{occurrence}"), occurrence))
        state.attach(state.stack[-1].anchor, comment)

    def _parse_statement(self, state: "_ParseState", key: str, value: str) -> Optional[str]:
        """Route one ``key = value`` statement. Returns its layout anchor."""
        if any(block.header is None for block in state.stack):
            raise _SkipStatement("statement inside a rejected block")

        outer = state.stack[0].header if state.stack else None
        managed = Section.from_native(outer.split(":")[0]) if outer else None

        if ":" not in key and (outer is None or managed is not None):
            anchor = self._parse_macro(state, key, value, top_level=outer is None)
            if anchor is not None:
                return anchor

        if outer is None:
            head, sep, rest = key.partition(":")
            section = Section.from_native(head) if sep else None
            if section is not None:
                return self._parse_field(state, section, rest, value)
            if sep:
                return state.add_raw(UnrecognizedEntry(head, rest, value, 0))
            return state.add_raw(UnrecognizedEntry("", key, value, 0))

        if managed is not None:
            parts: list[str] = []
            for block in state.stack:
                parts.extend(block.header.split(":"))
            parts.extend(key.split(":"))
            return self._parse_field(state, managed, ":".join(parts[1:]), value)

        nested = [block.header for block in state.stack[1:]] + [key]
        entry = UnrecognizedEntry(outer, ":".join(nested), value, state.stack[0].occurrence)
        return state.add_raw(entry)

    def _parse_field(
        self, state: "_ParseState", section: Section, key: str, value: str
    ) -> str:
        spec = self._spec_or_none(section, key)
        if spec is None or "$" in value:
            # Unsupported keys and variable references are kept verbatim
            return state.add_raw(UnrecognizedEntry(section.native, key, value, 0))
        self.validator.apply_field(state.document, section, key, value)
        return field_anchor(section, key)

    def _spec_or_none(self, section: Section, key: str):
        try:
            return self.validator.spec_for(section, key)
        except ValidationError:
            return None

    def _parse_macro(
        self, state: "_ParseState", keyword: str, value: str, top_level: bool
    ) -> Optional[str]:
        """Consume keyword macros into structured entries. None if not a macro."""
        document = state.document
        validator = self.validator

        if is_bind_keyword(keyword):
            entry = validator.parse_keybind(keyword, value, state.submap)
            document.keybinds.append(entry)
            return keybind_anchor(entry)

        if keyword in WINDOWRULE_KEYWORDS:
            rule = validator.parse_window_rule(keyword, value)
            document.window_rules.append(rule)
            return f"rule:{rule.render()}"

        if keyword == LAYERRULE_KEYWORD:
            rule = validator.parse_layer_rule(value)
            document.layer_rules.append(rule)
            return f"rule:{rule.render()}"

        if keyword == "bezier":
            curve = validator.parse_bezier(value)
            if curve.name in document.beziers:
                logger.warning(f"Bezier '{curve.name}' redefined, later definition wins")
            document.beziers[curve.name] = curve
            return f"bezier:{curve.name}"

        if keyword == "animation":
            animation = validator.parse_animation(value)
            if animation.curve not in RESERVED_CURVES and animation.curve not in document.beziers:
                logger.warning(
                    f"Animation '{animation.name}' uses undefined curve '{animation.curve}'"
                )
            for i, existing in enumerate(document.animations):
                if existing.name == animation.name:
                    document.animations[i] = animation
                    break
            else:
                document.animations.append(animation)
            return f"animation:{animation.name}"

        if keyword == "submap" and top_level:
            name = value.strip()
            if not name:
                raise _SkipStatement("submap requires a name")
            if name == SUBMAP_RESET:
                anchor = f"submap-end:{state.submap}"
                state.submap = ""
            else:
                state.submap = name
                anchor = f"submap:{name}"
            return anchor

        return None


class _SkipStatement(Exception):
    """Statement is structurally invalid; reported as a ParseWarning."""


def _trim_blank(lines: list[str]) -> list[str]:
    while lines and not lines[-1]:
        lines = lines[:-1]
    return lines


class _ParseState:
    """Mutable state for a single parse run."""

    def __init__(self, document: ConfigDocument):
        self.document = document
        self.layout: DocumentLayout = document.layout
        self.warnings: list[ParseWarning] = []
        self.pending: list[str] = []
        self.stack: list[_Block] = []
        self.block_counts: dict[str, int] = {}
        self.raw_counts: dict[tuple, int] = {}
        self.submap = ""

    def warn(self, lineno: int, text: str, reason: str) -> None:
        self.warnings.append(ParseWarning(line=lineno, text=text.strip(), reason=reason))

    def attach(self, anchor: str, comment: Optional[str]) -> None:
        if self.pending:
            self.layout.leading.setdefault(anchor, []).extend(self.pending)
            self.pending = []
        if comment:
            self.layout.inline[anchor] = comment

    def add_raw(self, entry: UnrecognizedEntry) -> str:
        group = (entry.section, entry.block, entry.key)
        occurrence = self.raw_counts.get(group, 0)
        self.raw_counts[group] = occurrence + 1
        self.document.unrecognized.append(entry)
        return raw_anchor(entry, occurrence)
