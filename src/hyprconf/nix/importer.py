"""Reverse import of generated Nix modules.

Only the subset of Nix that NixModuleGenerator emits is understood:

- attribute sets with bare or quoted names (no dotted paths, no ``inherit``)
- lists, double-quoted strings, ``''`` strings, numbers, true/false
- ``#`` and ``/* */`` comments

Anything else (let, with, rec, interpolation, ``++``, function calls,
imports) is rejected with UnsupportedConstruct naming the line. The
envelope around ``settings`` is not interpreted.
"""
import logging
import re
import textwrap
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from ..config_engine.fields import get_spec
from ..config_engine.parser import ConfigParser
from ..config_engine.schema import ConfigDocument, Section, UnrecognizedEntry, format_number
from ..config_engine.validator import (
    LAYERRULE_KEYWORD,
    WINDOWRULE_KEYWORDS,
    ConfigValidator,
    is_bind_keyword,
)
from ..errors import UnsupportedConstruct

logger = logging.getLogger(__name__)

SETTINGS_PATTERN = re.compile(r"(?<![\w.\"'-])settings\s*=\s*(?=\{)")
EXTRA_CONFIG_PATTERN = re.compile(r"(?<![\w.\"'-])extraConfig\s*=\s*(?='')")

NUMBER = re.compile(r"-?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_'-]*")
PUNCTUATION = "{}[]=;()"

STRING_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}


@dataclass
class Token:
    kind: str        # punct, string, number, ident
    value: Any
    line: int


# === Tokenizer ===

def _snippet(text: str, pos: int) -> str:
    end = text.find("\n", pos)
    return text[pos:end if end != -1 else len(text)].strip()[:40]


def tokenize(text: str, start: int = 0, first_line: int = 1) -> Iterator[Token]:
    """
    Tokenize the restricted Nix subset.

    Raises:
        UnsupportedConstruct: On any character sequence outside the subset
    """
    pos = start
    line = first_line
    while pos < len(text):
        char = text[pos]
        if char == "\n":
            line += 1
            pos += 1
        elif char.isspace():
            pos += 1
        elif char == "#":
            end = text.find("\n", pos)
            pos = len(text) if end == -1 else end
        elif text.startswith("/*", pos):
            end = text.find("*/", pos + 2)
            if end == -1:
                raise UnsupportedConstruct("unterminated comment", line, _snippet(text, pos))
            line += text.count("\n", pos, end)
            pos = end + 2
        elif char == '"':
            value, end, lines = _read_string(text, pos, line)
            yield Token("string", value, line)
            line += lines
            pos = end
        elif text.startswith("''", pos):
            value, end, lines = _read_indented(text, pos, line)
            yield Token("string", value, line)
            line += lines
            pos = end
        elif char in PUNCTUATION:
            yield Token("punct", char, line)
            pos += 1
        elif (match := NUMBER.match(text, pos)) and not IDENTIFIER.match(text, match.end()):
            literal = match.group(0)
            is_float = any(c in literal for c in ".eE")
            yield Token("number", float(literal) if is_float else int(literal), line)
            pos = match.end()
        elif match := IDENTIFIER.match(text, pos):
            yield Token("ident", match.group(0), line)
            pos = match.end()
        else:
            raise UnsupportedConstruct(
                f"unsupported syntax '{char}'", line, _snippet(text, pos)
            )


def _read_string(text: str, pos: int, line: int) -> tuple[str, int, int]:
    out: list[str] = []
    i = pos + 1
    lines = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            out.append(STRING_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if char == '"':
            return "".join(out), i + 1, lines
        if text.startswith("${", i):
            raise UnsupportedConstruct("string interpolation", line + lines, _snippet(text, i))
        if char == "\n":
            lines += 1
        out.append(char)
        i += 1
    raise UnsupportedConstruct("unterminated string", line, _snippet(text, pos))


def _read_indented(text: str, pos: int, line: int) -> tuple[str, int, int]:
    out: list[str] = []
    i = pos + 2
    while i < len(text):
        if text.startswith("'''", i):
            out.append("''")
            i += 3
        elif text.startswith("''${", i):
            out.append("${")
            i += 4
        elif text.startswith("''\\", i) and i + 3 < len(text):
            nxt = text[i + 3]
            out.append(STRING_ESCAPES.get(nxt, nxt))
            i += 4
        elif text.startswith("''", i):
            raw = "".join(out)
            return _strip_indentation(raw), i + 2, text.count("\n", pos, i)
        elif text.startswith("${", i):
            raise UnsupportedConstruct(
                "string interpolation", line + text.count("\n", pos, i), _snippet(text, i)
            )
        else:
            out.append(text[i])
            i += 1
    raise UnsupportedConstruct("unterminated indented string", line, _snippet(text, pos))


def _strip_indentation(raw: str) -> str:
    # Nix drops a blank first line, then the common indentation
    first, sep, rest = raw.partition("\n")
    if sep and not first.strip():
        raw = rest
    return textwrap.dedent(raw)


# === Grammar ===

class _ValueReader:
    """Recursive descent over a lazy token stream.

    Tokens are pulled on demand, so text after the value being read is
    never tokenized.
    """

    def __init__(self, tokens: Iterator[Token], first_line: int = 1):
        self.tokens = tokens
        self.lookahead: Optional[Token] = None
        self.line = first_line

    def _peek(self) -> Optional[Token]:
        if self.lookahead is None:
            self.lookahead = next(self.tokens, None)
        return self.lookahead

    def _next(self, what: str) -> Token:
        token = self._peek()
        if token is None:
            raise UnsupportedConstruct(f"unexpected end of input, expected {what}", self.line)
        self.lookahead = None
        self.line = token.line
        return token

    def _expect(self, punct: str) -> Token:
        token = self._next(f"'{punct}'")
        if token.kind != "punct" or token.value != punct:
            raise UnsupportedConstruct(
                f"expected '{punct}', found '{token.value}'", token.line, str(token.value)
            )
        return token

    def value(self) -> Any:
        token = self._next("a value")
        if token.kind == "string" or token.kind == "number":
            return token.value
        if token.kind == "ident":
            if token.value in ("true", "false"):
                return token.value == "true"
            raise UnsupportedConstruct(
                f"unsupported expression '{token.value}'", token.line, token.value
            )
        if token.value == "{":
            return self._attrset()
        if token.value == "[":
            return self._list()
        if token.value == "(":
            # only parenthesized negative numbers, as emitted inside lists
            inner = self._next("a number")
            if inner.kind != "number":
                raise UnsupportedConstruct("unsupported parenthesized expression", inner.line)
            self._expect(")")
            return inner.value
        raise UnsupportedConstruct(f"unexpected '{token.value}'", token.line, str(token.value))

    def _attrset(self) -> dict[str, Any]:
        attrs: dict[str, Any] = {}
        while True:
            token = self._next("an attribute name or '}'")
            if token.kind == "punct" and token.value == "}":
                return attrs
            if token.kind not in ("ident", "string") or token.value in ("inherit", "rec"):
                raise UnsupportedConstruct(
                    f"unsupported attribute '{token.value}'", token.line, str(token.value)
                )
            self._expect("=")
            if token.value in attrs:
                raise UnsupportedConstruct(
                    f"attribute '{token.value}' defined twice", token.line, token.value
                )
            attrs[token.value] = self.value()
            self._expect(";")

    def _list(self) -> list[Any]:
        items: list[Any] = []
        while True:
            token = self._peek()
            if token is not None and token.kind == "punct" and token.value == "]":
                self._next("']'")
                return items
            items.append(self.value())


def _line_of(text: str, pos: int) -> int:
    return text.count("\n", 0, pos) + 1


def read_value_at(text: str, pos: int) -> Any:
    """Parse the single value that starts at ``pos``, ignoring what follows it."""
    line = _line_of(text, pos)
    return _ValueReader(tokenize(text, pos, line), line).value()


# === Mapping back to a document ===

def _scalar_text(value: Any, context: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, str):
        return value
    raise UnsupportedConstruct(f"'{context}' must be a string, number or boolean")


def _holds_variable(value: Any) -> bool:
    """Values referencing $variables stay verbatim, as in the native parser."""
    return isinstance(value, str) and "$" in value


def _as_list(value: Any, context: str) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        raise UnsupportedConstruct(f"'{context}' must be a list or scalar, not an attribute set")
    return [value]


class NixModuleImporter:
    """Rebuild a ConfigDocument from generated Nix module text."""

    def __init__(self, validator: Optional[ConfigValidator] = None):
        self.validator = validator or ConfigValidator()

    def import_module(self, text: str) -> ConfigDocument:
        """
        Parse a module produced by NixModuleGenerator.

        Returns:
            Document holding the imported settings

        Raises:
            UnsupportedConstruct: If the text leaves the supported subset
            ValidationError: If an imported value is not acceptable
        """
        match = SETTINGS_PATTERN.search(text)
        if match is None:
            raise UnsupportedConstruct("no 'settings' attribute set found")
        settings = read_value_at(text, match.end())

        document = ConfigDocument()
        for key, value in settings.items():
            self._import_top_level(document, key, value)

        extra = EXTRA_CONFIG_PATTERN.search(text)
        if extra is not None:
            line = _line_of(text, extra.end())
            extra_text = read_value_at(text, extra.end())
            self._import_extra_config(document, extra_text, line)

        document.unrecognized.sort(key=lambda entry: entry.group_key)
        logger.info(
            f"Imported Nix module: {document.field_count} fields, "
            f"{len(document.keybinds)} keybinds"
        )
        return document

    def _import_top_level(self, document: ConfigDocument, key: str, value: Any) -> None:
        section = Section.from_native(key)
        if section is not None and isinstance(value, dict):
            self._import_section(document, section, value)
        elif is_bind_keyword(key):
            for item in _as_list(value, key):
                document.keybinds.append(self.validator.parse_keybind(key, _scalar_text(item, key)))
        elif key in WINDOWRULE_KEYWORDS:
            for item in _as_list(value, key):
                document.window_rules.append(
                    self.validator.parse_window_rule(key, _scalar_text(item, key))
                )
        elif key == LAYERRULE_KEYWORD:
            for item in _as_list(value, key):
                document.layer_rules.append(self.validator.parse_layer_rule(_scalar_text(item, key)))
        elif isinstance(value, dict):
            self._import_block(document, key, 0, value)
        elif isinstance(value, list) and value and all(isinstance(v, dict) for v in value):
            for block, attrs in enumerate(value):
                self._import_block(document, key, block, attrs)
        else:
            for item in _as_list(value, key):
                document.unrecognized.append(UnrecognizedEntry("", key, _scalar_text(item, key)))

    def _import_section(
        self,
        document: ConfigDocument,
        section: Section,
        attrs: dict[str, Any],
        prefix: str = "",
    ) -> None:
        for name, value in attrs.items():
            key = f"{prefix}{name}"
            if section == Section.ANIMATION and not prefix and name in ("bezier", "animation"):
                self._import_animation_list(document, name, value)
            elif isinstance(value, dict):
                self._import_section(document, section, value, f"{key}:")
            elif get_spec(section, key) is not None and not _holds_variable(value):
                self.validator.apply_field(document, section, key, value)
            else:
                for item in _as_list(value, key):
                    document.unrecognized.append(
                        UnrecognizedEntry(section.native, key, _scalar_text(item, key))
                    )

    def _import_animation_list(self, document: ConfigDocument, name: str, value: Any) -> None:
        for item in _as_list(value, name):
            text = _scalar_text(item, name)
            if name == "bezier":
                curve = self.validator.parse_bezier(text)
                document.beziers[curve.name] = curve
            else:
                document.animations.append(self.validator.parse_animation(text))

    def _import_block(
        self,
        document: ConfigDocument,
        name: str,
        block: int,
        attrs: dict[str, Any],
        prefix: str = "",
    ) -> None:
        for key, value in attrs.items():
            if isinstance(value, dict):
                self._import_block(document, name, block, value, f"{prefix}{key}:")
                continue
            for item in _as_list(value, key):
                document.unrecognized.append(
                    UnrecognizedEntry(name, f"{prefix}{key}", _scalar_text(item, key), block)
                )

    def _import_extra_config(self, document: ConfigDocument, text: Any, line: int) -> None:
        if not isinstance(text, str):
            raise UnsupportedConstruct("extraConfig must be a string", line)
        result = ConfigParser(self.validator).parse(text)
        if result.warnings:
            warning = result.warnings[0]
            raise UnsupportedConstruct(
                f"extraConfig: {warning.reason}", line + warning.line, warning.text
            )
        parsed = result.document
        for section, key, value in parsed.iter_fields():
            document.put_field(section, key, value)
        document.keybinds.extend(parsed.keybinds)
        document.window_rules.extend(parsed.window_rules)
        document.layer_rules.extend(parsed.layer_rules)
        document.beziers.update(parsed.beziers)
        document.animations.extend(parsed.animations)
        document.unrecognized.extend(parsed.unrecognized)
