"""Decoders for hyprctl's text replies.

Two reply shapes exist: scalar replies (``int: 2`` / ``set: true``) for
``getoption`` and list replies (one entry per line, or the block format of
``hyprctl binds``). Scalar payloads never bypass the Field Type System: the
type tag only has to be plausible for the field, the payload itself is
validated like any other raw input.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..config_engine.schema import FieldKind, FieldSpec, FieldValue, KeybindEntry
from ..config_engine.values import validate
from ..errors import ChannelReplyError, ValidationError

logger = logging.getLogger(__name__)


SCALAR_TAGS = ("int", "float", "bool", "custom type", "str")

# Tags hyprctl may legitimately use for each kind of field
ACCEPTED_TAGS: dict[FieldKind, tuple[str, ...]] = {
    FieldKind.INTEGER: ("int",),
    FieldKind.FLOAT: ("float", "int"),
    FieldKind.BOOLEAN: ("bool", "int"),
    FieldKind.COLOR: ("int", "custom type"),
    FieldKind.SCALAR_LIST: ("custom type", "int"),
    FieldKind.TEXT: ("str",),
    FieldKind.ENUM: ("str",),
}

# Modifier bits as reported by `hyprctl binds`
MODMASK_BITS = (
    (64, "SUPER"),
    (8, "ALT"),
    (4, "CTRL"),
    (1, "SHIFT"),
    (2, "CAPS"),
    (16, "MOD2"),
    (32, "MOD3"),
    (128, "MOD5"),
)

BARE_HEX_COLOR = re.compile(r"^[0-9a-fA-F]{8}$")
BIND_HEADER = re.compile(r"^bind[a-z]*$")
ONE_LINE_BIND = re.compile(r"^(?P<mods>[^,]*),(?P<key>[^ ]+)\s+->\s+(?P<command>.+)$")


@dataclass
class ScalarReply:
    """A ``getoption`` reply split into its parts."""
    tag: str
    payload: str
    is_set: Optional[bool] = None


def split_scalar_reply(text: str) -> ScalarReply:
    """
    Split a scalar reply into type tag, payload and the ``set:`` flag.

    Raises:
        ChannelReplyError: If the reply carries no recognizable type tag
    """
    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    if not lines:
        raise ChannelReplyError("empty reply")
    if lines[0].lower().startswith("no such option"):
        raise ChannelReplyError(lines[0])

    tag, sep, payload = lines[0].partition(":")
    tag = tag.strip().lower()
    if not sep or tag not in SCALAR_TAGS:
        raise ChannelReplyError(f"unrecognized reply '{lines[0]}'")

    is_set = None
    for line in lines[1:]:
        name, sep, flag = line.partition(":")
        if sep and name.strip().lower() == "set":
            is_set = flag.strip().lower() == "true"
    return ScalarReply(tag=tag, payload=payload.strip(), is_set=is_set)


def _signed_int_to_color(payload: str) -> str:
    number = int(payload)
    return f"0x{number & 0xFFFFFFFF:08x}"


def _normalize_payload(spec: FieldSpec, reply: ScalarReply) -> str:
    payload = reply.payload
    if spec.kind == FieldKind.COLOR:
        if reply.tag == "int":
            return _signed_int_to_color(payload)
        return " ".join(
            f"0x{token}" if BARE_HEX_COLOR.match(token) else token
            for token in payload.split()
        )
    if reply.tag == "str" and len(payload) >= 2 and payload[0] == payload[-1] == '"':
        return payload[1:-1]
    return payload


def decode_scalar_reply(spec: FieldSpec, text: str) -> FieldValue:
    """
    Decode a ``getoption`` reply for a known field.

    Args:
        spec: Descriptor of the queried field
        text: Raw reply text

    Returns:
        Validated FieldValue

    Raises:
        ChannelReplyError: If the tag does not fit the field or the payload is invalid
    """
    return read_scalar_reply(spec, text)[0]


def read_scalar_reply(spec: FieldSpec, text: str) -> tuple[FieldValue, Optional[bool]]:
    """Like decode_scalar_reply, also returning the ``set:`` flag (None if absent)."""
    reply = split_scalar_reply(text)
    if reply.tag not in ACCEPTED_TAGS[spec.kind]:
        raise ChannelReplyError(
            f"{spec.path}: reply tagged '{reply.tag}' does not fit a {spec.kind.value} field"
        )
    try:
        value = validate(spec, _normalize_payload(spec, reply))
    except (ValidationError, ValueError) as e:
        raise ChannelReplyError(f"{spec.path}: {e}") from e
    return value, reply.is_set


def decode_list_reply(text: str) -> list[str]:
    """One entry per non-empty line."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def decode_modmask(bits: int) -> tuple[str, ...]:
    """Numeric modifier mask -> modifier names."""
    return tuple(name for bit, name in MODMASK_BITS if bits & bit)


def _parse_modmask(text: str) -> tuple[str, ...]:
    text = text.strip()
    if not text:
        return ()
    try:
        return decode_modmask(int(text))
    except ValueError:
        raise ChannelReplyError(f"invalid modmask '{text}'")


def _bind_from_block(bind_type: str, attrs: dict[str, str]) -> KeybindEntry:
    label = attrs.get("description") or None
    return KeybindEntry(
        modifiers=_parse_modmask(attrs.get("modmask", "")),
        key=attrs.get("key", ""),
        dispatcher=attrs.get("dispatcher", ""),
        arg=attrs.get("arg", ""),
        label=label,
        bind_type=bind_type,
        submap=attrs.get("submap", ""),
    )


def _bind_from_line(match: "re.Match[str]") -> KeybindEntry:
    command = match.group("command").strip()
    dispatcher, _, arg = command.partition(" ")
    arg = arg.strip()
    if arg.startswith("[") and arg.endswith("]"):
        arg = arg[1:-1]
    return KeybindEntry(
        modifiers=_parse_modmask(match.group("mods")),
        key=match.group("key"),
        dispatcher=dispatcher,
        arg=arg,
    )


def decode_binds_reply(text: str) -> list[KeybindEntry]:
    """
    Decode ``hyprctl binds`` output.

    Understands the block format (a ``bind*`` header followed by indented
    ``name: value`` lines) and the compact ``modmask,key -> dispatcher [arg]``
    form.

    Raises:
        ChannelReplyError: If a block or line cannot be decoded
    """
    binds: list[KeybindEntry] = []
    current_type: Optional[str] = None
    attrs: dict[str, str] = {}

    for raw_line in text.splitlines():
        if not raw_line.strip():
            continue
        indented = raw_line[:1].isspace()
        line = raw_line.strip()

        if current_type is not None and indented:
            name, sep, value = line.partition(":")
            if not sep:
                raise ChannelReplyError(f"unexpected line in bind block: '{line}'")
            attrs[name.strip()] = value.strip()
            continue

        if current_type is not None:
            binds.append(_bind_from_block(current_type, attrs))
            current_type, attrs = None, {}

        if BIND_HEADER.match(line):
            current_type = line
            continue

        match = ONE_LINE_BIND.match(line)
        if match is None:
            raise ChannelReplyError(f"unrecognized bind line: '{line}'")
        binds.append(_bind_from_line(match))

    if current_type is not None:
        binds.append(_bind_from_block(current_type, attrs))

    logger.debug(f"Decoded {len(binds)} binds from channel")
    return binds
