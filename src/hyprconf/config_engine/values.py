"""Field Type System: raw text -> typed FieldValue.

One validator per FieldKind. ``validate`` is pure and raises nothing but
ValidationError.
"""
import math
import re
from typing import Any, Callable

from ..errors import ValidationError
from .schema import (
    BooleanValue,
    ColorValue,
    EnumValue,
    FieldKind,
    FieldSpec,
    FieldValue,
    FloatValue,
    IntegerValue,
    ScalarListValue,
    TextValue,
)

INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
FLOAT_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

TRUE_LITERALS = ("true", "1", "yes")
FALSE_LITERALS = ("false", "0", "no")
BOOLEAN_HINT = "must be one of true/false, 1/0, yes/no"
COLOR_HINT = "must be a valid color (0xAARRGGBB, rgb(), or rgba())"

HEX_COLOR = re.compile(r"^0x([0-9a-fA-F]{8})$")
FUNCTIONAL_COLOR = re.compile(r"^(rgba?)\((.*)\)$", re.IGNORECASE)
ANGLE = re.compile(r"^(-?\d+)deg$")


def _to_text(raw: Any) -> str:
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, (list, tuple)):
        return " ".join(_to_text(item) for item in raw)
    return str(raw).strip()


def _check_range(spec: FieldSpec, number: float, text: str) -> None:
    if spec.non_negative and number < 0:
        raise ValidationError(spec.path, "must be non-negative", text)
    if spec.minimum is not None and number < spec.minimum:
        raise ValidationError(spec.path, f"must be at least {spec.minimum:g}", text)
    if spec.maximum is not None and number > spec.maximum:
        raise ValidationError(spec.path, f"must be at most {spec.maximum:g}", text)


def parse_integer(text: str) -> int:
    if not INTEGER_PATTERN.match(text):
        raise ValueError(f"invalid digit found in '{text}'")
    return int(text)


def parse_float(text: str) -> float:
    if not FLOAT_PATTERN.match(text):
        raise ValueError(f"'{text}' is not a valid decimal number")
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"'{text}' is out of range")
    return number


def _validate_integer(spec: FieldSpec, text: str) -> IntegerValue:
    try:
        number = parse_integer(text)
    except ValueError as e:
        raise ValidationError(spec.path, str(e), text)
    _check_range(spec, number, text)
    return IntegerValue(number)


def _validate_float(spec: FieldSpec, text: str) -> FloatValue:
    try:
        number = parse_float(text)
    except ValueError as e:
        raise ValidationError(spec.path, str(e), text)
    _check_range(spec, number, text)
    return FloatValue(number)


def parse_boolean(text: str) -> bool:
    lowered = text.lower()
    if lowered in TRUE_LITERALS:
        return True
    if lowered in FALSE_LITERALS:
        return False
    raise ValueError(BOOLEAN_HINT)


def _validate_boolean(spec: FieldSpec, text: str) -> BooleanValue:
    try:
        return BooleanValue(parse_boolean(text))
    except ValueError:
        raise ValidationError(spec.path, f"{BOOLEAN_HINT} (got '{text}')", text)


def _parse_channel(token: str, maximum: int) -> int:
    number = parse_integer(token)
    if not 0 <= number <= maximum:
        raise ValueError(f"channel {number} out of range")
    return number


def _parse_functional_color(name: str, body: str) -> int:
    """``rgb(rrggbb)``, ``rgba(rrggbbaa)`` or the decimal ``rgba(r, g, b, a)`` form."""
    body = body.strip()
    name = name.lower()
    if "," not in body:
        digits = 6 if name == "rgb" else 8
        if not re.fullmatch(rf"[0-9a-fA-F]{{{digits}}}", body):
            raise ValueError(f"{name}() expects {digits} hex digits")
        red, green, blue = (int(body[i:i + 2], 16) for i in (0, 2, 4))
        alpha = int(body[6:8], 16) if name == "rgba" else 0xFF
    else:
        parts = [p.strip() for p in body.split(",")]
        expected = 3 if name == "rgb" else 4
        if len(parts) != expected:
            raise ValueError(f"{name}() expects {expected} components")
        red, green, blue = (_parse_channel(p, 255) for p in parts[:3])
        alpha = 0xFF
        if name == "rgba":
            fraction = parse_float(parts[3])
            if not 0.0 <= fraction <= 1.0:
                raise ValueError("alpha must be between 0 and 1")
            alpha = round(fraction * 255)
    return (alpha << 24) | (red << 16) | (green << 8) | blue


def parse_color_token(token: str) -> int:
    """Single color token -> 32-bit ARGB integer."""
    hex_match = HEX_COLOR.match(token)
    if hex_match:
        return int(hex_match.group(1), 16)
    functional = FUNCTIONAL_COLOR.match(token)
    if functional:
        return _parse_functional_color(functional.group(1), functional.group(2))
    raise ValueError(f"unrecognized color '{token}'")


def _split_color_tokens(text: str) -> list[str]:
    """Split on whitespace outside parentheses."""
    tokens, depth, current = [], 0, []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char.isspace() and depth == 0:
            if current:
                tokens.append("".join(current))
                current = []
            continue
        current.append(char)
    if current:
        tokens.append("".join(current))
    return tokens


def _validate_color(spec: FieldSpec, text: str) -> ColorValue:
    tokens = _split_color_tokens(text)
    angle = None
    if len(tokens) > 1:
        angle_match = ANGLE.match(tokens[-1])
        if angle_match:
            angle = int(angle_match.group(1))
            tokens = tokens[:-1]
    if not tokens:
        raise ValidationError(spec.path, COLOR_HINT, text)
    try:
        colors = tuple(parse_color_token(token) for token in tokens)
    except ValueError:
        raise ValidationError(spec.path, COLOR_HINT, text)
    return ColorValue(colors, angle)


def _validate_scalar_list(spec: FieldSpec, text: str) -> ScalarListValue:
    tokens = text.split()
    if spec.broadcast and len(tokens) == 1:
        tokens = tokens * spec.length
    if len(tokens) != spec.length:
        raise ValidationError(
            spec.path,
            f"expects exactly {spec.length} whitespace-separated numbers, got {len(tokens)}",
            text,
        )
    numbers: list[float] = []
    for token in tokens:
        try:
            number = parse_integer(token) if INTEGER_PATTERN.match(token) else parse_float(token)
        except ValueError as e:
            raise ValidationError(spec.path, str(e), text)
        _check_range(spec, number, text)
        numbers.append(number)
    return ScalarListValue(tuple(numbers))


def _validate_text(spec: FieldSpec, text: str) -> TextValue:
    if "\n" in text:
        raise ValidationError(spec.path, "must be a single line", text)
    return TextValue(text)


def _validate_enum(spec: FieldSpec, text: str) -> EnumValue:
    if text not in spec.options:
        choices = ", ".join(repr(option) for option in spec.options)
        raise ValidationError(spec.path, f"must be one of: {choices}", text)
    return EnumValue(text)


VALIDATORS: dict[FieldKind, Callable[[FieldSpec, str], FieldValue]] = {
    FieldKind.INTEGER: _validate_integer,
    FieldKind.FLOAT: _validate_float,
    FieldKind.BOOLEAN: _validate_boolean,
    FieldKind.COLOR: _validate_color,
    FieldKind.SCALAR_LIST: _validate_scalar_list,
    FieldKind.TEXT: _validate_text,
    FieldKind.ENUM: _validate_enum,
}


def validate(spec: FieldSpec, raw: Any) -> FieldValue:
    """
    Validate raw input for a field.

    Args:
        spec: Descriptor of the target field
        raw: User, file or channel supplied value (usually text)

    Returns:
        FieldValue whose kind matches ``spec.kind``

    Raises:
        ValidationError: If the input is not acceptable for the field
    """
    text = _to_text(raw)
    if not text and spec.kind not in (FieldKind.TEXT, FieldKind.ENUM):
        raise ValidationError(spec.path, "value cannot be empty", text)
    return VALIDATORS[spec.kind](spec, text)
