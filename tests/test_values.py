"""Tests for the Field Type System."""
import pytest

from hyprconf.config_engine.fields import (
    DEFAULT_VALUES,
    FIELD_SPECS,
    get_spec,
    is_default,
    spec_for_path,
    specs_in,
)
from hyprconf.config_engine.schema import (
    BooleanValue,
    ColorValue,
    EnumValue,
    FieldKind,
    FloatValue,
    IntegerValue,
    ScalarListValue,
    Section,
    TextValue,
    format_number,
)
from hyprconf.config_engine.values import parse_color_token, validate
from hyprconf.errors import ValidationError


GARBAGE_INPUTS = [
    "1", "abc", "", "  ", "0xff000000", "-3", "1 2 3", "true", "nan", "1e999",
    "rgba(1,2)", "rgb(", "0xff000000 45deg", "45deg", ")(", "line\nbreak",
    None, True, 3.5, -0.0, [1, 2, 3, 4], [], ("a", "b"),
]


def spec(section, key):
    found = get_spec(section, key)
    assert found is not None
    return found


class TestIntegerFields:
    """Tests for integer validation."""

    def test_valid_integer(self):
        """Plain digits become an IntegerValue."""
        assert validate(spec("general", "border_size"), "3") == IntegerValue(3)

    def test_surrounding_whitespace_ignored(self):
        """Whitespace around the value is stripped."""
        assert validate(spec("general", "border_size"), "  2 ") == IntegerValue(2)

    def test_non_numeric_rejected(self):
        """Letters are rejected with an invalid digit message."""
        with pytest.raises(ValidationError) as exc:
            validate(spec("general", "border_size"), "abc")
        assert "invalid digit" in str(exc.value)
        assert exc.value.path == "general:border_size"

    def test_negative_rejected_for_non_negative_field(self):
        """Non-negative fields reject negative numbers."""
        with pytest.raises(ValidationError) as exc:
            validate(spec("general", "border_size"), "-5")
        assert "must be non-negative" in str(exc.value)

    def test_float_text_rejected(self):
        """A decimal is not an integer."""
        with pytest.raises(ValidationError):
            validate(spec("decoration", "rounding"), "2.5")

    def test_range_enforced(self):
        """Bounded integers reject values outside the range."""
        with pytest.raises(ValidationError) as exc:
            validate(spec("input", "follow_mouse"), "4")
        assert "at most 3" in str(exc.value)

    def test_empty_rejected(self):
        """Empty input is not a number."""
        with pytest.raises(ValidationError) as exc:
            validate(spec("general", "border_size"), "")
        assert "cannot be empty" in str(exc.value)


class TestFloatFields:
    """Tests for float validation."""

    def test_valid_float(self):
        """Decimal text becomes a FloatValue."""
        assert validate(spec("input", "sensitivity"), "-0.5") == FloatValue(-0.5)

    def test_integer_text_accepted(self):
        """An integer literal is a valid float."""
        assert validate(spec("decoration", "active_opacity"), "1") == FloatValue(1.0)

    def test_out_of_range(self):
        """Sensitivity is limited to -1..1."""
        with pytest.raises(ValidationError) as exc:
            validate(spec("input", "sensitivity"), "2")
        assert "at most 1" in str(exc.value)

    def test_not_a_number(self):
        """Garbage is rejected."""
        with pytest.raises(ValidationError):
            validate(spec("input", "sensitivity"), "fast")

    def test_infinity_rejected(self):
        """Overflowing literals are rejected."""
        with pytest.raises(ValidationError):
            validate(spec("decoration", "dim_strength"), "1e999")


class TestBooleanFields:
    """Tests for boolean validation."""

    @pytest.mark.parametrize("raw", ["true", "1", "yes", "TRUE", "Yes"])
    def test_true_literals(self, raw):
        """All true literals, in any case."""
        assert validate(spec("animations", "enabled"), raw) == BooleanValue(True)

    @pytest.mark.parametrize("raw", ["false", "0", "no", "False", "NO"])
    def test_false_literals(self, raw):
        """All false literals, in any case."""
        assert validate(spec("animations", "enabled"), raw) == BooleanValue(False)

    def test_python_bool_accepted(self):
        """Already-typed booleans are accepted."""
        assert validate(spec("input", "natural_scroll"), True) == BooleanValue(True)

    def test_unknown_literal_lists_accepted_values(self):
        """The error lists every accepted literal."""
        with pytest.raises(ValidationError) as exc:
            validate(spec("animations", "enabled"), "maybe")
        message = str(exc.value)
        assert "true/false" in message
        assert "1/0" in message
        assert "yes/no" in message


class TestColorFields:
    """Tests for color validation."""

    def test_hex_argb(self):
        """0xAARRGGBB is parsed to a single color."""
        value = validate(spec("general", "col.active_border"), "0xff33ccff")
        assert value == ColorValue((0xFF33CCFF,))
        assert value.render() == "0xff33ccff"

    def test_rgb_and_hex_normalize_to_same_value(self):
        """rgb(), rgba() and hex forms compare equal."""
        border = spec("general", "col.active_border")
        hex_value = validate(border, "0xffff0000")
        assert validate(border, "rgb(ff0000)") == hex_value
        assert validate(border, "rgba(ff0000ff)") == hex_value
        assert validate(border, "rgba(255, 0, 0, 1.0)") == hex_value

    def test_uppercase_hex_normalized(self):
        """Rendering is lowercase."""
        value = validate(spec("general", "col.inactive_border"), "0xFF444444")
        assert value.render() == "0xff444444"

    def test_gradient_with_angle(self):
        """Several colors and an angle form a gradient."""
        value = validate(spec("general", "col.active_border"), "0xff33ccff 0xff00ff99 45deg")
        assert value.colors == (0xFF33CCFF, 0xFF00FF99)
        assert value.angle == 45
        assert value.render() == "0xff33ccff 0xff00ff99 45deg"

    def test_not_a_color(self):
        """Arbitrary text is rejected."""
        with pytest.raises(ValidationError) as exc:
            validate(spec("general", "col.active_border"), "notacolor")
        assert "must be a valid color" in str(exc.value)

    def test_rgb_channel_out_of_range(self):
        """Decimal channels above 255 are rejected."""
        with pytest.raises(ValidationError):
            validate(spec("general", "col.active_border"), "rgb(256, 0, 0)")

    def test_parse_color_token(self):
        """Single tokens convert to ARGB integers."""
        assert parse_color_token("rgb(00ff00)") == 0xFF00FF00
        assert parse_color_token("rgba(00ff0080)") == 0x8000FF00


class TestScalarListFields:
    """Tests for scalar list validation."""

    def test_exact_count(self):
        """Four numbers fill the four gap slots."""
        value = validate(spec("general", "gaps_in"), "5 10 5 10")
        assert value == ScalarListValue((5, 10, 5, 10))
        assert value.render() == "5 10 5 10"

    def test_single_value_broadcast(self):
        """A single number fills every slot."""
        assert validate(spec("general", "gaps_out"), "20") == ScalarListValue((20, 20, 20, 20))

    def test_wrong_count(self):
        """Two numbers are neither one nor four."""
        with pytest.raises(ValidationError) as exc:
            validate(spec("general", "gaps_in"), "5 5")
        assert "exactly 4" in str(exc.value)

    def test_negative_gap_rejected(self):
        """Gaps are non-negative."""
        with pytest.raises(ValidationError):
            validate(spec("general", "gaps_in"), "5 -1 5 5")

    def test_list_input(self):
        """A Python list is accepted."""
        assert validate(spec("general", "gaps_in"), [2, 2, 2, 2]) == ScalarListValue((2, 2, 2, 2))


class TestTextAndEnumFields:
    """Tests for free text and enum validation."""

    def test_text(self):
        """Text is kept as is."""
        assert validate(spec("input", "kb_layout"), "us,de") == TextValue("us,de")

    def test_empty_text_allowed(self):
        """Free text may be empty."""
        assert validate(spec("input", "kb_variant"), "") == TextValue("")

    def test_multiline_text_rejected(self):
        """Config statements are single lines."""
        with pytest.raises(ValidationError):
            validate(spec("misc", "swallow_regex"), "a\nb")

    def test_enum_option(self):
        """A listed option is accepted."""
        assert validate(spec("general", "layout"), "master") == EnumValue("master")

    def test_enum_rejects_and_lists_options(self):
        """The error enumerates the valid options."""
        with pytest.raises(ValidationError) as exc:
            validate(spec("general", "layout"), "spiral")
        assert "'dwindle'" in str(exc.value)
        assert "'master'" in str(exc.value)


class TestFieldTable:
    """Tests for the static field table."""

    def test_every_spec_validates_its_default(self):
        """Defaults are valid values of the declared kind."""
        for path, field_spec in FIELD_SPECS.items():
            assert DEFAULT_VALUES[path].kind == field_spec.kind

    @pytest.mark.parametrize(
        "field_spec", list(FIELD_SPECS.values()), ids=lambda s: s.path
    )
    @pytest.mark.parametrize("raw", GARBAGE_INPUTS, ids=repr)
    def test_validate_tag_matches_field_kind(self, field_spec, raw):
        """validate either returns the field's declared kind or raises ValidationError."""
        try:
            value = validate(field_spec, raw)
        except ValidationError as e:
            assert e.path == field_spec.path
            return
        assert value.kind == field_spec.kind

    def test_lookup_by_native_and_own_section_name(self):
        """animations and animation name the same section."""
        assert get_spec("animations", "enabled") is get_spec(Section.ANIMATION, "enabled")
        assert spec_for_path("decoration:blur:enabled").kind == FieldKind.BOOLEAN

    def test_unknown_lookups(self):
        """Unknown sections and keys return None."""
        assert get_spec("nonsense", "enabled") is None
        assert get_spec("general", "nonsense") is None

    def test_specs_in_declaration_order(self):
        """Section listings keep declaration order."""
        keys = [s.key for s in specs_in("general")]
        assert keys[:3] == ["gaps_in", "gaps_out", "border_size"]

    def test_is_default(self):
        """Unset and default values both count as default."""
        border = spec("general", "border_size")
        assert is_default(border, None)
        assert is_default(border, IntegerValue(1))
        assert not is_default(border, IntegerValue(2))

    def test_format_number(self):
        """Integral floats lose the fraction."""
        assert format_number(2.0) == "2"
        assert format_number(0.25) == "0.25"
        assert format_number(7) == "7"
