"""Tests for the native config parser and serializer."""
import pytest

from hyprconf.config_engine.parser import ConfigParser, split_comment
from hyprconf.config_engine.schema import (
    BooleanValue,
    ColorValue,
    ConfigDocument,
    IntegerValue,
    ScalarListValue,
    UnrecognizedEntry,
)
from hyprconf.config_engine.serializer import ConfigSerializer


SAMPLE_CONFIG = """\
# Monitors and autostart
monitor = ,preferred,auto,1
$mainMod = SUPER
exec-once = waybar

general {
    gaps_in = 5
    gaps_out = 20
    border_size = 2
    col.active_border = rgba(33ccffee) rgba(00ff99ee) 45deg
    layout = dwindle
    no_focus_fallback = true  # not modelled
}

input:kb_layout = us

decoration {
    rounding = 10
    blur {
        enabled = true
        size = 3
    }
}

animations {
    enabled = yes
    bezier = myBezier, 0.05, 0.9, 0.1, 1.05
    animation = windows, 1, 7, myBezier
    animation = border, 0
}

device {
    name = epic-mouse-v1
    sensitivity = -0.5
}

bind = $mainMod, Q, exec, kitty
bind = $mainMod, C, killactive,
bindd = SUPER, F, Fullscreen, fullscreen, 0

windowrulev2 = float, class:^(pavucontrol)$
layerrule = blur, waybar
"""


@pytest.fixture
def parser():
    return ConfigParser()


@pytest.fixture
def serializer():
    return ConfigSerializer()


class TestParsing:
    """Tests for parsing native config text."""

    def test_sample_parses_cleanly(self, parser):
        """A representative config produces no warnings."""
        result = parser.parse(SAMPLE_CONFIG)
        assert result.ok
        assert result.warnings == []

    def test_scalar_fields(self, parser):
        """Known keys in managed sections become typed fields."""
        document = parser.parse(SAMPLE_CONFIG).document
        assert document.get("general", "border_size") == IntegerValue(2)
        assert document.get("general", "gaps_in") == ScalarListValue((5, 5, 5, 5))
        assert document.get("general", "col.active_border") == ColorValue(
            (0xEE33CCFF, 0xEE00FF99), 45
        )

    def test_nested_block_fields(self, parser):
        """Nested blocks join their names with ':'."""
        document = parser.parse(SAMPLE_CONFIG).document
        assert document.get("decoration", "blur:enabled") == BooleanValue(True)
        assert document.get("decoration", "blur:size") == IntegerValue(3)

    def test_top_level_category_key(self, parser):
        """'input:kb_layout' at top level is the same field as inside the block."""
        document = parser.parse(SAMPLE_CONFIG).document
        assert document.get("input", "kb_layout").render() == "us"

    def test_unknown_statements_are_kept(self, parser):
        """Unmodelled keys and blocks survive as raw entries."""
        document = parser.parse(SAMPLE_CONFIG).document
        raw = document.unrecognized
        assert UnrecognizedEntry("", "monitor", ",preferred,auto,1") in raw
        assert UnrecognizedEntry("", "$mainMod", "SUPER") in raw
        assert UnrecognizedEntry("general", "no_focus_fallback", "true") in raw
        assert UnrecognizedEntry("device", "name", "epic-mouse-v1") in raw

    def test_repeated_blocks_are_numbered(self, parser):
        """Each occurrence of an unknown block gets its own index."""
        text = "device {\n    name = a\n}\ndevice {\n    name = b\n}\n"
        document = parser.parse(text).document
        assert [(e.value, e.block) for e in document.unrecognized] == [("a", 0), ("b", 1)]

    def test_variable_reference_kept_verbatim(self, parser):
        """Values referencing $variables are not validated."""
        document = parser.parse("general {\n    col.active_border = $accent\n}\n").document
        assert document.get("general", "col.active_border") is None
        assert document.unrecognized == [UnrecognizedEntry("general", "col.active_border", "$accent")]

    def test_keybinds(self, parser):
        """Binds keep order, variables and labels."""
        document = parser.parse(SAMPLE_CONFIG).document
        assert [b.dispatcher for b in document.keybinds] == ["exec", "killactive", "fullscreen"]
        assert document.keybinds[0].modifiers == ("$mainMod",)
        assert document.keybinds[2].label == "Fullscreen"

    def test_animations_and_curves(self, parser):
        """bezier and animation statements become structured entries."""
        document = parser.parse(SAMPLE_CONFIG).document
        assert document.get("animations", "enabled") == BooleanValue(True)
        assert list(document.beziers) == ["myBezier"]
        assert [a.name for a in document.animations] == ["windows", "border"]

    def test_rules(self, parser):
        """Window and layer rules are collected."""
        document = parser.parse(SAMPLE_CONFIG).document
        assert document.window_rules[0].pattern == "class:^(pavucontrol)$"
        assert document.layer_rules[0].rule == "blur"

    def test_redefined_animation_replaces_earlier(self, parser):
        """The last animation line for a name wins."""
        text = "animations {\n    animation = windows, 1, 7, default\n    animation = windows, 0\n}\n"
        document = parser.parse(text).document
        assert len(document.animations) == 1
        assert document.animations[0].enabled is False

    def test_empty_text(self, parser):
        """An empty file is an empty document."""
        result = parser.parse("")
        assert result.ok
        assert result.document.is_empty()


class TestParseWarnings:
    """Tests for malformed input."""

    def test_invalid_value_is_skipped(self, parser):
        """A rejected value becomes a warning with its line number."""
        result = parser.parse("general {\n    border_size = abc\n    gaps_in = 2\n}\n")
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.line == 2
        assert "invalid digit" in warning.reason
        assert result.document.get("general", "border_size") is None
        assert result.document.get("general", "gaps_in") == ScalarListValue((2, 2, 2, 2))

    def test_line_without_assignment(self, parser):
        """Statements need 'key = value'."""
        result = parser.parse("this is not a statement\n")
        assert result.warnings[0].reason == "expected 'key = value'"

    def test_unmatched_closing_brace(self, parser):
        """A stray '}' is reported."""
        result = parser.parse("}\n")
        assert result.warnings[0].reason == "unmatched '}'"

    def test_unclosed_block(self, parser):
        """Blocks left open at end of file are reported."""
        result = parser.parse("general {\n    border_size = 2\n")
        assert not result.ok
        assert "unclosed" in result.warnings[0].reason
        assert result.document.get("general", "border_size") == IntegerValue(2)

    def test_rejected_block_skips_its_body(self, parser):
        """Statements inside a block with an invalid header are skipped."""
        result = parser.parse("bad block! {\n    a = 1\n}\nexec-once = waybar\n")
        assert [w.line for w in result.warnings] == [1, 2]
        assert result.document.unrecognized == [UnrecognizedEntry("", "exec-once", "waybar")]

    def test_malformed_bind(self, parser):
        """Broken binds do not stop the rest of the file."""
        result = parser.parse("bind = SUPER\nbind = SUPER, Q, killactive,\n")
        assert len(result.warnings) == 1
        assert len(result.document.keybinds) == 1


class TestComments:
    """Tests for comment handling."""

    def test_split_comment(self):
        """'#' starts a comment, '##' is a literal hash."""
        assert split_comment("a = b # note") == ("a = b ", "# note")
        assert split_comment("a = rgb(##fff)") == ("a = rgb(#fff)", None)
        assert split_comment("   # full line") == ("", "# full line")

    def test_escaped_hash_round_trips(self, parser, serializer):
        """Literal hashes are escaped again on output."""
        document = parser.parse("exec-once = notify-send ##1\n").document
        assert document.unrecognized[0].value == "notify-send #1"
        assert serializer.serialize(document) == "exec-once = notify-send ##1\n"

    def test_comments_reattached(self, parser, serializer):
        """Leading and inline comments stay with their statement."""
        text = "# My config\ngeneral {\n    border_size = 2  # thin\n}\n"
        output = serializer.serialize(parser.parse(text).document)
        assert output == "# My config\ngeneral {\n    border_size = 2 # thin\n}\n"

    def test_trailing_comment_kept(self, parser, serializer):
        """Comments after the last statement are kept at the end."""
        text = "exec-once = waybar\n\n# the end\n"
        output = serializer.serialize(parser.parse(text).document)
        assert output.endswith("# the end\n")


class TestSerialization:
    """Tests for canonical output."""

    def test_canonical_order(self, parser, serializer):
        """Sections come before binds, known keys in declaration order."""
        text = "bind = SUPER, Q, killactive,\ngeneral {\n    gaps_out = 10\n    border_size = 2\n}\n"
        output = serializer.serialize(parser.parse(text).document)
        assert output == (
            "general {\n"
            "    gaps_out = 10 10 10 10\n"
            "    border_size = 2\n"
            "}\n"
            "\n"
            "bind = SUPER, Q, killactive,\n"
        )

    def test_nested_blocks(self, serializer):
        """Nested fields are written as nested blocks."""
        document = ConfigDocument()
        document.put_field("decoration", "rounding", IntegerValue(8))
        document.put_field("decoration", "blur:enabled", BooleanValue(False))
        output = serializer.serialize(document)
        assert output == (
            "decoration {\n"
            "    rounding = 8\n"
            "    blur {\n"
            "        enabled = false\n"
            "    }\n"
            "}\n"
        )

    def test_submaps(self, parser, serializer):
        """Submap binds are grouped between submap and reset."""
        text = (
            "bind = SUPER, R, submap, resize\n"
            "submap = resize\n"
            "binde = , right, resizeactive, 10 0\n"
            "bind = , escape, submap, reset\n"
            "submap = reset\n"
        )
        document = parser.parse(text).document
        assert [b.submap for b in document.keybinds] == ["", "resize", "resize"]
        assert serializer.serialize(document) == (
            "bind = SUPER, R, submap, resize\n"
            "\n"
            "submap = resize\n"
            "binde = , right, resizeactive, 10 0\n"
            "bind = , escape, submap, reset\n"
            "submap = reset\n"
        )

    def test_empty_document(self, serializer):
        """Nothing in, nothing out."""
        assert serializer.serialize(ConfigDocument()) == ""

    def test_round_trip_preserves_document(self, parser, serializer):
        """Parsing serialized output yields an equal document."""
        first = parser.parse(SAMPLE_CONFIG).document
        second = parser.parse(serializer.serialize(first))
        assert second.ok
        assert second.document == first

    def test_serialization_is_stable(self, parser, serializer):
        """Serializing twice gives identical text."""
        once = serializer.serialize(parser.parse(SAMPLE_CONFIG).document)
        twice = serializer.serialize(parser.parse(once).document)
        assert once == twice

    def test_custom_indent(self, parser):
        """The indent string is configurable."""
        document = parser.parse("general {\n    border_size = 2\n}\n").document
        output = ConfigSerializer(indent="\t").serialize(document)
        assert "\tborder_size = 2" in output
