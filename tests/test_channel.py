"""Tests for the hyprctl control channel."""
import pytest

from hyprconf.channel.hyprctl import CommandResult, HyprCtl
from hyprconf.channel.replies import (
    decode_binds_reply,
    decode_list_reply,
    decode_modmask,
    decode_scalar_reply,
    read_scalar_reply,
    split_scalar_reply,
)
from hyprconf.config_engine.fields import get_spec
from hyprconf.config_engine.schema import (
    BooleanValue,
    ColorValue,
    FloatValue,
    IntegerValue,
    KeybindEntry,
    ScalarListValue,
    TextValue,
    WindowRuleEntry,
)
from hyprconf.errors import ChannelReplyError, ChannelUnavailable, ChannelWriteFailed


BINDS_BLOCK_REPLY = """\
bind
\tlocked: false
\tmouse: false
\trelease: false
\trepeat: false
\tmodmask: 64
\tsubmap:
\tkey: Q
\tkeycode: 0
\tdispatcher: killactive
\targ:

binde
\tlocked: false
\trepeat: true
\tmodmask: 65
\tsubmap: resize
\tkey: right
\tdispatcher: resizeactive
\targ: 10 0
"""


class FakeRunner:
    """Records argv lists and answers with queued results."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    async def __call__(self, argv):
        self.calls.append(argv)
        result = self.results.pop(0) if self.results else CommandResult(0, "ok")
        if isinstance(result, Exception):
            raise result
        result.command = " ".join(argv)
        return result


class TestScalarReplies:
    """Tests for getoption reply decoding."""

    def test_split_reply(self):
        """Tag, payload and set flag are separated."""
        reply = split_scalar_reply("int: 2\nset: true\n")
        assert reply.tag == "int"
        assert reply.payload == "2"
        assert reply.is_set is True

    def test_set_flag_optional(self):
        """Older replies carry no set line."""
        assert split_scalar_reply("float: 0.5").is_set is None

    def test_integer(self):
        """int replies decode integer fields."""
        value, is_set = read_scalar_reply(get_spec("general", "border_size"), "int: 2\nset: false")
        assert value == IntegerValue(2)
        assert is_set is False

    def test_float(self):
        """Trailing zeros are irrelevant."""
        spec = get_spec("input", "sensitivity")
        assert decode_scalar_reply(spec, "float: -0.500000\nset: true") == FloatValue(-0.5)

    def test_boolean_from_int(self):
        """Booleans are reported as 0/1 integers."""
        spec = get_spec("input", "natural_scroll")
        assert decode_scalar_reply(spec, "int: 1\nset: true") == BooleanValue(True)

    def test_color_from_signed_int(self):
        """Colors reported as signed 32-bit integers become ARGB."""
        spec = get_spec("general", "col.inactive_border")
        value = decode_scalar_reply(spec, "int: -13382401\nset: true")
        assert value == ColorValue((0xFF33CCFF,))

    def test_gradient_from_custom_type(self):
        """Gradients come back as bare hex tokens."""
        spec = get_spec("general", "col.active_border")
        value = decode_scalar_reply(spec, "custom type: ee33ccff ee00ff99 45deg\nset: true")
        assert value == ColorValue((0xEE33CCFF, 0xEE00FF99), 45)

    def test_gaps_from_custom_type(self):
        """Gap lists come back as four numbers."""
        spec = get_spec("general", "gaps_out")
        value = decode_scalar_reply(spec, "custom type: 20 20 10 20\nset: true")
        assert value == ScalarListValue((20, 20, 10, 20))

    def test_quoted_string(self):
        """String payloads lose their quotes."""
        spec = get_spec("input", "kb_layout")
        assert decode_scalar_reply(spec, 'str: "us"\nset: true') == TextValue("us")

    def test_tag_mismatch(self):
        """A string reply for an integer field is rejected."""
        with pytest.raises(ChannelReplyError) as exc:
            decode_scalar_reply(get_spec("general", "border_size"), "str: wide")
        assert "does not fit" in str(exc.value)

    def test_invalid_payload(self):
        """Payloads still go through field validation."""
        with pytest.raises(ChannelReplyError):
            decode_scalar_reply(get_spec("general", "border_size"), "int: -3")

    def test_no_such_option(self):
        """Unknown options are reported as reply errors."""
        with pytest.raises(ChannelReplyError):
            split_scalar_reply("no such option")

    def test_unrecognized_reply(self):
        """Replies without a type tag are rejected."""
        with pytest.raises(ChannelReplyError):
            split_scalar_reply("hello")

    def test_empty_reply(self):
        """An empty reply is an error."""
        with pytest.raises(ChannelReplyError):
            split_scalar_reply("  \n")


class TestListReplies:
    """Tests for list and binds decoding."""

    def test_list_reply(self):
        """One entry per non-empty line."""
        assert decode_list_reply("a\n\n  b  \n") == ["a", "b"]

    def test_modmask(self):
        """Bits map to modifier names."""
        assert decode_modmask(64) == ("SUPER",)
        assert decode_modmask(65) == ("SUPER", "SHIFT")
        assert decode_modmask(0) == ()

    def test_block_format(self):
        """Block replies decode to keybind entries."""
        binds = decode_binds_reply(BINDS_BLOCK_REPLY)
        assert binds == [
            KeybindEntry(("SUPER",), "Q", "killactive"),
            KeybindEntry(
                ("SUPER", "SHIFT"), "right", "resizeactive", "10 0",
                bind_type="binde", submap="resize",
            ),
        ]

    def test_one_line_format(self):
        """Compact replies decode too."""
        binds = decode_binds_reply("64,Q -> killactive\n65,Return -> exec [kitty]\n")
        assert binds[0] == KeybindEntry(("SUPER",), "Q", "killactive")
        assert binds[1].modifiers == ("SUPER", "SHIFT")
        assert binds[1].arg == "kitty"

    def test_unrecognized_line(self):
        """Garbage in the binds output is reported."""
        with pytest.raises(ChannelReplyError):
            decode_binds_reply("something else entirely")

    def test_invalid_modmask(self):
        """Modmasks must be numeric."""
        with pytest.raises(ChannelReplyError):
            decode_binds_reply("bind\n\tmodmask: super\n\tkey: Q\n")


class TestCommandResult:
    """Tests for CommandResult."""

    def test_success(self):
        """Exit status 0 is success."""
        assert CommandResult(0, "ok").success
        assert not CommandResult(1, "", "boom").success

    def test_output_prefers_stdout(self):
        """stderr is used only when stdout is empty."""
        assert CommandResult(0, " ok \n", "warn").output == "ok"
        assert CommandResult(1, "", " boom ").output == "boom"


class TestHyprCtl:
    """Tests for HyprCtl with a fake runner."""

    @pytest.mark.asyncio
    async def test_set_option(self):
        """Writes use 'keyword path value'."""
        runner = FakeRunner(CommandResult(0, "ok"))
        ctl = HyprCtl(runner=runner)
        result = await ctl.set_option(get_spec("general", "border_size"), IntegerValue(3))
        assert result.success
        assert runner.calls == [["hyprctl", "keyword", "general:border_size", "3"]]

    @pytest.mark.asyncio
    async def test_write_refused(self):
        """Any reply other than 'ok' is a failed write."""
        runner = FakeRunner(CommandResult(0, "error: invalid field"))
        ctl = HyprCtl(runner=runner)
        with pytest.raises(ChannelWriteFailed) as exc:
            await ctl.set_option(get_spec("general", "border_size"), IntegerValue(3))
        assert exc.value.reason == "error: invalid field"
        assert exc.value.command == "keyword general:border_size 3"

    @pytest.mark.asyncio
    async def test_write_non_zero_exit(self):
        """Non-zero exit is a failed write."""
        ctl = HyprCtl(runner=FakeRunner(CommandResult(2, "", "")))
        with pytest.raises(ChannelWriteFailed) as exc:
            await ctl.reload()
        assert "exit status 2" in str(exc.value)

    @pytest.mark.asyncio
    async def test_no_session(self):
        """A missing instance signature means the channel is unavailable."""
        reply = CommandResult(1, "", "HYPRLAND_INSTANCE_SIGNATURE not set! (is hyprland running?)")
        ctl = HyprCtl(runner=FakeRunner(reply))
        with pytest.raises(ChannelUnavailable):
            await ctl.reload()

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        """A missing executable means the channel is unavailable."""
        ctl = HyprCtl(binary="no-such-hyprctl", runner=FakeRunner(FileNotFoundError("no-such-hyprctl")))
        with pytest.raises(ChannelUnavailable):
            await ctl.version()

    @pytest.mark.asyncio
    async def test_is_available(self):
        """is_available reports reachability without raising."""
        assert await HyprCtl(runner=FakeRunner(CommandResult(0, "Hyprland 0.45.0"))).is_available()
        gone = HyprCtl(runner=FakeRunner(PermissionError("denied")))
        assert await gone.is_available() is False

    @pytest.mark.asyncio
    async def test_read_option(self):
        """getoption replies keep the set flag."""
        runner = FakeRunner(CommandResult(0, "int: 3\nset: true\n"))
        reading = await HyprCtl(runner=runner).read_option(get_spec("general", "border_size"))
        assert reading.value == IntegerValue(3)
        assert reading.is_set is True
        assert runner.calls == [["hyprctl", "getoption", "general:border_size"]]

    @pytest.mark.asyncio
    async def test_query_failure(self):
        """A failed query raises a reply error."""
        ctl = HyprCtl(runner=FakeRunner(CommandResult(1, "", "bad request")))
        with pytest.raises(ChannelReplyError):
            await ctl.get_option(get_spec("general", "border_size"))

    @pytest.mark.asyncio
    async def test_get_all_options_keeps_errors(self):
        """Per-option failures are recorded next to the readings."""
        specs = [get_spec("general", "border_size"), get_spec("input", "kb_layout")]
        runner = FakeRunner(CommandResult(0, "int: 2\nset: true"), CommandResult(0, "int: 2"))
        snapshot = await HyprCtl(runner=runner).get_all_options(specs)
        assert snapshot.readings["general:border_size"].value == IntegerValue(2)
        assert "input:kb_layout" in snapshot.errors

    @pytest.mark.asyncio
    async def test_get_binds(self):
        """binds output is decoded."""
        runner = FakeRunner(CommandResult(0, BINDS_BLOCK_REPLY))
        binds = await HyprCtl(runner=runner).get_binds()
        assert [b.dispatcher for b in binds] == ["killactive", "resizeactive"]

    @pytest.mark.asyncio
    async def test_keybind_and_rule_writes(self):
        """Binds, unbinds and rules use keyword statements."""
        runner = FakeRunner()
        ctl = HyprCtl(binary="/usr/bin/hyprctl", runner=runner)
        bind = KeybindEntry(("SUPER", "SHIFT"), "Q", "killactive")
        await ctl.add_keybind(bind)
        await ctl.remove_keybind(bind)
        await ctl.add_rule(WindowRuleEntry("float", "class:^(kitty)$", version=2))
        await ctl.dispatch("workspace", "2")
        assert runner.calls == [
            ["/usr/bin/hyprctl", "keyword", "bind", "SUPER SHIFT, Q, killactive,"],
            ["/usr/bin/hyprctl", "keyword", "unbind", "SUPER SHIFT, Q"],
            ["/usr/bin/hyprctl", "keyword", "windowrulev2", "float, class:^(kitty)$"],
            ["/usr/bin/hyprctl", "dispatch", "workspace", "2"],
        ]
