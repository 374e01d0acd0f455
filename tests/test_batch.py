"""Tests for batch operations between documents and profiles."""
import pytest

from hyprconf.config_engine.schema import (
    AnimationEntry,
    BezierCurve,
    ColorValue,
    ConfigDocument,
    IntegerValue,
    KeybindEntry,
    TextValue,
    UnrecognizedEntry,
    WindowRuleEntry,
)
from hyprconf.config_store.batch import (
    BatchOperation,
    apply_profile,
    combine,
    concat_unique,
    merge_profile,
    replace_with_profile,
)


def document(**fields) -> ConfigDocument:
    doc = ConfigDocument()
    for path, value in fields.items():
        section, key = path.split("__")
        doc.put_field(section, key, value)
    return doc


@pytest.fixture
def current():
    doc = document(general__border_size=IntegerValue(2), input__kb_layout=TextValue("us"))
    doc.keybinds.append(KeybindEntry(("SUPER",), "Q", "killactive", label="Close"))
    doc.window_rules.append(WindowRuleEntry("float", "class:^(kitty)$", version=2))
    doc.unrecognized.append(UnrecognizedEntry("", "monitor", ",preferred,auto,1"))
    return doc


@pytest.fixture
def profile():
    doc = document(general__border_size=IntegerValue(5), decoration__rounding=IntegerValue(10))
    doc.keybinds.append(KeybindEntry(("super",), "q", "killactive", label="Kill"))
    doc.keybinds.append(KeybindEntry(("SUPER",), "Return", "exec", "kitty"))
    doc.window_rules.append(WindowRuleEntry("float", "class:^(kitty)$", version=2))
    doc.unrecognized.append(UnrecognizedEntry("", "monitor", "DP-1,2560x1440,0x0,1"))
    return doc


class TestApply:
    """Tests for Apply."""

    def test_profile_wins_on_conflict(self, current, profile):
        """Apply takes the profile's border_size."""
        result = apply_profile(current, profile)
        assert result.get("general", "border_size") == IntegerValue(5)

    def test_unset_profile_fields_untouched(self, current, profile):
        """Fields the profile does not set are kept."""
        result = apply_profile(current, profile)
        assert result.get("input", "kb_layout") == TextValue("us")
        assert result.get("decoration", "rounding") == IntegerValue(10)

    def test_lists_deduplicated_first_wins(self, current, profile):
        """Duplicate binds keep the first occurrence and its label."""
        result = apply_profile(current, profile)
        assert [b.key for b in result.keybinds] == ["Q", "Return"]
        assert result.keybinds[0].label == "Close"
        assert len(result.window_rules) == 1

    def test_raw_entries_replaced(self, current, profile):
        """A verbatim statement set by the profile replaces the current one."""
        result = apply_profile(current, profile)
        assert [e.value for e in result.unrecognized] == ["DP-1,2560x1440,0x0,1"]

    def test_animations_replaced_by_name(self):
        """Profile animations override those with the same name."""
        current = ConfigDocument(animations=[AnimationEntry("windows", True, 7.0, "default")])
        profile = ConfigDocument(
            beziers={"snappy": BezierCurve("snappy", (0.05, 0.9, 0.1, 1.05))},
            animations=[AnimationEntry("windows", True, 3.0, "snappy")],
        )
        result = apply_profile(current, profile)
        assert result.animations == [AnimationEntry("windows", True, 3.0, "snappy")]
        assert "snappy" in result.beziers

    def test_typed_value_replaces_variable(self):
        """A typed profile value drops the current $variable assignment."""
        current = ConfigDocument()
        current.unrecognized.append(UnrecognizedEntry("general", "col.active_border", "$accent"))
        profile = document(**{"general__col.active_border": ColorValue((0xFF33CCFF,))})
        result = apply_profile(current, profile)
        assert result.get("general", "col.active_border") == ColorValue((0xFF33CCFF,))
        assert result.verbatim_for("general", "col.active_border") == []

    def test_variable_replaces_typed_value(self, current):
        """A $variable in the profile drops the current typed value."""
        profile = ConfigDocument()
        profile.unrecognized.append(UnrecognizedEntry("general", "border_size", "$border"))
        result = apply_profile(current, profile)
        assert result.get("general", "border_size") is None
        assert [e.value for e in result.verbatim_for("general", "border_size")] == ["$border"]

    def test_inputs_not_mutated(self, current, profile):
        """Neither input document changes."""
        before_current, before_profile = current.copy(), profile.copy()
        apply_profile(current, profile)
        assert current == before_current
        assert profile == before_profile


class TestMerge:
    """Tests for Merge."""

    def test_current_wins_on_conflict(self, current, profile):
        """Merge keeps the current border_size."""
        result = merge_profile(current, profile)
        assert result.get("general", "border_size") == IntegerValue(2)

    def test_fills_unset_fields(self, current, profile):
        """Fields the current document leaves unset are filled."""
        result = merge_profile(current, profile)
        assert result.get("decoration", "rounding") == IntegerValue(10)

    def test_fills_default_fields(self, profile):
        """A current value equal to the default counts as unset."""
        current = document(general__border_size=IntegerValue(1))
        result = merge_profile(current, profile)
        assert result.get("general", "border_size") == IntegerValue(5)

    def test_lists_still_concatenate(self, current, profile):
        """Merge concatenates lists like Apply."""
        result = merge_profile(current, profile)
        assert [b.key for b in result.keybinds] == ["Q", "Return"]
        assert result.keybinds[0].label == "Close"

    def test_raw_entries_kept(self, current, profile):
        """Current verbatim statements win."""
        result = merge_profile(current, profile)
        assert [e.value for e in result.unrecognized] == [",preferred,auto,1"]

    def test_apply_and_merge_differ(self, current, profile):
        """Apply yields 5, Merge yields 2."""
        assert combine(BatchOperation.APPLY, current, profile).get("general", "border_size") == IntegerValue(5)
        assert combine(BatchOperation.MERGE, current, profile).get("general", "border_size") == IntegerValue(2)

    def test_variable_field_kept(self, profile):
        """A field set through a $variable is not filled by the profile."""
        current = ConfigDocument()
        current.unrecognized.append(UnrecognizedEntry("general", "border_size", "$border"))
        result = merge_profile(current, profile)
        assert result.get("general", "border_size") is None
        assert [e.value for e in result.verbatim_for("general", "border_size")] == ["$border"]


class TestReplaceAndBackup:
    """Tests for Replace and Backup."""

    def test_replace_discards_current(self, current, profile):
        """Replace yields a copy of the profile."""
        result = replace_with_profile(current, profile)
        assert result == profile
        assert result is not profile
        assert result.get("input", "kb_layout") is None

    def test_replace_keeps_profile_duplicates(self, current):
        """Replace does not deduplicate."""
        bind = KeybindEntry(("SUPER",), "Q", "killactive")
        profile = ConfigDocument(keybinds=[bind, bind])
        assert len(combine(BatchOperation.REPLACE, current, profile).keybinds) == 2

    def test_backup_leaves_document_unchanged(self, current, profile):
        """Backup returns an equal copy of the current document."""
        result = combine("backup", current, profile)
        assert result == current
        assert result is not current

    def test_unknown_operation(self, current, profile):
        """Unknown operation names raise."""
        with pytest.raises(ValueError):
            combine("explode", current, profile)


class TestConcatUnique:
    """Tests for concat_unique."""

    def test_first_occurrence_wins(self):
        """Later duplicates are dropped."""
        merged = concat_unique([("a", 1), ("b", 2)], [("a", 3), ("c", 4)], lambda x: (x[0],))
        assert merged == [("a", 1), ("b", 2), ("c", 4)]

    def test_duplicates_within_one_list(self):
        """Duplicates inside the first list collapse too."""
        assert concat_unique([1, 1, 2], [], lambda x: (x,)) == [1, 2]
