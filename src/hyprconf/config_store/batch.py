"""Batch operations between the active document and a stored profile.

Apply:   profile values win on every field the profile sets.
Merge:   current values win; the profile only fills fields the current
         document leaves unset or at their schema default.
Replace: the profile's document, deep-copied.
Backup:  no change to the document.

Keybind and rule lists are concatenated with duplicate suppression in every
mode except Replace; the first occurrence of a duplicate is the one kept.
"""
import logging
from enum import Enum
from typing import Callable, Iterable, TypeVar

from ..config_engine.fields import get_spec, is_default
from ..config_engine.schema import ConfigDocument, Section, UnrecognizedEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BatchOperation(str, Enum):
    """Operations that combine the active document with a profile."""
    APPLY = "apply"
    MERGE = "merge"
    REPLACE = "replace"
    BACKUP = "backup"


def concat_unique(first: Iterable[T], second: Iterable[T], identity: Callable[[T], tuple]) -> list[T]:
    """Concatenate two lists, dropping later entries whose identity was already seen."""
    seen: set = set()
    merged: list[T] = []
    for entry in [*first, *second]:
        key = identity(entry)
        if key in seen:
            continue
        seen.add(key)
        merged.append(entry)
    return merged


def _raw_key(entry: UnrecognizedEntry) -> tuple:
    return (entry.section, entry.block, entry.key)


def _combine_lists(result: ConfigDocument, current: ConfigDocument, profile: ConfigDocument) -> None:
    result.keybinds = concat_unique(current.keybinds, profile.keybinds, lambda b: b.identity)
    result.window_rules = concat_unique(current.window_rules, profile.window_rules, lambda r: r.identity)
    result.layer_rules = concat_unique(current.layer_rules, profile.layer_rules, lambda r: r.identity)


def apply_profile(current: ConfigDocument, profile: ConfigDocument) -> ConfigDocument:
    """
    Overlay a profile onto the current document.

    Every field present in the profile replaces the current value; fields
    the profile does not set are left untouched.
    """
    result = current.copy()
    profile = profile.copy()
    for section, key, value in profile.iter_fields():
        result.put_field(section, key, value)
    _combine_lists(result, current.copy(), profile)

    result.beziers.update(profile.beziers)
    by_name = {a.name: i for i, a in enumerate(result.animations)}
    for animation in profile.animations:
        if animation.name in by_name:
            result.animations[by_name[animation.name]] = animation
        else:
            result.animations.append(animation)

    # Verbatim entries: the profile's value wins for a repeated key
    replaced = {_raw_key(e) for e in profile.unrecognized}
    result.unrecognized = [e for e in result.unrecognized if _raw_key(e) not in replaced]
    result.unrecognized.extend(profile.unrecognized)
    for entry in profile.unrecognized:
        section = Section.from_native(entry.section)
        if section is not None:
            result.remove_field(section, entry.key)
    result.unrecognized.sort(key=lambda e: e.group_key)
    return result


def merge_profile(current: ConfigDocument, profile: ConfigDocument) -> ConfigDocument:
    """
    Merge a profile into the current document.

    Current values win on conflict; the profile fills only fields that are
    unset or still at their schema default.
    """
    result = current.copy()
    profile = profile.copy()
    for section, key, value in profile.iter_fields():
        spec = get_spec(section, key)
        existing = result.get(section, key)
        if result.verbatim_for(section, key):
            # set through a $variable
            continue
        if spec is not None and is_default(spec, existing):
            result.put_field(section, key, value)
    _combine_lists(result, current.copy(), profile)

    for name, curve in profile.beziers.items():
        result.beziers.setdefault(name, curve)
    known = {a.name for a in result.animations}
    result.animations.extend(a for a in profile.animations if a.name not in known)

    present = {_raw_key(e) for e in result.unrecognized}
    result.unrecognized.extend(e for e in profile.unrecognized if _raw_key(e) not in present)
    result.unrecognized.sort(key=lambda e: e.group_key)
    return result


def replace_with_profile(current: ConfigDocument, profile: ConfigDocument) -> ConfigDocument:
    """Discard the current document entirely."""
    return profile.copy()


def combine(operation: BatchOperation, current: ConfigDocument, profile: ConfigDocument) -> ConfigDocument:
    """
    Compute the document a batch operation produces.

    Args:
        operation: Batch operation to run
        current: Active document (never mutated)
        profile: Source profile document (never mutated)

    Returns:
        New document; for BACKUP a copy of ``current``
    """
    operation = BatchOperation(operation)
    if operation == BatchOperation.APPLY:
        result = apply_profile(current, profile)
    elif operation == BatchOperation.MERGE:
        result = merge_profile(current, profile)
    elif operation == BatchOperation.REPLACE:
        result = replace_with_profile(current, profile)
    else:
        result = current.copy()
    logger.debug(
        f"{operation.value}: {current.field_count} -> {result.field_count} fields, "
        f"{len(current.keybinds)} -> {len(result.keybinds)} keybinds"
    )
    return result
