"""Portable YAML snapshot of a ConfigDocument.

The same shape is embedded in profile files and produced by the snapshot
export. Loading re-validates every value; a snapshot is never trusted
blindly.
"""
import json
import logging
from typing import Any, Optional

import yaml

from ..config_engine.schema import (
    SCALAR_SECTIONS,
    AnimationEntry,
    ConfigDocument,
    KeybindEntry,
    LayerRuleEntry,
    Section,
    UnrecognizedEntry,
    WindowRuleEntry,
)
from ..config_engine.validator import ConfigValidator
from ..config_engine.values import parse_boolean
from ..errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = "hyprconf-snapshot"
SNAPSHOT_VERSION = 1


def document_to_dict(document: ConfigDocument) -> dict[str, Any]:
    """Plain-data form of a document, ready for yaml.dump."""
    return {
        "format": SNAPSHOT_FORMAT,
        "version": SNAPSHOT_VERSION,
        "fields": {
            section.value: {key: value.to_plain() for key, value in document.fields[section].items()}
            for section in SCALAR_SECTIONS
            if document.fields[section]
        },
        "keybinds": [
            {
                "bind_type": bind.bind_type,
                "modifiers": list(bind.modifiers),
                "key": bind.key,
                "dispatcher": bind.dispatcher,
                "arg": bind.arg,
                "label": bind.label,
                "submap": bind.submap,
            }
            for bind in document.keybinds
        ],
        "window_rules": [
            {"rule": r.rule, "pattern": r.pattern, "params": r.params, "version": r.version}
            for r in document.window_rules
        ],
        "layer_rules": [
            {"rule": r.rule, "pattern": r.pattern, "params": r.params}
            for r in document.layer_rules
        ],
        "beziers": {name: list(curve.points) for name, curve in document.beziers.items()},
        "animations": [
            {
                "name": a.name,
                "enabled": a.enabled,
                "speed": a.speed,
                "curve": a.curve,
                "style": a.style,
            }
            for a in document.animations
        ],
        "unrecognized": [
            {"section": e.section, "key": e.key, "value": e.value, "block": e.block}
            for e in document.unrecognized
        ],
    }


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def document_from_dict(
    data: dict[str, Any], validator: Optional[ConfigValidator] = None
) -> ConfigDocument:
    """
    Rebuild a document from its plain-data form.

    Every field value and entry is validated again.

    Raises:
        StorageError: If the data is not a valid snapshot
    """
    validator = validator or ConfigValidator()
    if not isinstance(data, dict):
        raise StorageError("Snapshot must be a mapping")
    fmt = data.get("format", SNAPSHOT_FORMAT)
    if fmt != SNAPSHOT_FORMAT:
        raise StorageError(f"Unknown snapshot format: {fmt}")
    version = data.get("version", SNAPSHOT_VERSION)
    if version != SNAPSHOT_VERSION:
        raise StorageError(f"Unsupported snapshot version: {version}")

    document = ConfigDocument()
    try:
        for section_name, values in (data.get("fields") or {}).items():
            section = Section.from_name(section_name)
            for key, raw in (values or {}).items():
                validator.apply_field(document, section, key, raw)

        for item in data.get("keybinds") or []:
            bind = KeybindEntry(
                modifiers=tuple(_text(m) for m in item.get("modifiers") or ()),
                key=_text(item.get("key")),
                dispatcher=_text(item.get("dispatcher")),
                arg=_text(item.get("arg")),
                label=item.get("label"),
                bind_type=_text(item.get("bind_type") or "bind"),
                submap=_text(item.get("submap")),
            )
            document.keybinds.append(validator.validate_keybind(bind))

        for item in data.get("window_rules") or []:
            rule = WindowRuleEntry(
                rule=_text(item.get("rule")),
                pattern=_text(item.get("pattern")),
                params=_text(item.get("params")),
                version=int(item.get("version", 1)),
            )
            document.window_rules.append(validator.validate_rule(rule))

        for item in data.get("layer_rules") or []:
            rule = LayerRuleEntry(
                rule=_text(item.get("rule")),
                pattern=_text(item.get("pattern")),
                params=_text(item.get("params")),
            )
            document.layer_rules.append(validator.validate_rule(rule))

        for name, points in (data.get("beziers") or {}).items():
            text = ", ".join([_text(name)] + [_text(p) for p in points])
            curve = validator.parse_bezier(text)
            document.beziers[curve.name] = curve

        for item in data.get("animations") or []:
            entry = AnimationEntry(
                name=_text(item.get("name")),
                enabled=parse_boolean(_text(item.get("enabled", True))),
                speed=float(item.get("speed", 0.0)),
                curve=_text(item.get("curve")),
                style=_text(item.get("style")),
            )
            document.animations.append(validator.parse_animation(entry.render_value()))

        for item in data.get("unrecognized") or []:
            document.unrecognized.append(UnrecognizedEntry(
                section=_text(item.get("section")),
                key=_text(item["key"]),
                value=_text(item.get("value")),
                block=int(item.get("block", 0)),
            ))
    except ValidationError as e:
        raise StorageError(f"Invalid snapshot: {e}") from e
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise StorageError(f"Malformed snapshot: {e}") from e

    document.unrecognized.sort(key=lambda entry: entry.group_key)
    return document


def dump_snapshot(document: ConfigDocument) -> str:
    """Render a document as snapshot YAML."""
    return yaml.dump(document_to_dict(document), default_flow_style=False, sort_keys=False)


def load_snapshot(text: str, validator: Optional[ConfigValidator] = None) -> ConfigDocument:
    """
    Parse snapshot YAML.

    Raises:
        StorageError: If the YAML is malformed or any value is invalid
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise StorageError(f"Malformed snapshot YAML: {e}") from e
    return document_from_dict(data or {}, validator)


def dump_snapshot_json(document: ConfigDocument, indent: int = 2) -> str:
    """Render a document as snapshot JSON, the same shape as the YAML form."""
    return json.dumps(document_to_dict(document), indent=indent) + "\n"


def load_snapshot_json(text: str, validator: Optional[ConfigValidator] = None) -> ConfigDocument:
    """
    Parse snapshot JSON.

    Raises:
        StorageError: If the JSON is malformed or any value is invalid
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise StorageError(f"Malformed snapshot JSON: {e}") from e
    return document_from_dict(data, validator)
