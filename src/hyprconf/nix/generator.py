"""Generate Nix modules from a ConfigDocument.

All four targets share the same ``settings`` attribute set; they differ only
in the envelope around it:

- SYSTEM:             NixOS module enabling Hyprland, settings via home-manager
- HOME_MANAGER:       home-manager module
- FLAKE_SYSTEM:       flake wrapping the NixOS module
- FLAKE_HOME_MANAGER: flake wrapping the home-manager module

Binds inside submaps have no attribute-set form and go to ``extraConfig``,
as do unknown blocks sharing a name with a top-level key.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..config_engine.fields import specs_in
from ..config_engine.schema import (
    SCALAR_SECTIONS,
    BooleanValue,
    ConfigDocument,
    FieldValue,
    FloatValue,
    IntegerValue,
    ScalarListValue,
    Section,
    format_number,
)
from ..config_engine.serializer import ConfigSerializer

logger = logging.getLogger(__name__)

INDENT = "  "
NIX_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_'-]*$")
NIX_KEYWORDS = {"if", "then", "else", "assert", "with", "let", "in", "rec", "inherit", "or"}


class NixTarget(str, Enum):
    """Shapes of generated module text."""
    SYSTEM = "system"
    HOME_MANAGER = "home_manager"
    FLAKE_SYSTEM = "flake_system"
    FLAKE_HOME_MANAGER = "flake_home_manager"

    @property
    def is_flake(self) -> bool:
        return self in (NixTarget.FLAKE_SYSTEM, NixTarget.FLAKE_HOME_MANAGER)


@dataclass(frozen=True)
class IndentedString:
    """A Nix ``''...''`` string."""
    text: str


# === Value rendering ===

def escape_string(text: str) -> str:
    """Escape text for a double-quoted Nix string."""
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("${", "\\${")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
    )


def quote(text: str) -> str:
    return f'"{escape_string(text)}"'


def attr_name(name: str) -> str:
    """Bare identifier where Nix allows it, quoted otherwise."""
    if NIX_IDENTIFIER.match(name) and name not in NIX_KEYWORDS:
        return name
    return quote(name)


def _number(value: float, in_list: bool = False) -> str:
    text = format_number(value)
    if in_list and text.startswith("-"):
        return f"({text})"
    return text


def render_nix(value: Any, depth: int = 0) -> str:
    """Render a plain Python value as Nix expression text."""
    pad = INDENT * depth
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number(value)
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, IndentedString):
        body = value.text.replace("''", "'''").replace("${", "''${")
        lines = [f"{pad}{INDENT}{line}" if line else "" for line in body.splitlines()]
        return "''\n" + "\n".join(lines) + f"\n{pad}''"
    if isinstance(value, list):
        if not value:
            return "[ ]"
        if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
            return "[ " + " ".join(_number(v, in_list=True) for v in value) + " ]"
        items = [f"{pad}{INDENT}{render_nix(v, depth + 1)}" for v in value]
        return "[\n" + "\n".join(items) + f"\n{pad}]"
    if isinstance(value, dict):
        if not value:
            return "{ }"
        items = [
            f"{pad}{INDENT}{attr_name(k)} = {render_nix(v, depth + 1)};"
            for k, v in value.items()
        ]
        return "{\n" + "\n".join(items) + f"\n{pad}}}"
    raise TypeError(f"Cannot render {type(value).__name__} as Nix")


def field_to_nix(value: FieldValue) -> Any:
    """Typed field value -> plain value for render_nix."""
    if isinstance(value, (BooleanValue, IntegerValue, FloatValue)):
        return value.value
    if isinstance(value, ScalarListValue):
        return list(value.values)
    return value.render()


def _collapse(values: list[str]) -> Any:
    """One value stays scalar; repeated keys become a list."""
    return values[0] if len(values) == 1 else list(values)


# === Templates ===

HEADER = "# {name} - Generated by hyprconf {version}\n# Target: {target}\n\n"

HOME_MANAGER_TEMPLATE = """{{ config, lib, pkgs, ... }}:

{{
  wayland.windowManager.hyprland = {hyprland};
}}
"""

SYSTEM_TEMPLATE = """{{ config, lib, pkgs, ... }}:

{{
  programs.hyprland.enable = true;

  home-manager.users.{user}.wayland.windowManager.hyprland = {hyprland};
}}
"""

FLAKE_HOME_MANAGER_TEMPLATE = """{{
  description = "Hyprland configuration generated by hyprconf";

  inputs = {{
    nixpkgs.url = "github:NixOS/nixpkgs/nixos-unstable";
    home-manager = {{
      url = "github:nix-community/home-manager";
      inputs.nixpkgs.follows = "nixpkgs";
    }};
    hyprland.url = "github:hyprwm/Hyprland";
  }};

  outputs = {{ nixpkgs, home-manager, hyprland, ... }}:
    let
      system = "x86_64-linux";
      pkgs = nixpkgs.legacyPackages.${{system}};
    in {{
      homeConfigurations.{user} = home-manager.lib.homeManagerConfiguration {{
        inherit pkgs;
        modules = [
          hyprland.homeManagerModules.default
          {{
            wayland.windowManager.hyprland = {hyprland};
          }}
        ];
      }};
    }};
}}
"""

FLAKE_SYSTEM_TEMPLATE = """{{
  description = "Hyprland configuration generated by hyprconf";

  inputs = {{
    nixpkgs.url = "github:NixOS/nixpkgs/nixos-unstable";
    home-manager = {{
      url = "github:nix-community/home-manager";
      inputs.nixpkgs.follows = "nixpkgs";
    }};
    hyprland.url = "github:hyprwm/Hyprland";
  }};

  outputs = {{ nixpkgs, home-manager, hyprland, ... }}: {{
    nixosConfigurations.{host} = nixpkgs.lib.nixosSystem {{
      system = "x86_64-linux";
      modules = [
        hyprland.nixosModules.default
        home-manager.nixosModules.home-manager
        {{
          programs.hyprland.enable = true;

          home-manager.users.{user}.wayland.windowManager.hyprland = {hyprland};
        }}
      ];
    }};
  }};
}}
"""

# (template, depth of the hyprland attribute set inside it)
TEMPLATES = {
    NixTarget.HOME_MANAGER: (HOME_MANAGER_TEMPLATE, 1),
    NixTarget.SYSTEM: (SYSTEM_TEMPLATE, 1),
    NixTarget.FLAKE_HOME_MANAGER: (FLAKE_HOME_MANAGER_TEMPLATE, 6),
    NixTarget.FLAKE_SYSTEM: (FLAKE_SYSTEM_TEMPLATE, 5),
}


class NixModuleGenerator:
    """Render a ConfigDocument as one of the four Nix module shapes."""

    def __init__(self, user: str = "user", host: str = "hostname", module_name: str = "hyprland.nix"):
        """
        Args:
            user: home-manager user name for the system and flake envelopes
            host: nixosConfigurations attribute name for the system flake
            module_name: Name shown in the generated header comment
        """
        self.user = user
        self.host = host
        self.module_name = module_name

    # === Shared body ===

    def settings(self, document: ConfigDocument) -> dict[str, Any]:
        """The ``settings`` attribute set as plain data, shared by every target."""
        settings: dict[str, Any] = {}

        top_level: dict[str, list[str]] = {}
        section_raw: dict[str, dict[str, list[str]]] = {}
        blocks: dict[str, dict[int, dict[str, list[str]]]] = {}
        for entry in sorted(document.unrecognized, key=lambda e: e.group_key):
            if not entry.section:
                top_level.setdefault(entry.key, []).append(entry.value)
            elif Section.from_native(entry.section) is not None:
                section_raw.setdefault(entry.section, {}).setdefault(entry.key, []).append(entry.value)
            else:
                by_block = blocks.setdefault(entry.section, {})
                by_block.setdefault(entry.block, {}).setdefault(entry.key, []).append(entry.value)

        for key, values in top_level.items():
            settings[key] = _collapse(values)

        for section in SCALAR_SECTIONS:
            attrs = self._section_attrs(document, section, section_raw.get(section.native, {}))
            if attrs:
                settings[section.native] = attrs

        clashes = self._clashing_blocks(document)
        for name, by_block in sorted(blocks.items()):
            if name in clashes:
                continue
            rendered = [
                {key: _collapse(values) for key, values in by_block[i].items()}
                for i in sorted(by_block)
            ]
            settings[name] = rendered[0] if len(rendered) == 1 else rendered

        for bind in document.keybinds:
            if not bind.submap:
                settings.setdefault(bind.bind_type, []).append(bind.render_value())
        for rule in [*document.window_rules, *document.layer_rules]:
            settings.setdefault(rule.syntax, []).append(rule.render_value())

        return settings

    def _section_attrs(
        self,
        document: ConfigDocument,
        section: Section,
        raw: dict[str, list[str]],
    ) -> dict[str, Any]:
        values = document.fields[section]
        attrs: dict[str, Any] = {}
        for spec in specs_in(section):
            if spec.key not in values:
                continue
            prefix, sep, subkey = spec.key.partition(":")
            if sep:
                attrs.setdefault(prefix, {})[subkey] = field_to_nix(values[spec.key])
            else:
                attrs[spec.key] = field_to_nix(values[spec.key])
        for key, entries in raw.items():
            attrs[key] = _collapse(entries)
        if section == Section.ANIMATION:
            if document.beziers:
                attrs["bezier"] = [c.render_value() for c in document.beziers.values()]
            if document.animations:
                attrs["animation"] = [a.render_value() for a in document.animations]
        return attrs

    def _clashing_blocks(self, document: ConfigDocument) -> set[str]:
        """Unknown block names that are also top-level keys of ``settings``.

        ``plugin = /path/to/plugin.so`` next to a ``plugin { ... }`` block is
        the usual case; one attribute cannot hold both.
        """
        taken = {e.key for e in document.unrecognized if not e.section}
        taken.update(bind.bind_type for bind in document.keybinds if not bind.submap)
        taken.update(rule.syntax for rule in [*document.window_rules, *document.layer_rules])
        return {
            e.section
            for e in document.unrecognized
            if e.section in taken and Section.from_native(e.section) is None
        }

    def extra_config(self, document: ConfigDocument) -> Optional[str]:
        """Native text for what ``settings`` cannot hold, None when there is none.

        That is binds inside submaps and blocks whose name clashes with a
        top-level key.
        """
        submap_binds = [bind for bind in document.keybinds if bind.submap]
        clashes = self._clashing_blocks(document)
        blocks = [e for e in document.unrecognized if e.section in clashes]
        if not submap_binds and not blocks:
            return None
        for name in sorted(clashes):
            logger.debug(f"Block '{name}' clashes with a top-level key, moved to extraConfig")
        return ConfigSerializer().serialize(ConfigDocument(keybinds=submap_binds, unrecognized=blocks))

    def hyprland_attrs(self, document: ConfigDocument) -> dict[str, Any]:
        attrs: dict[str, Any] = {"enable": True, "settings": self.settings(document)}
        extra = self.extra_config(document)
        if extra:
            attrs["extraConfig"] = IndentedString(extra)
        return attrs

    # === Envelopes ===

    def generate(self, document: ConfigDocument, target: "NixTarget | str") -> str:
        """
        Generate module text.

        Args:
            document: Document to render
            target: One of the four NixTarget shapes

        Returns:
            Standalone Nix source text
        """
        target = NixTarget(target)
        from .. import __version__

        template, depth = TEMPLATES[target]
        body = template.format(
            hyprland=render_nix(self.hyprland_attrs(document), depth),
            user=attr_name(self.user),
            host=attr_name(self.host),
        )
        header = HEADER.format(name=self.module_name, version=__version__, target=target.value)
        logger.debug(f"Generated {target.value} module for {document.field_count} fields")
        return header + body
