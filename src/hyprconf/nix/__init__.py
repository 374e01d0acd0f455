"""Nix module generation and reverse import."""
from .generator import NixModuleGenerator, NixTarget, render_nix
from .importer import NixModuleImporter

__all__ = [
    "NixModuleGenerator",
    "NixModuleImporter",
    "NixTarget",
    "render_nix",
]
