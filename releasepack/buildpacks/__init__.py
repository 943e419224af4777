"""Buildpack definitions, registry and classifier."""

from __future__ import annotations

from .classifier import classify, normalise_signals
from .defaults import DEFAULT_BUILDPACKS
from .registry import BuildpackRegistry, RegistryError, discover_registry, load_registry_file


def default_registry() -> BuildpackRegistry:
    """Return a fresh registry holding the built-in buildpacks."""
    return BuildpackRegistry(DEFAULT_BUILDPACKS)


__all__ = [
    "BuildpackRegistry",
    "DEFAULT_BUILDPACKS",
    "RegistryError",
    "classify",
    "default_registry",
    "discover_registry",
    "load_registry_file",
    "normalise_signals",
]
