"""Buildpack registry and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import yaml

from ..logging import get_logger
from ..models import BuildpackDefinition, SignalKind, SignalPredicate

_ENTRY_POINT_GROUP = "releasepack.buildpacks"

_logger = get_logger("buildpacks")


class RegistryError(RuntimeError):
    """Raised when buildpack definitions are invalid or conflict."""


class BuildpackRegistry:
    """Ordered, caller-owned collection of buildpack definitions."""

    def __init__(self, definitions: Iterable[BuildpackDefinition] = ()) -> None:
        self._definitions: Dict[str, BuildpackDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: BuildpackDefinition, *, replace: bool = False) -> None:
        if not definition.name:
            raise RegistryError("Buildpack definitions need a name")
        if not definition.predicates:
            raise RegistryError(f"Buildpack '{definition.name}' declares no predicates")
        if definition.name in self._definitions and not replace:
            raise RegistryError(f"Buildpack '{definition.name}' is already registered")
        self._definitions[definition.name] = definition

    def get(self, name: str) -> Optional[BuildpackDefinition]:
        return self._definitions.get(name)

    def names(self) -> List[str]:
        return [definition.name for definition in self]

    def __iter__(self) -> Iterator[BuildpackDefinition]:
        return iter(
            sorted(self._definitions.values(), key=lambda item: (item.priority, item.name))
        )

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions


def load_registry_file(path: Path) -> List[BuildpackDefinition]:
    """Parse buildpack definitions from a YAML document."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RegistryError(f"Failed to read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise RegistryError(f"Failed to parse {path.name}: {exc}") from exc

    if data is None:
        return []
    if not isinstance(data, dict) or not isinstance(data.get("buildpacks"), list):
        raise RegistryError(f"{path.name} must contain a 'buildpacks' list")

    return [_definition_from_dict(entry, source=path.name) for entry in data["buildpacks"]]


def _definition_from_dict(entry: Any, *, source: str) -> BuildpackDefinition:
    if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
        raise RegistryError(f"{source}: every buildpack needs a string 'name'")
    name = entry["name"]

    raw_predicates = entry.get("predicates")
    if not isinstance(raw_predicates, list) or not raw_predicates:
        raise RegistryError(f"{source}: buildpack '{name}' needs a non-empty 'predicates' list")

    predicates = []
    for raw in raw_predicates:
        if not isinstance(raw, dict):
            raise RegistryError(f"{source}: predicates of '{name}' must be mappings")
        try:
            kind = SignalKind(str(raw.get("kind")))
        except ValueError:
            valid = ", ".join(kind.value for kind in SignalKind)
            raise RegistryError(
                f"{source}: unknown signal kind {raw.get('kind')!r} in '{name}' (expected one of {valid})"
            ) from None
        pattern = raw.get("pattern")
        if not isinstance(pattern, str) or not pattern:
            raise RegistryError(f"{source}: predicates of '{name}' need a 'pattern'")
        weight = raw.get("weight", 1.0)
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise RegistryError(f"{source}: weight of '{name}' must be a number")
        predicates.append(
            SignalPredicate(
                kind=kind,
                pattern=pattern,
                weight=float(weight),
                mandatory=bool(raw.get("mandatory", False)),
            )
        )

    priority = entry.get("priority", 100)
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise RegistryError(f"{source}: priority of '{name}' must be an integer")

    return BuildpackDefinition(
        name=name,
        predicates=tuple(predicates),
        priority=priority,
        description=str(entry.get("description", "")),
    )


def discover_registry(
    path: Path | None = None, *, include_defaults: bool = True
) -> BuildpackRegistry:
    """Build a registry from defaults, an optional YAML file and entry points.

    Later sources replace earlier definitions with the same name, so a
    project file can tune a built-in buildpack.
    """
    from .defaults import DEFAULT_BUILDPACKS

    registry = BuildpackRegistry(DEFAULT_BUILDPACKS if include_defaults else ())

    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover
            raise RegistryError(f"Failed to load buildpack entry point '{entry.name}': {exc}") from exc
        for definition in _coerce_definitions(loaded, entry.name):
            registry.register(definition, replace=True)

    if path is not None:
        for definition in load_registry_file(path):
            if definition.name in registry:
                _logger.debug("Replacing buildpack %s from %s", definition.name, path.name)
            registry.register(definition, replace=True)

    return registry


def _coerce_definitions(obj: object, name: str) -> List[BuildpackDefinition]:
    if callable(obj) and not isinstance(obj, BuildpackDefinition):
        obj = obj()
    if isinstance(obj, BuildpackDefinition):
        return [obj]
    if isinstance(obj, (list, tuple)) and all(isinstance(item, BuildpackDefinition) for item in obj):
        return list(obj)
    raise RegistryError(
        f"Buildpack entry point '{name}' must provide a BuildpackDefinition or a list of them"
    )


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "BuildpackRegistry",
    "RegistryError",
    "discover_registry",
    "load_registry_file",
]
