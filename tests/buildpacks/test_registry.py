from __future__ import annotations

from pathlib import Path

import pytest

from releasepack.buildpacks import (
    DEFAULT_BUILDPACKS,
    BuildpackRegistry,
    RegistryError,
    discover_registry,
    load_registry_file,
)
from releasepack.models import BuildpackDefinition, SignalKind, SignalPredicate


def _pack(name: str, priority: int = 100) -> BuildpackDefinition:
    return BuildpackDefinition(
        name=name,
        predicates=(SignalPredicate(SignalKind.HAS_MARKER_FILE, f"{name}.lock", mandatory=True),),
        priority=priority,
    )


def test_registry_iterates_by_priority_then_name() -> None:
    registry = BuildpackRegistry([_pack("zeta", 5), _pack("beta", 10), _pack("alpha", 10)])

    assert registry.names() == ["zeta", "alpha", "beta"]
    assert len(registry) == 3
    assert "alpha" in registry
    assert registry.get("missing") is None


def test_registry_rejects_duplicates_unless_replacing() -> None:
    registry = BuildpackRegistry([_pack("go", 60)])

    with pytest.raises(RegistryError):
        registry.register(_pack("go", 1))

    registry.register(_pack("go", 1), replace=True)
    assert registry.get("go").priority == 1


def test_registry_rejects_definitions_without_predicates() -> None:
    with pytest.raises(RegistryError):
        BuildpackRegistry([BuildpackDefinition(name="empty", predicates=())])


def test_default_registry_contains_every_builtin() -> None:
    registry = discover_registry()

    for definition in DEFAULT_BUILDPACKS:
        assert definition.name in registry
    assert all(definition.predicates for definition in registry)


def test_load_registry_file_parses_predicates(tmp_path: Path) -> None:
    path = tmp_path / "buildpacks.yml"
    path.write_text(
        """
buildpacks:
  - name: deno
    priority: 45
    description: Deno service
    predicates:
      - kind: has_marker_file
        pattern: deno.json
        weight: 6
        mandatory: true
      - kind: has_extension
        pattern: .ts
""",
        encoding="utf-8",
    )

    [definition] = load_registry_file(path)

    assert definition.name == "deno"
    assert definition.priority == 45
    assert definition.description == "Deno service"
    assert definition.mandatory_predicates == (
        SignalPredicate(SignalKind.HAS_MARKER_FILE, "deno.json", weight=6.0, mandatory=True),
    )
    assert definition.optional_predicates == (
        SignalPredicate(SignalKind.HAS_EXTENSION, ".ts", weight=1.0),
    )


def test_load_registry_file_rejects_unknown_kind(tmp_path: Path) -> None:
    path = tmp_path / "buildpacks.yml"
    path.write_text(
        "buildpacks:\n  - name: odd\n    predicates:\n      - kind: has_colour\n        pattern: red\n",
        encoding="utf-8",
    )

    with pytest.raises(RegistryError) as excinfo:
        load_registry_file(path)
    assert "has_colour" in str(excinfo.value)


def test_load_registry_file_requires_buildpacks_list(tmp_path: Path) -> None:
    path = tmp_path / "buildpacks.yml"
    path.write_text("packs: []\n", encoding="utf-8")

    with pytest.raises(RegistryError):
        load_registry_file(path)


def test_load_registry_file_reports_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "buildpacks.yml"
    path.write_text("buildpacks: [\n", encoding="utf-8")

    with pytest.raises(RegistryError):
        load_registry_file(path)


def test_discover_registry_file_overrides_builtin(tmp_path: Path) -> None:
    path = tmp_path / "buildpacks.yml"
    path.write_text(
        """
buildpacks:
  - name: python
    priority: 5
    predicates:
      - kind: has_marker_file
        pattern: pyproject.toml
        mandatory: true
""",
        encoding="utf-8",
    )

    registry = discover_registry(path)

    assert registry.get("python").priority == 5
    assert registry.names()[0] == "python"
    assert len(registry) == len(DEFAULT_BUILDPACKS)


def test_discover_registry_without_defaults(tmp_path: Path) -> None:
    path = tmp_path / "buildpacks.yml"
    path.write_text(
        "buildpacks:\n  - name: only\n    predicates:\n      - kind: has_extension\n        pattern: .x\n",
        encoding="utf-8",
    )

    registry = discover_registry(path, include_defaults=False)

    assert registry.names() == ["only"]
