"""Tests for releasepack.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from releasepack.config import (
    ConfigError,
    ReleasePackConfig,
    load_config,
    load_release_metadata,
    release_metadata_from_mapping,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, ReleasePackConfig)
    assert config.root == tmp_path.resolve()
    assert config.buildpack is None
    assert config.scanner.max_depth is None
    assert config.scanner.workers == 1
    assert config.scanner.exclude_paths == []
    assert config.registry_path is None
    assert config.include_default_buildpacks is True
    assert config.render.strict is False
    assert config.render.templates_dir is None
    assert config.timeout is None


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".releasepack.yml"
    config_file.write_text(
        """
buildpack: go
registry: "ci/buildpacks.yml"
include_default_buildpacks: false
timeout: 12.5
scanner:
  max_depth: 4
  workers: 3
  exclude_paths:
    - "vendor/"
    - "dist/"
render:
  strict: true
  templates_dir: "packaging/templates"
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.buildpack == "go"
    assert config.registry_path == tmp_path.resolve() / "ci" / "buildpacks.yml"
    assert config.include_default_buildpacks is False
    assert config.timeout == pytest.approx(12.5)
    assert config.scanner.max_depth == 4
    assert config.scanner.workers == 3
    assert config.scanner.exclude_paths == ["vendor/", "dist/"]
    assert config.render.strict is True
    assert config.render.templates_dir == tmp_path.resolve() / "packaging" / "templates"


def test_load_config_resolves_sibling_file(tmp_path: Path) -> None:
    (tmp_path / ".releasepack.yml").write_text("buildpack: rust\n", encoding="utf-8")

    config = load_config(tmp_path / "Cargo.toml")

    assert config.buildpack == "rust"


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    (tmp_path / ".releasepack.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_reports_yaml_errors(tmp_path: Path) -> None:
    (tmp_path / ".releasepack.yml").write_text("scanner: [\n", encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path)
    assert ".releasepack.yml" in str(excinfo.value)


def test_load_release_metadata_splits_extra_fields(tmp_path: Path) -> None:
    path = tmp_path / "release.yml"
    path.write_text(
        """
binary_name: jx
version: "2.0.0"
checksum: "abc123"
completion_shells: [zsh, bash]
description: "Jenkins X CLI"
""",
        encoding="utf-8",
    )

    metadata = load_release_metadata(path)

    assert metadata.binary_name == "jx"
    assert metadata.version == "2.0.0"
    assert metadata.checksum == "abc123"
    assert metadata.checksum_algorithm == "sha256"
    assert metadata.artifact_url_template is None
    assert metadata.completion_shells == frozenset({"bash", "zsh"})
    assert metadata.extra == {"description": "Jenkins X CLI"}


def test_release_metadata_requires_name_and_version() -> None:
    with pytest.raises(ConfigError) as excinfo:
        release_metadata_from_mapping({"checksum": "abc"}, source="release.yml")

    assert "binary_name" in str(excinfo.value)
    assert "version" in str(excinfo.value)
