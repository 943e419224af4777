"""Tests for manifest rendering."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from releasepack.config import load_release_metadata
from releasepack.manifest import (
    ManifestEngine,
    ManifestTemplate,
    RenderError,
    RenderErrorKind,
    available_templates,
    builtin_template,
    find_template,
    render,
    supported_shells,
)
from releasepack.models import ReleaseMetadata

TESTDATA = Path(__file__).parent / "testdata"


def test_render_matches_committed_golden(jx_metadata: ReleaseMetadata) -> None:
    rendered = render(builtin_template(), jx_metadata)

    assert rendered.text == (TESTDATA / "golden" / "jx.rb").read_bytes()
    assert rendered.source_template_id == "homebrew"
    assert rendered.metadata_version == "1.0.1"


def test_render_from_metadata_file_matches_golden() -> None:
    metadata = load_release_metadata(TESTDATA / "jx-1.0.1.yml")

    rendered = render(builtin_template(), metadata, strict=True)

    assert rendered.text == (TESTDATA / "golden" / "jx.rb").read_bytes()


def test_render_is_idempotent(jx_metadata: ReleaseMetadata) -> None:
    engine = ManifestEngine()
    template = builtin_template()

    assert engine.render(template, jx_metadata) == engine.render(template, jx_metadata)


def test_render_without_completions_keeps_install_body(jx_metadata: ReleaseMetadata) -> None:
    metadata = replace(jx_metadata, completion_shells=frozenset())

    text = render(builtin_template(), metadata).decoded()

    assert "completion" not in text
    assert '    bin.install "jx"\n\n    prefix.install_metafiles\n' in text


def test_missing_field_fails_without_output(jx_metadata: ReleaseMetadata) -> None:
    metadata = replace(jx_metadata, checksum=None)

    with pytest.raises(RenderError) as excinfo:
        render(builtin_template(), metadata)

    assert excinfo.value.kind is RenderErrorKind.MISSING_FIELD
    assert excinfo.value.fields == ["checksum", "checksum_algorithm"]


def test_empty_extra_value_counts_as_missing(jx_metadata: ReleaseMetadata) -> None:
    metadata = replace(jx_metadata, extra={**jx_metadata.extra, "homepage": ""})

    with pytest.raises(RenderError) as excinfo:
        render(builtin_template(), metadata)

    assert excinfo.value.fields == ["homepage"]


def test_strict_mode_rejects_unused_fields(jx_metadata: ReleaseMetadata) -> None:
    metadata = replace(jx_metadata, extra={**jx_metadata.extra, "license": "Apache-2.0"})

    assert render(builtin_template(), metadata).text
    with pytest.raises(RenderError) as excinfo:
        render(builtin_template(), metadata, strict=True)

    assert excinfo.value.kind is RenderErrorKind.UNKNOWN_FIELD
    assert excinfo.value.fields == ["license"]


def test_strict_mode_accepts_fields_used_by_artifact_url(jx_metadata: ReleaseMetadata) -> None:
    metadata = replace(
        jx_metadata,
        artifact_url_template=(
            "https://github.com/jenkins-x/jx/releases/download/"
            "v{{ version }}/{{ binary_name }}-darwin-{{ arch }}.tar.gz"
        ),
        extra={**jx_metadata.extra, "arch": "arm64"},
    )

    text = render(builtin_template(), metadata, strict=True).decoded()

    assert 'url "https://github.com/jenkins-x/jx/releases/download/v1.0.1/jx-darwin-arm64.tar.gz"' in text


def test_unknown_completion_shell_is_rejected(jx_metadata: ReleaseMetadata) -> None:
    metadata = replace(jx_metadata, completion_shells=frozenset({"bash", "tcsh"}))

    with pytest.raises(RenderError) as excinfo:
        render(builtin_template(), metadata)

    assert excinfo.value.kind is RenderErrorKind.UNKNOWN_SHELL
    assert excinfo.value.fields == ["tcsh"]
    assert supported_shells() == ["bash", "fish", "zsh"]


def test_fish_completion_uses_fish_directory(jx_metadata: ReleaseMetadata) -> None:
    metadata = replace(jx_metadata, completion_shells=frozenset({"fish"}))

    text = render(builtin_template(), metadata).decoded()

    assert '(fish_completion/"jx.fish").write output' in text


def test_invalid_template_syntax_is_reported(jx_metadata: ReleaseMetadata) -> None:
    template = ManifestTemplate(template_id="broken", source="{% for x in %}\n")

    with pytest.raises(RenderError) as excinfo:
        render(template, jx_metadata)

    assert excinfo.value.kind is RenderErrorKind.TEMPLATE_SYNTAX


def test_referenced_fields_lists_template_variables() -> None:
    template = ManifestTemplate(template_id="mini", source="{{ binary_name }} {{ version }}\n")

    assert ManifestEngine().referenced_fields(template) == {"binary_name", "version"}


def test_class_name_is_camel_cased(jx_metadata: ReleaseMetadata) -> None:
    metadata = replace(jx_metadata, binary_name="jx-release_tool")
    template = ManifestTemplate(template_id="mini", source="{{ class_name }}\n")

    assert render(template, metadata).text == b"JxReleaseTool\n"


def test_find_template_prefers_project_directory(tmp_path: Path) -> None:
    (tmp_path / "homebrew.rb.j2").write_text("custom {{ version }}\n", encoding="utf-8")
    (tmp_path / "scoop.json.j2").write_text('{"version": "{{ version }}"}\n', encoding="utf-8")

    assert find_template("homebrew", tmp_path).source == "custom {{ version }}\n"
    assert find_template("homebrew").source.startswith("class {{ class_name }} < Formula")
    assert find_template(str(tmp_path / "scoop.json.j2")).template_id == "scoop"
    assert available_templates(tmp_path) == ["homebrew", "scoop"]


def test_find_template_unknown_name(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        find_template("winget", tmp_path)
