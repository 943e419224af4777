"""CLI parser and command behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from releasepack.cli import _build_parser, main
from tests._fixtures.repo_builder import RepoBuilder

TESTDATA = Path(__file__).parent / "manifest" / "testdata"


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "classify"])
    assert args.verbose is True
    assert args.command == "classify"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["verify", "--fixtures", "tests", "--verbose"])
    assert args.verbose is True
    assert args.command == "verify"


def test_cli_render_collects_repeated_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        [
            "render",
            "--version",
            "1.2.3",
            "--completion",
            "bash",
            "--completion",
            "zsh",
            "--field",
            "homepage=https://example.com",
        ]
    )
    assert args.release_version == "1.2.3"
    assert args.completion == ["bash", "zsh"]
    assert args.field == ["homepage=https://example.com"]
    assert args.strict is None


def test_cli_render_rejects_unknown_shell() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["render", "--completion", "tcsh"])


def test_classify_prints_buildpack(repo_builder: RepoBuilder, capsys) -> None:
    repo_builder.write({"Cargo.toml": "[package]\nname = \"demo\"\n", "src/main.rs": "fn main() {}\n"})

    main(["classify", str(repo_builder.path())])

    assert capsys.readouterr().out.strip() == "rust"


def test_classify_missing_directory_exits_with_error(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["classify", str(tmp_path / "missing")])

    assert excinfo.value.code == 1
    assert "missing" in capsys.readouterr().err


def test_render_writes_manifest_file(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    out = tmp_path / "Formula" / "jx.rb"

    main(["render", "--metadata", str(TESTDATA / "jx-1.0.1.yml"), "--out", str(out)])

    assert out.read_bytes() == (TESTDATA / "golden" / "jx.rb").read_bytes()
    assert "Formula/jx.rb" in capsys.readouterr().out


def test_render_overrides_metadata_version(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)

    main(
        [
            "render",
            "--metadata",
            str(TESTDATA / "jx-1.0.1.yml"),
            "--version",
            "1.0.2",
            "--checksum",
            "2c26b46b68ffc68ff99b453c1d30413413422d706483bfa0f98a5e886266e7ae",
        ]
    )

    assert capsys.readouterr().out == (TESTDATA / "current" / "jx.rb").read_text(encoding="utf-8")


def test_render_missing_field_exits_with_error(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        main(["render", "--binary-name", "jx", "--version", "1.0.0"])

    assert excinfo.value.code == 1
    assert "missing fields" in capsys.readouterr().err


def test_verify_fixtures_reports_mismatch(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["verify", "--fixtures", str(TESTDATA)])

    assert excinfo.value.code == 1
    out = capsys.readouterr().out
    assert out.startswith("MISMATCH jx.rb\n--- golden\n+++ current\n")
    assert '+  version "1.0.2"' in out


def test_verify_single_pair_matches(capsys) -> None:
    golden = TESTDATA / "golden" / "jx.rb"

    main(["verify", "--current", str(golden), "--golden", str(golden)])

    assert capsys.readouterr().out == "MATCH jx.rb\n"


def test_regenerate_overwrites_golden(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    golden = tmp_path / "golden" / "jx.rb"

    main(["regenerate", "--current", str(TESTDATA / "current" / "jx.rb"), "--golden", str(golden)])

    assert golden.read_bytes() == (TESTDATA / "current" / "jx.rb").read_bytes()
    assert "golden/jx.rb" in capsys.readouterr().out
