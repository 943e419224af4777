"""CLI entrypoints for releasepack commands."""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import Dict, List

from .buildpacks import RegistryError, discover_registry
from .config import (
    ConfigError,
    ReleasePackConfig,
    load_config,
    load_release_metadata,
    release_metadata_from_mapping,
)
from .golden import GoldenFixture, GoldenVerifier, discover_fixtures
from .logging import configure_logging
from .manifest import RenderError, find_template, supported_shells
from .models import ReleaseMetadata
from .pipeline import ReleasePipeline
from .scanner import ScanError


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="releasepack",
        description="Detect project buildpacks and render release manifests.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        help="Also write a DEBUG-level log to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    classify_parser = subparsers.add_parser(
        "classify",
        help="Detect the buildpack for a project directory.",
    )
    _add_verbose_option(classify_parser, suppress_default=True)
    classify_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    classify_parser.add_argument(
        "--registry",
        help="YAML file with extra buildpack definitions.",
    )
    classify_parser.add_argument(
        "--no-defaults",
        action="store_true",
        help="Ignore the built-in buildpack definitions.",
    )
    classify_parser.add_argument("--max-depth", type=int, help="Maximum directory depth to scan.")
    classify_parser.add_argument("--workers", type=int, help="Parallel subtree walkers.")
    classify_parser.add_argument("--timeout", type=float, help="Overall timeout in seconds.")

    render_parser = subparsers.add_parser(
        "render",
        help="Render a package-manager manifest for a release.",
    )
    _add_verbose_option(render_parser, suppress_default=True)
    render_parser.add_argument(
        "--template",
        default="homebrew",
        help="Template file or bundled template id (defaults to homebrew).",
    )
    render_parser.add_argument("--metadata", help="YAML file with release metadata.")
    render_parser.add_argument("--binary-name", help="Name of the released binary.")
    render_parser.add_argument("--version", dest="release_version", help="Release version.")
    render_parser.add_argument("--checksum", help="Precomputed checksum of the release artifact.")
    render_parser.add_argument(
        "--checksum-algorithm",
        help="Checksum algorithm keyword written to the manifest (defaults to sha256).",
    )
    render_parser.add_argument(
        "--url-template",
        help="Artifact download URL template, e.g. .../v{{ version }}/{{ binary_name }}.tar.gz",
    )
    render_parser.add_argument(
        "--completion",
        action="append",
        default=[],
        choices=supported_shells(),
        help="Shell to generate completions for (repeatable).",
    )
    render_parser.add_argument(
        "--field",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Extra template field (repeatable).",
    )
    render_parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Fail when metadata supplies fields the template never uses.",
    )
    render_parser.add_argument(
        "--out",
        help="Output file (defaults to stdout).",
    )

    verify_parser = subparsers.add_parser(
        "verify",
        help="Compare rendered manifests with golden snapshots.",
    )
    _add_verbose_option(verify_parser, suppress_default=True)
    verify_parser.add_argument("--current", help="Current artifact to verify.")
    verify_parser.add_argument("--golden", help="Golden snapshot to compare against.")
    verify_parser.add_argument(
        "--fixtures",
        help="Directory holding current/ and golden/ trees to verify in one batch.",
    )

    regenerate_parser = subparsers.add_parser(
        "regenerate",
        help="Accept a current artifact as the new golden snapshot.",
    )
    _add_verbose_option(regenerate_parser, suppress_default=True)
    regenerate_parser.add_argument("--current", required=True, help="Current artifact.")
    regenerate_parser.add_argument("--golden", required=True, help="Golden snapshot to overwrite.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for releasepack commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=args.quiet,
        log_file=Path(args.log_file) if args.log_file else None,
    )

    if args.command == "classify":
        _run_classify(parser, args)
    elif args.command == "render":
        _run_render(parser, args)
    elif args.command == "verify":
        _run_verify(parser, args)
    elif args.command == "regenerate":
        _run_regenerate(parser, args)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_classify(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    project = Path(args.path).expanduser()
    try:
        config = load_config(project) if project.is_dir() else ReleasePackConfig(root=project)
        if args.max_depth is not None:
            config.scanner.max_depth = args.max_depth
        if args.workers is not None:
            config.scanner.workers = max(1, args.workers)
        if args.registry:
            config.registry_path = Path(args.registry)
        if args.no_defaults:
            config.include_default_buildpacks = False
        registry = discover_registry(
            config.registry_path, include_defaults=config.include_default_buildpacks
        )
        detection = ReleasePipeline(config=config, registry=registry).detect(
            args.path, timeout=args.timeout
        )
    except ScanError as exc:
        parser.exit(1, f"{exc}\n")
    except (ConfigError, RegistryError) as exc:
        parser.exit(1, f"releasepack classify failed: {exc}\n")
    except TimeoutError as exc:
        parser.exit(1, f"releasepack classify timed out: {exc}\n")

    result = detection.result
    if result.ambiguous:
        names = ", ".join(candidate.name for candidate in result.candidates)
        print(f"ambiguous: {names}")
        parser.exit(2)
    print(result.name)


def _run_render(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    try:
        config = load_config(Path.cwd())
        metadata = _metadata_from_args(args)
        template = find_template(args.template, config.render.templates_dir)
        rendered = ReleasePipeline(config=config).render(template, metadata, strict=args.strict)
    except (ConfigError, RenderError, ValueError) as exc:
        parser.exit(1, f"releasepack render failed: {exc}\n")
    except FileNotFoundError as exc:
        parser.exit(1, f"{exc}\n")
    except TimeoutError as exc:
        parser.exit(1, f"releasepack render timed out: {exc}\n")

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(rendered.text)
        print(f"Manifest written to {_relativize(out_path)}")
    else:
        sys.stdout.write(rendered.decoded())


def _metadata_from_args(args: argparse.Namespace) -> ReleaseMetadata:
    fields = _parse_fields(args.field)
    overrides: Dict[str, object] = {}
    if args.binary_name:
        overrides["binary_name"] = args.binary_name
    if args.release_version:
        overrides["version"] = args.release_version
    if args.checksum:
        overrides["checksum"] = args.checksum
    if args.checksum_algorithm:
        overrides["checksum_algorithm"] = args.checksum_algorithm
    if args.url_template:
        overrides["artifact_url_template"] = args.url_template
    if args.completion:
        overrides["completion_shells"] = frozenset(args.completion)

    if args.metadata:
        metadata = load_release_metadata(Path(args.metadata))
        return dataclasses.replace(
            metadata, extra={**metadata.extra, **fields}, **overrides
        )

    mapping: Dict[str, object] = dict(fields)
    mapping.update(overrides)
    if "completion_shells" in mapping:
        mapping["completion_shells"] = sorted(args.completion)
    return release_metadata_from_mapping(mapping, source="command line")


def _parse_fields(raw_fields: List[str]) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for raw in raw_fields:
        key, sep, value = raw.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"--field expects KEY=VALUE, got {raw!r}")
        fields[key.strip()] = value
    return fields


def _run_verify(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if args.fixtures:
        fixtures_dir = Path(args.fixtures)
        if not fixtures_dir.is_dir():
            parser.exit(1, f"Fixtures directory not found: {fixtures_dir}\n")
        fixtures = discover_fixtures(fixtures_dir)
        if not fixtures:
            parser.exit(1, f"No fixtures found under {fixtures_dir}\n")
    elif args.current and args.golden:
        fixtures = [
            GoldenFixture(
                fixture_id=Path(args.current).name,
                current_path=Path(args.current),
                golden_path=Path(args.golden),
            )
        ]
    else:
        parser.exit(1, "verify needs --current and --golden, or --fixtures\n")

    report = GoldenVerifier().verify_all(fixtures)
    for outcome in report.outcomes:
        if outcome.result.match:
            print(f"MATCH {outcome.fixture.fixture_id}")
        else:
            print(f"MISMATCH {outcome.fixture.fixture_id}")
            if outcome.result.diff:
                print(outcome.result.diff)
    if not report.ok:
        parser.exit(1, f"{len(report.mismatches)} of {len(report.outcomes)} fixture(s) mismatched\n")


def _run_regenerate(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    fixture = GoldenFixture(
        fixture_id=Path(args.current).name,
        current_path=Path(args.current),
        golden_path=Path(args.golden),
    )
    try:
        GoldenVerifier().regenerate(fixture)
    except OSError as exc:
        parser.exit(1, f"releasepack regenerate failed: {exc}\n")
    print(f"Golden snapshot updated at {_relativize(fixture.golden_path)}")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
