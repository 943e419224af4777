"""Configuration loading for releasepack (.releasepack.yml and release metadata)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .models import ReleaseMetadata

CONFIG_FILENAME = ".releasepack.yml"

_METADATA_KEYS = {
    "binary_name",
    "version",
    "artifact_url_template",
    "checksum_algorithm",
    "checksum",
    "completion_shells",
}


class ConfigError(RuntimeError):
    """Raised when a configuration or metadata file cannot be parsed."""


@dataclass
class ScannerConfig:
    """Scanner limits and exclusions."""

    max_depth: Optional[int] = None
    workers: int = 1
    exclude_paths: List[str] = field(default_factory=list)


@dataclass
class RenderConfig:
    """Manifest rendering options."""

    strict: bool = False
    templates_dir: Optional[Path] = None


@dataclass
class ReleasePackConfig:
    """Represents the settings defined in .releasepack.yml."""

    root: Path
    buildpack: Optional[str] = None
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    registry_path: Optional[Path] = None
    include_default_buildpacks: bool = True
    render: RenderConfig = field(default_factory=RenderConfig)
    timeout: Optional[float] = None


def load_config(config_path: Path) -> ReleasePackConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ReleasePackConfig(root=root)

    data = _read_yaml(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    scanner_data = _as_dict(data.get("scanner"))
    scanner = ScannerConfig()
    if scanner_data:
        scanner.max_depth = _as_int(scanner_data.get("max_depth"))
        scanner.workers = max(1, _as_int(scanner_data.get("workers")) or 1)
        scanner.exclude_paths = _as_str_list(scanner_data.get("exclude_paths"))

    render_data = _as_dict(data.get("render"))
    render = RenderConfig()
    if render_data:
        render.strict = _as_bool(render_data.get("strict")) or False
        templates_dir = _as_str(render_data.get("templates_dir"))
        render.templates_dir = root / templates_dir if templates_dir else None

    registry = _as_str(data.get("registry"))
    include_defaults = _as_bool(data.get("include_default_buildpacks"))

    return ReleasePackConfig(
        root=root,
        buildpack=_as_str(data.get("buildpack")),
        scanner=scanner,
        registry_path=root / registry if registry else None,
        include_default_buildpacks=True if include_defaults is None else include_defaults,
        render=render,
        timeout=_as_float(data.get("timeout")),
    )


def load_release_metadata(path: Path) -> ReleaseMetadata:
    """Read a release metadata YAML file into a ``ReleaseMetadata`` record."""
    data = _read_yaml(path)
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return release_metadata_from_mapping(data, source=path.name)


def release_metadata_from_mapping(data: Dict[str, Any], *, source: str = "metadata") -> ReleaseMetadata:
    binary_name = _as_str(data.get("binary_name"))
    version = _as_str(data.get("version"))
    missing = [key for key, value in (("binary_name", binary_name), ("version", version)) if not value]
    if missing:
        raise ConfigError(f"{source} is missing required keys: {', '.join(missing)}")

    extra = {key: value for key, value in data.items() if key not in _METADATA_KEYS}
    return ReleaseMetadata(
        binary_name=binary_name,  # type: ignore[arg-type]
        version=version,  # type: ignore[arg-type]
        artifact_url_template=_as_str(data.get("artifact_url_template")),
        checksum_algorithm=_as_str(data.get("checksum_algorithm")) or "sha256",
        checksum=_as_str(data.get("checksum")),
        completion_shells=frozenset(_as_str_list(data.get("completion_shells"))),
        extra=extra,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_yaml(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
