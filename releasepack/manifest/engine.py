"""Renders package-manager manifests from Jinja templates and release metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Sequence, Set, Tuple

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError, meta

from ..logging import get_logger
from ..models import ReleaseMetadata, RenderedManifest

_TEMPLATES_DIR = Path(__file__).with_name("templates")

# shell -> (completion directory helper, filename pattern)
_COMPLETION_SHELLS: Dict[str, Tuple[str, str]] = {
    "bash": ("bash_completion", "{binary_name}"),
    "zsh": ("zsh_completion", "_{binary_name}"),
    "fish": ("fish_completion", "{binary_name}.fish"),
}

_logger = get_logger("manifest")


class RenderErrorKind(str, Enum):
    MISSING_FIELD = "missing_field"
    UNKNOWN_FIELD = "unknown_field"
    UNKNOWN_SHELL = "unknown_shell"
    TEMPLATE_SYNTAX = "template_syntax"


class RenderError(RuntimeError):
    """Raised when a manifest cannot be rendered; no partial output is produced."""

    def __init__(self, kind: RenderErrorKind, message: str, fields: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.kind = kind
        self.fields = list(fields)


@dataclass(frozen=True)
class ManifestTemplate:
    """A manifest template: header fields followed by an opaque install body."""

    template_id: str
    source: str


@dataclass(frozen=True)
class Completion:
    """Shell completion install step passed to templates."""

    shell: str
    command: str
    directory: str
    filename: str


def load_template(path: Path) -> ManifestTemplate:
    """Read a template file; its id is the file name up to the first dot."""
    return ManifestTemplate(
        template_id=path.name.split(".", 1)[0],
        source=path.read_text(encoding="utf-8"),
    )


def available_templates(templates_dir: Path | None = None) -> List[str]:
    directory = templates_dir or _TEMPLATES_DIR
    if not directory.is_dir():
        return []
    return sorted({path.name.split(".", 1)[0] for path in directory.glob("*.j2")})


def find_template(name_or_path: str, templates_dir: Path | None = None) -> ManifestTemplate:
    """Resolve a template given a file path or the id of a bundled template.

    ``templates_dir`` is searched before the bundled templates.
    """
    candidate = Path(name_or_path).expanduser()
    if candidate.is_file():
        return load_template(candidate)

    for directory in (templates_dir, _TEMPLATES_DIR):
        if directory is None or not directory.is_dir():
            continue
        for path in sorted(directory.glob(f"{name_or_path}.*j2")):
            return load_template(path)

    known = ", ".join(available_templates(templates_dir)) or "none"
    raise FileNotFoundError(f"Manifest template not found: {name_or_path} (bundled: {known})")


def builtin_template(name: str = "homebrew") -> ManifestTemplate:
    return find_template(name)


def _class_name(binary_name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[-_.\s]+", binary_name) if part)


def _present(value: Any) -> bool:
    return value is not None and value != ""


class ManifestEngine:
    """Substitutes release metadata into manifest templates."""

    def __init__(self, *, strict: bool = False) -> None:
        self.strict = strict
        self._env = Environment(
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    def referenced_fields(self, template: ManifestTemplate) -> Set[str]:
        """Return the top-level field names a template reads."""
        try:
            parsed = self._env.parse(template.source)
        except TemplateSyntaxError as exc:
            raise RenderError(
                RenderErrorKind.TEMPLATE_SYNTAX,
                f"Template {template.template_id} is invalid at line {exc.lineno}: {exc.message}",
            ) from exc
        return set(meta.find_undeclared_variables(parsed))

    def render(self, template: ManifestTemplate, metadata: ReleaseMetadata) -> RenderedManifest:
        referenced = self.referenced_fields(template)
        context, supplied = self.build_context(metadata)

        missing = sorted(referenced - context.keys())
        if missing:
            raise RenderError(
                RenderErrorKind.MISSING_FIELD,
                f"Template {template.template_id} references missing fields: {', '.join(missing)}",
                missing,
            )

        if self.strict:
            # Extras consumed by the artifact URL count as used.
            unknown = sorted(supplied - referenced - self._url_fields(metadata))
            if unknown:
                raise RenderError(
                    RenderErrorKind.UNKNOWN_FIELD,
                    f"Template {template.template_id} never uses supplied fields: {', '.join(unknown)}",
                    unknown,
                )

        try:
            text = self._env.from_string(template.source).render(**context)
        except UndefinedError as exc:
            raise RenderError(
                RenderErrorKind.MISSING_FIELD,
                f"Template {template.template_id} failed to render: {exc.message}",
            ) from exc

        _logger.debug("Rendered %s for %s %s", template.template_id, metadata.binary_name, metadata.version)
        return RenderedManifest(
            text=text.encode("utf-8"),
            source_template_id=template.template_id,
            metadata_version=metadata.version,
        )

    def build_context(self, metadata: ReleaseMetadata) -> Tuple[Dict[str, Any], Set[str]]:
        """Return the render context and the names of fields the metadata supplied."""
        context: Dict[str, Any] = {
            key: value for key, value in metadata.extra.items() if _present(value)
        }
        context.update(
            binary_name=metadata.binary_name,
            version=metadata.version,
        )
        supplied = set(context)

        if _present(metadata.checksum):
            context["checksum"] = metadata.checksum
            context["checksum_algorithm"] = metadata.checksum_algorithm
            supplied.update({"checksum", "checksum_algorithm"})

        if _present(metadata.artifact_url_template):
            context["url"] = self._render_url(metadata)
            supplied.add("url")

        context["completions"] = self._completions(metadata)
        if metadata.completion_shells:
            supplied.add("completions")
        context.setdefault("class_name", _class_name(metadata.binary_name))

        return context, supplied

    def _render_url(self, metadata: ReleaseMetadata) -> str:
        fields = {key: value for key, value in metadata.extra.items() if _present(value)}
        fields.update(binary_name=metadata.binary_name, version=metadata.version)
        try:
            return self._env.from_string(metadata.artifact_url_template or "").render(**fields)
        except TemplateSyntaxError as exc:
            raise RenderError(
                RenderErrorKind.TEMPLATE_SYNTAX,
                f"Artifact URL template is invalid: {exc.message}",
            ) from exc
        except UndefinedError as exc:
            raise RenderError(
                RenderErrorKind.MISSING_FIELD,
                f"Artifact URL template references a missing field: {exc.message}",
            ) from exc

    def _url_fields(self, metadata: ReleaseMetadata) -> Set[str]:
        if not _present(metadata.artifact_url_template):
            return set()
        parsed = self._env.parse(metadata.artifact_url_template or "")
        return set(meta.find_undeclared_variables(parsed))

    @staticmethod
    def _completions(metadata: ReleaseMetadata) -> List[Completion]:
        unknown = sorted(set(metadata.completion_shells) - _COMPLETION_SHELLS.keys())
        if unknown:
            raise RenderError(
                RenderErrorKind.UNKNOWN_SHELL,
                f"Unsupported completion shells: {', '.join(unknown)}",
                unknown,
            )
        completions = []
        for shell in sorted(metadata.completion_shells):
            directory, filename = _COMPLETION_SHELLS[shell]
            completions.append(
                Completion(
                    shell=shell,
                    command=f"completion {shell}",
                    directory=directory,
                    filename=filename.format(binary_name=metadata.binary_name),
                )
            )
        return completions


def render(
    template: ManifestTemplate, metadata: ReleaseMetadata, *, strict: bool = False
) -> RenderedManifest:
    """Render ``template`` with a one-off engine."""
    return ManifestEngine(strict=strict).render(template, metadata)


def supported_shells() -> List[str]:
    return sorted(_COMPLETION_SHELLS)

