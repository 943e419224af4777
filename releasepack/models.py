"""Core data models shared across releasepack components."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from fnmatch import fnmatchcase
from typing import Any, Dict, FrozenSet, Optional, Tuple


class SignalKind(str, Enum):
    """Categories of evidence the scanner extracts from a project tree."""

    HAS_MARKER_FILE = "has_marker_file"
    HAS_EXTENSION = "has_extension"
    HAS_SHEBANG = "has_shebang"
    CONTENT_MATCH = "content_match"


@dataclass(frozen=True)
class ProjectSignal:
    """A single piece of evidence observed at a path relative to the scan root."""

    kind: SignalKind
    value: str
    path: str

    @property
    def sort_key(self) -> Tuple[str, str, str]:
        return (self.kind.value, self.value, self.path)


@dataclass(frozen=True)
class SignalPredicate:
    """Matches signals of one kind whose value fits an fnmatch-style glob."""

    kind: SignalKind
    pattern: str
    weight: float = 1.0
    mandatory: bool = False

    def matches(self, signal: ProjectSignal) -> bool:
        return signal.kind is self.kind and fnmatchcase(signal.value, self.pattern)


@dataclass(frozen=True)
class BuildpackDefinition:
    """A named ecosystem with the predicates that identify it."""

    name: str
    predicates: Tuple[SignalPredicate, ...]
    priority: int = 100
    description: str = ""

    @property
    def mandatory_predicates(self) -> Tuple[SignalPredicate, ...]:
        return tuple(predicate for predicate in self.predicates if predicate.mandatory)

    @property
    def optional_predicates(self) -> Tuple[SignalPredicate, ...]:
        return tuple(predicate for predicate in self.predicates if not predicate.mandatory)


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of scoring a signal set against a buildpack registry."""

    buildpack: Optional[BuildpackDefinition]
    score: float = 0.0
    matched_signals: Tuple[ProjectSignal, ...] = ()
    ambiguous: bool = False
    candidates: Tuple[BuildpackDefinition, ...] = ()
    overridden: bool = False

    @property
    def name(self) -> str:
        if self.buildpack is not None:
            return self.buildpack.name
        if self.ambiguous:
            return "ambiguous"
        return "unknown"

    @property
    def is_unknown(self) -> bool:
        return self.buildpack is None and not self.ambiguous


@dataclass(frozen=True)
class ReleaseMetadata:
    """Release facts supplied by the release process for manifest rendering."""

    binary_name: str
    version: str
    artifact_url_template: Optional[str] = None
    checksum_algorithm: str = "sha256"
    checksum: Optional[str] = None
    completion_shells: FrozenSet[str] = frozenset()
    extra: Dict[str, Any] = field(default_factory=dict)

    def with_release(self, version: str, checksum: str) -> "ReleaseMetadata":
        """Return a copy describing a new release of the same binary."""
        return replace(self, version=version, checksum=checksum)


@dataclass(frozen=True)
class RenderedManifest:
    """Immutable manifest output; re-rendering always produces a new value."""

    text: bytes
    source_template_id: str
    metadata_version: str

    def decoded(self) -> str:
        return self.text.decode("utf-8")


@dataclass(frozen=True)
class VerificationResult:
    """Result of comparing a current artifact against its golden snapshot."""

    match: bool
    diff: Optional[str] = None
    changed_lines: Tuple[Tuple[Optional[str], Optional[str]], ...] = ()
