"""Project tree scanning that turns files into classification signals."""

from __future__ import annotations

import os
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path
from threading import Event
from typing import Iterator, List, Mapping, Optional, Pattern, Sequence, Tuple, Union

from .config import ConfigError, load_config
from .logging import get_logger
from .models import ProjectSignal, SignalKind

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".releasepack",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

# Only the head of a file is read for shebang and content probes.
_HEAD_BYTES = 512

DEFAULT_CONTENT_PROBES: Mapping[str, Pattern[bytes]] = {
    "commonjs-require": re.compile(rb"\brequire\(\s*['\"][^'\"]+['\"]\s*\)"),
    "es-module-import": re.compile(rb"^\s*import\s+.+\s+from\s+['\"][^'\"]+['\"]", re.MULTILINE),
    "express-app": re.compile(rb"require\(\s*['\"]express['\"]\s*\)|from\s+['\"]express['\"]"),
    "go-package": re.compile(rb"^package\s+\w+\s*$", re.MULTILINE),
    "python-main": re.compile(rb"if\s+__name__\s*==\s*['\"]__main__['\"]"),
    "dockerfile-from": re.compile(rb"^FROM\s+\S+", re.MULTILINE),
    "helm-chart": re.compile(rb"^apiVersion:\s*v[12]\s*$", re.MULTILINE),
}

_logger = get_logger("scanner")


class ScanErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    NOT_A_DIRECTORY = "not_a_directory"


class ScanError(RuntimeError):
    """Raised when the scan root itself cannot be walked."""

    def __init__(self, kind: ScanErrorKind, path: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.path = path


@dataclass(frozen=True)
class ScanOmission:
    """A file whose signals were skipped because it could not be read."""

    path: str
    reason: str


@dataclass(frozen=True)
class ScanReport:
    """Eagerly collected scan output."""

    signals: Tuple[ProjectSignal, ...]
    omissions: Tuple[ScanOmission, ...]


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .releasepack.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


@dataclass(frozen=True)
class _AttributeRule:
    pattern: str
    language: str

    def matches(self, rel_path: str) -> bool:
        if "/" in self.pattern:
            return fnmatchcase(rel_path, self.pattern)
        return fnmatchcase(rel_path.rsplit("/", 1)[-1], self.pattern)


_Item = Union[ProjectSignal, ScanOmission]


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _read_lines(path: Path) -> List[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace").splitlines()
    except FileNotFoundError:
        return []
    except OSError as exc:
        _logger.warning("Could not read %s: %s", path.name, exc)
        return []


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for raw_line in _read_lines(path):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _parse_gitattributes(path: Path) -> List[_AttributeRule]:
    rules: List[_AttributeRule] = []
    for number, raw_line in enumerate(_read_lines(path), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        words = line.split()
        if len(words) != 2:
            _logger.debug("Invalid line in .gitattributes at L%d: %r", number, line)
            continue
        pattern, attribute = words
        if not attribute.startswith("linguist-language="):
            continue
        language = attribute.split("=", 1)[1].strip()
        if language:
            rules.append(_AttributeRule(pattern=pattern.strip("/"), language=language.lower()))
    return rules


def _load_ignore_rules(root: Path, extra_patterns: Sequence[str]) -> List[IgnoreRule]:
    rules = _parse_gitignore(root / ".gitignore")
    patterns = list(extra_patterns)
    try:
        patterns.extend(load_config(root).scanner.exclude_paths)
    except ConfigError as exc:
        _logger.warning("Ignoring unreadable project config: %s", exc)
    for pattern in patterns:
        rule = _build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _shebang_interpreter(head: bytes) -> Optional[str]:
    if not head.startswith(b"#!"):
        return None
    first_line = head[2:].split(b"\n", 1)[0].decode("utf-8", errors="replace")
    tokens = first_line.split()
    if not tokens:
        return None
    interpreter = tokens[0].rsplit("/", 1)[-1]
    if interpreter == "env":
        arguments = [token for token in tokens[1:] if not token.startswith("-")]
        if not arguments:
            return None
        interpreter = arguments[0].rsplit("/", 1)[-1]
    return interpreter or None


def validate_root(root: str) -> Path:
    """Resolve ``root`` or raise ``ScanError`` describing why it cannot be scanned."""
    root_path = Path(root).expanduser()
    try:
        resolved = root_path.resolve(strict=True)
    except FileNotFoundError:
        raise ScanError(
            ScanErrorKind.NOT_FOUND, root, f"Project path not found: {root}"
        ) from None
    except PermissionError:
        raise ScanError(
            ScanErrorKind.PERMISSION_DENIED, root, f"Permission denied reading project path: {root}"
        ) from None
    if not resolved.is_dir():
        raise ScanError(
            ScanErrorKind.NOT_A_DIRECTORY, root, f"Project path is not a directory: {root}"
        )
    if not os.access(resolved, os.R_OK | os.X_OK):
        raise ScanError(
            ScanErrorKind.PERMISSION_DENIED, root, f"Permission denied reading project path: {root}"
        )
    return resolved


class SignalScanner:
    """Walks a project directory and emits the signals the classifier scores."""

    def __init__(
        self,
        *,
        max_depth: int | None = None,
        workers: int = 1,
        exclude_paths: Sequence[str] = (),
        content_probes: Mapping[str, Pattern[bytes]] | None = None,
    ) -> None:
        if max_depth is not None and max_depth < 0:
            raise ValueError("max_depth must be zero or positive")
        self.max_depth = max_depth
        self.workers = max(1, workers)
        self.exclude_paths = tuple(exclude_paths)
        self.content_probes = dict(
            DEFAULT_CONTENT_PROBES if content_probes is None else content_probes
        )

    def scan(self, root: str, *, cancel: Event | None = None) -> Iterator[ProjectSignal]:
        """Return a fresh iterator over the signals of ``root``.

        The root is validated eagerly so structural problems surface as a
        ``ScanError`` at call time. Unreadable files are logged and skipped.
        Setting ``cancel`` ends the walk at the next directory or file.
        """
        root_path = validate_root(root)
        return self._signals_only(self._iter_items(root_path, cancel))

    def collect(self, root: str, *, cancel: Event | None = None) -> ScanReport:
        """Scan ``root`` eagerly and return signals together with omissions."""
        root_path = validate_root(root)
        signals: List[ProjectSignal] = []
        omissions: List[ScanOmission] = []
        for item in self._iter_items(root_path, cancel):
            if isinstance(item, ScanOmission):
                omissions.append(item)
            else:
                signals.append(item)
        return ScanReport(signals=tuple(signals), omissions=tuple(omissions))

    def _signals_only(self, items: Iterator[_Item]) -> Iterator[ProjectSignal]:
        for item in items:
            if isinstance(item, ScanOmission):
                continue
            yield item

    def _iter_items(self, root: Path, cancel: Event | None) -> Iterator[_Item]:
        rules = _load_ignore_rules(root, self.exclude_paths)
        attributes = _parse_gitattributes(root / ".gitattributes")

        if self.workers == 1:
            yield from self._walk(root, root, rules, attributes, cancel)
            return

        top_level: List[Path] = []
        yield from self._walk(root, root, rules, attributes, cancel, collect_dirs=top_level)
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [
                executor.submit(list, self._walk(root, subdir, rules, attributes, cancel))
                for subdir in top_level
            ]
            # Single aggregation point: results are consumed in submission order.
            for future in futures:
                yield from future.result()

    def _walk(
        self,
        root: Path,
        start: Path,
        rules: Sequence[IgnoreRule],
        attributes: Sequence[_AttributeRule],
        cancel: Event | None,
        *,
        collect_dirs: List[Path] | None = None,
    ) -> Iterator[_Item]:
        def _cancelled() -> bool:
            if cancel is not None and cancel.is_set():
                _logger.debug("Scan of %s cancelled", start)
                return True
            return False

        def _on_error(exc: OSError) -> None:
            rel = Path(exc.filename).relative_to(root).as_posix() if exc.filename else "?"
            _logger.warning("Skipping unreadable directory %s: %s", rel, exc.strerror)
            errors.append(ScanOmission(path=rel, reason=exc.strerror or str(exc)))

        errors: List[ScanOmission] = []
        for dirpath, dirnames, filenames in os.walk(start, onerror=_on_error):
            yield from errors
            errors.clear()
            if _cancelled():
                return

            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""
            depth = 0 if not rel_dir else rel_dir.count("/") + 1

            kept_dirs = []
            for name in sorted(dirnames):
                if name in _EXCLUDED_DIRS:
                    continue
                if (current_dir / name).is_symlink():
                    _logger.debug("Not following symlinked directory %s", name)
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if _should_ignore(rel_path, True, rules):
                    continue
                kept_dirs.append(name)
            if self.max_depth is not None and depth >= self.max_depth:
                kept_dirs = []
            if collect_dirs is not None:
                collect_dirs.extend(current_dir / name for name in kept_dirs)
                kept_dirs = []
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                if _cancelled():
                    return
                if filename in _EXCLUDED_FILES:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if _should_ignore(rel_path, False, rules):
                    continue
                yield from self._file_items(root, current_dir / filename, rel_path, attributes)
        yield from errors

    def _file_items(
        self,
        root: Path,
        path: Path,
        rel_path: str,
        attributes: Sequence[_AttributeRule],
    ) -> Iterator[_Item]:
        if path.is_symlink():
            try:
                target = path.resolve(strict=True)
            except (OSError, RuntimeError) as exc:
                _logger.warning("Skipping broken symlink %s: %s", rel_path, exc)
                yield ScanOmission(path=rel_path, reason=f"broken symlink: {exc}")
                return
            if target != root and root not in target.parents:
                _logger.debug("Not following symlink %s outside the project root", rel_path)
                return

        yield ProjectSignal(SignalKind.HAS_MARKER_FILE, rel_path, rel_path)
        suffix = path.suffix.lower()
        if suffix:
            yield ProjectSignal(SignalKind.HAS_EXTENSION, suffix, rel_path)

        for rule in attributes:
            if rule.matches(rel_path):
                yield ProjectSignal(SignalKind.CONTENT_MATCH, f"language:{rule.language}", rel_path)
                break

        try:
            size = path.stat().st_size
            if size == 0:
                return
            with path.open("rb") as handle:
                head = handle.read(_HEAD_BYTES)
        except OSError as exc:
            _logger.warning("Skipping content signals for %s: %s", rel_path, exc)
            yield ScanOmission(path=rel_path, reason=exc.strerror or str(exc))
            return

        interpreter = _shebang_interpreter(head)
        if interpreter:
            yield ProjectSignal(SignalKind.HAS_SHEBANG, interpreter, rel_path)

        for name, probe in self.content_probes.items():
            if probe.search(head):
                yield ProjectSignal(SignalKind.CONTENT_MATCH, name, rel_path)


def scan(
    root: str, *, max_depth: int | None = None, workers: int = 1
) -> Iterator[ProjectSignal]:
    """Scan ``root`` with a default-configured scanner."""
    return SignalScanner(max_depth=max_depth, workers=workers).scan(root)


__all__ = [
    "DEFAULT_CONTENT_PROBES",
    "ScanError",
    "ScanErrorKind",
    "ScanOmission",
    "ScanReport",
    "SignalScanner",
    "scan",
    "validate_root",
]
