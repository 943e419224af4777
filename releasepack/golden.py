"""Golden-file verification for rendered manifests."""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from enum import Enum
from itertools import zip_longest
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .logging import get_logger
from .models import RenderedManifest, VerificationResult

CURRENT_DIRNAME = "current"
GOLDEN_DIRNAME = "golden"

_logger = get_logger("golden")


class FixtureState(str, Enum):
    UNVERIFIED = "unverified"
    MATCHED = "matched"
    MISMATCHED = "mismatched"


@dataclass
class GoldenFixture:
    """A current render output paired with its committed golden snapshot."""

    fixture_id: str
    current_path: Path
    golden_path: Path
    state: FixtureState = FixtureState.UNVERIFIED
    regenerated: bool = False


@dataclass(frozen=True)
class FixtureOutcome:
    fixture: GoldenFixture
    result: VerificationResult


@dataclass(frozen=True)
class BatchReport:
    """Results for every fixture in a verification run."""

    outcomes: Tuple[FixtureOutcome, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return all(outcome.result.match for outcome in self.outcomes)

    @property
    def mismatches(self) -> List[FixtureOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.result.match]


def _strip_trailing_newlines(data: bytes) -> bytes:
    while data.endswith(b"\n"):
        data = data[:-2] if data.endswith(b"\r\n") else data[:-1]
    return data


def _lines(data: bytes) -> List[str]:
    if not data:
        return []
    # Split on "\n" only so carriage returns stay visible in the diff.
    return data.decode("utf-8", errors="replace").split("\n")


def _changed_lines(
    golden: Sequence[str], current: Sequence[str]
) -> List[Tuple[Optional[str], Optional[str]]]:
    changes: List[Tuple[Optional[str], Optional[str]]] = []
    matcher = difflib.SequenceMatcher(a=golden, b=current, autojunk=False)
    for tag, g_start, g_end, c_start, c_end in matcher.get_opcodes():
        if tag == "equal":
            continue
        changes.extend(zip_longest(golden[g_start:g_end], current[c_start:c_end]))
    return changes


def verify(current: bytes, golden: bytes) -> VerificationResult:
    """Compare byte-for-byte, ignoring only differences in trailing newlines."""
    current_body = _strip_trailing_newlines(current)
    golden_body = _strip_trailing_newlines(golden)
    if current_body == golden_body:
        return VerificationResult(match=True)

    golden_lines = _lines(golden_body)
    current_lines = _lines(current_body)
    diff = "\n".join(
        difflib.unified_diff(
            golden_lines,
            current_lines,
            fromfile=GOLDEN_DIRNAME,
            tofile=CURRENT_DIRNAME,
            lineterm="",
        )
    )
    return VerificationResult(
        match=False,
        diff=diff,
        changed_lines=tuple(_changed_lines(golden_lines, current_lines)),
    )


def verify_rendered(rendered: RenderedManifest, golden_path: Path) -> VerificationResult:
    """Compare a fresh render with the golden snapshot stored at ``golden_path``."""
    golden = golden_path.read_bytes() if golden_path.exists() else b""
    return verify(rendered.text, golden)


class GoldenVerifier:
    """Runs golden comparisons and owns the only write path to golden files."""

    def verify_fixture(self, fixture: GoldenFixture) -> VerificationResult:
        current = self._read(fixture.current_path)
        golden = self._read(fixture.golden_path)

        if current is None:
            result = VerificationResult(
                match=False, diff=f"current artifact missing: {fixture.current_path}"
            )
        elif golden is None:
            result = verify(current, b"")
            result = VerificationResult(
                match=False,
                diff=f"golden snapshot missing: {fixture.golden_path}\n{result.diff or ''}".rstrip(),
                changed_lines=result.changed_lines,
            )
        else:
            result = verify(current, golden)

        self._transition(fixture, result)
        return result

    def verify_all(self, fixtures: Iterable[GoldenFixture]) -> BatchReport:
        """Verify every fixture; a mismatch never stops the batch."""
        outcomes = [FixtureOutcome(fixture, self.verify_fixture(fixture)) for fixture in fixtures]
        report = BatchReport(outcomes=tuple(outcomes))
        _logger.info(
            "Verified %d fixture(s): %d mismatched", len(outcomes), len(report.mismatches)
        )
        return report

    def regenerate(self, fixture: GoldenFixture) -> None:
        """Accept the current artifact as the new golden snapshot."""
        data = fixture.current_path.read_bytes()
        fixture.golden_path.parent.mkdir(parents=True, exist_ok=True)
        fixture.golden_path.write_bytes(data)
        fixture.regenerated = True
        _logger.info("Regenerated golden snapshot %s", fixture.golden_path)

    @staticmethod
    def _read(path: Path) -> Optional[bytes]:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    @staticmethod
    def _transition(fixture: GoldenFixture, result: VerificationResult) -> None:
        observed = FixtureState.MATCHED if result.match else FixtureState.MISMATCHED
        if fixture.state is FixtureState.UNVERIFIED:
            fixture.state = observed
        elif fixture.state is FixtureState.MISMATCHED:
            if fixture.regenerated:
                fixture.state = observed
                fixture.regenerated = False
            elif result.match:
                _logger.warning(
                    "%s now matches but stays mismatched until it is regenerated", fixture.fixture_id
                )
        elif not result.match:
            _logger.warning("%s no longer matches its golden snapshot", fixture.fixture_id)


def discover_fixtures(directory: Path) -> List[GoldenFixture]:
    """Pair ``current/<path>`` with ``golden/<path>`` under ``directory``."""
    current_dir = directory / CURRENT_DIRNAME
    golden_dir = directory / GOLDEN_DIRNAME

    relative: set[str] = set()
    for base in (current_dir, golden_dir):
        if base.is_dir():
            relative.update(
                path.relative_to(base).as_posix() for path in base.rglob("*") if path.is_file()
            )

    return [
        GoldenFixture(
            fixture_id=rel_path,
            current_path=current_dir / rel_path,
            golden_path=golden_dir / rel_path,
        )
        for rel_path in sorted(relative)
    ]


__all__ = [
    "BatchReport",
    "FixtureOutcome",
    "FixtureState",
    "GoldenFixture",
    "GoldenVerifier",
    "discover_fixtures",
    "verify",
    "verify_rendered",
]
