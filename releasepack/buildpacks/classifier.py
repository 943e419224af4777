"""Scores signals against registered buildpacks and picks the project type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..logging import get_logger
from ..models import BuildpackDefinition, ClassificationResult, ProjectSignal

_logger = get_logger("classifier")

# Scores are compared after rounding so float summation noise never breaks a tie.
_SCORE_PRECISION = 9


@dataclass(frozen=True)
class _Scored:
    definition: BuildpackDefinition
    score: float
    matched: Tuple[ProjectSignal, ...]

    @property
    def rank_key(self) -> Tuple[int, str]:
        return (self.definition.priority, self.definition.name)


def normalise_signals(signals: Iterable[ProjectSignal]) -> Tuple[ProjectSignal, ...]:
    """Drop duplicates and sort so results never depend on walk order."""
    return tuple(sorted(set(signals), key=lambda signal: signal.sort_key))


def score_definition(
    definition: BuildpackDefinition, signals: Tuple[ProjectSignal, ...]
) -> Optional[_Scored]:
    """Return the score of one definition, or None when it is not eligible."""
    score = 0.0
    matched: List[ProjectSignal] = []
    for predicate in definition.predicates:
        hits = [signal for signal in signals if predicate.matches(signal)]
        if not hits:
            if predicate.mandatory:
                return None
            continue
        score += predicate.weight
        matched.extend(hits)

    if not matched:
        return None
    return _Scored(
        definition=definition,
        score=round(score, _SCORE_PRECISION),
        matched=normalise_signals(matched),
    )


def classify(
    signals: Iterable[ProjectSignal], registry: Iterable[BuildpackDefinition]
) -> ClassificationResult:
    """Select the best-scoring eligible buildpack for ``signals``.

    Mandatory predicates gate eligibility. The highest score wins, ties fall
    back to ascending priority, and a tie on both yields an ambiguous result
    with no buildpack. No eligible definition means an unknown project.
    """
    normalised = normalise_signals(signals)

    scored: List[_Scored] = []
    for definition in registry:
        result = score_definition(definition, normalised)
        if result is None:
            _logger.debug("Buildpack %s is not eligible", definition.name)
            continue
        _logger.debug("Buildpack %s scored %s", definition.name, result.score)
        scored.append(result)

    if not scored:
        return ClassificationResult(buildpack=None)

    top_score = max(item.score for item in scored)
    leaders = sorted((item for item in scored if item.score == top_score), key=lambda item: item.rank_key)
    candidates = tuple(item.definition for item in leaders)

    best = leaders[0]
    tied = [item for item in leaders if item.definition.priority == best.definition.priority]
    if len(tied) > 1:
        _logger.info(
            "Ambiguous project type: %s share score %s and priority %d",
            ", ".join(item.definition.name for item in tied),
            top_score,
            best.definition.priority,
        )
        return ClassificationResult(
            buildpack=None,
            score=top_score,
            ambiguous=True,
            candidates=candidates,
        )

    return ClassificationResult(
        buildpack=best.definition,
        score=best.score,
        matched_signals=best.matched,
        candidates=candidates,
    )


__all__ = ["classify", "normalise_signals", "score_definition"]
