"""Deterministic choice between competing labels of one facet."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..domain.models import Evidence

CONFLICT_THRESHOLD = 15
"""Minimum confidence a label needs before it can contest another label."""

RULE_SINGLE_LABEL = "single-label"
RULE_MOST_RECENT = "most-recent"
RULE_HIGHEST_CONFIDENCE = "highest-confidence"
RULE_EVIDENCE_COUNT = "evidence-count"
RULE_FIRST_SEEN = "first-seen"
RULE_NO_EVIDENCE = "no-evidence"


@dataclass(frozen=True)
class LabelGroup:
    """All evidence for one label plus the figures resolution needs."""

    label: str
    evidence: tuple[Evidence, ...]
    confidence: int
    file_count: int
    newest: float
    oldest: float
    first_path: str

    @property
    def evidence_count(self) -> int:
        return len(self.evidence)


@dataclass(frozen=True)
class Resolution:
    winner: LabelGroup
    rejected: tuple[LabelGroup, ...]
    rule: str
    conflict: bool


def _ranking_key(group: LabelGroup) -> tuple[int, int, str, str]:
    return (-group.confidence, -group.evidence_count, group.first_path, group.label)


def _ranking_rule(first: LabelGroup, second: LabelGroup) -> str:
    if first.confidence != second.confidence:
        return RULE_HIGHEST_CONFIDENCE
    if first.evidence_count != second.evidence_count:
        return RULE_EVIDENCE_COUNT
    return RULE_FIRST_SEEN


def _most_recent(contenders: Sequence[LabelGroup]) -> LabelGroup | None:
    """Return the label whose every file is newer than all rival files."""

    for candidate in contenders:
        rivals_newest = max(
            group.newest for group in contenders if group is not candidate
        )
        if candidate.oldest > rivals_newest:
            return candidate
    return None


def resolve(
    groups: Sequence[LabelGroup], threshold: int = CONFLICT_THRESHOLD
) -> Resolution:
    """
    Pick exactly one winning label; every other label is kept as rejected.

    Only labels at or above ``threshold`` contest each other. Among
    contenders, a label drawn entirely from files newer than every rival's
    files wins; otherwise confidence, evidence count and the smallest
    supporting path decide in that order. Input order never matters.
    """

    if not groups:
        raise ValueError("resolve() needs at least one label group.")

    ordered = sorted(groups, key=_ranking_key)
    contenders = [group for group in ordered if group.confidence >= threshold]
    conflict = len(contenders) > 1

    if len(ordered) == 1 or len(contenders) == 1:
        winner = contenders[0] if contenders else ordered[0]
        rule = RULE_SINGLE_LABEL
    elif conflict:
        recent = _most_recent(contenders)
        if recent is not None:
            winner, rule = recent, RULE_MOST_RECENT
        else:
            winner = contenders[0]
            rule = _ranking_rule(contenders[0], contenders[1])
    else:
        # nothing cleared the threshold; fall back to plain ranking
        winner = ordered[0]
        rule = _ranking_rule(ordered[0], ordered[1])

    rejected = tuple(group for group in ordered if group is not winner)
    return Resolution(winner=winner, rejected=rejected, rule=rule, conflict=conflict)
