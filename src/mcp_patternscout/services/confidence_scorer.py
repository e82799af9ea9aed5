"""Aggregate per-project evidence into confidence-scored verdicts."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import replace
from typing import Iterable, Mapping, Sequence

from ..domain.models import UNKNOWN_LABEL, Evidence, PatternVerdict, RejectedLabel
from .conflict_resolver import RULE_NO_EVIDENCE, LabelGroup, resolve
from .vocabulary import PRIMARY_FACETS, Category, facets_for

SATURATION_SCALE = 2.0
"""Support sum at which confidence reaches roughly 63%."""

MAX_CONFIDENCE = 100

SINGLE_FILE_CEILING = 60
"""Highest confidence a label backed by only one file may report."""

EVIDENCE_CAP = 10
"""Evidence items kept per verdict or rejected label, strongest first."""


def _mtime(mtimes: Mapping[str, float] | None, path: str) -> float:
    if not mtimes:
        return 0.0
    return float(mtimes.get(path, 0.0))


def label_confidence(evidence: Iterable[Evidence]) -> int:
    """
    Saturating confidence for one label's evidence.

    Each distinct file contributes its strongest item, so repeating a
    construct inside one file adds nothing while corroboration from other
    files always adds something.
    """

    per_file: dict[str, float] = {}
    for item in evidence:
        strength = min(max(item.strength, 0.0), 1.0)
        per_file[item.file] = max(per_file.get(item.file, 0.0), strength)
    if not per_file:
        return 0
    support = sum(per_file.values())
    confidence = min(
        MAX_CONFIDENCE, round(100 * (1 - math.exp(-support / SATURATION_SCALE)))
    )
    if len(per_file) == 1:
        confidence = min(confidence, SINGLE_FILE_CEILING)
    return int(confidence)


def rank_evidence(
    evidence: Iterable[Evidence],
    mtimes: Mapping[str, float] | None = None,
    cap: int = EVIDENCE_CAP,
) -> tuple[Evidence, ...]:
    """Order evidence by strength, then newest file, then location."""

    ranked = sorted(
        evidence,
        key=lambda item: (
            -item.strength,
            -_mtime(mtimes, item.file),
            item.file,
            item.line,
            item.shape,
        ),
    )
    return tuple(ranked[:cap])


def group_by_label(
    evidence: Iterable[Evidence], mtimes: Mapping[str, float] | None = None
) -> list[LabelGroup]:
    """Build one :class:`LabelGroup` per label, sorted by label name."""

    buckets: dict[str, list[Evidence]] = defaultdict(list)
    for item in evidence:
        buckets[item.label].append(item)

    groups: list[LabelGroup] = []
    for label in sorted(buckets):
        items = buckets[label]
        files = sorted({item.file for item in items})
        times = [_mtime(mtimes, path) for path in files]
        groups.append(
            LabelGroup(
                label=label,
                evidence=tuple(
                    sorted(items, key=lambda item: (item.file, item.line, item.shape))
                ),
                confidence=label_confidence(items),
                file_count=len(files),
                newest=max(times),
                oldest=min(times),
                first_path=files[0],
            )
        )
    return groups


def score(
    evidence: Sequence[Evidence],
    mtimes: Mapping[str, float] | None = None,
    *,
    category: str = "",
    facet: str = "",
) -> PatternVerdict:
    """Score one facet's evidence; zero evidence yields an unknown verdict."""

    if not evidence:
        return PatternVerdict(
            category=category,
            facet=facet,
            label=UNKNOWN_LABEL,
            confidence=0,
            resolution=RULE_NO_EVIDENCE,
        )
    category = category or evidence[0].category
    facet = facet or evidence[0].facet

    resolution = resolve(group_by_label(evidence, mtimes))
    winner = resolution.winner
    rejected = tuple(
        RejectedLabel(
            label=group.label,
            confidence=group.confidence,
            evidence_count=group.evidence_count,
            file_count=group.file_count,
            evidence=rank_evidence(group.evidence, mtimes),
        )
        for group in resolution.rejected
    )
    return PatternVerdict(
        category=category,
        facet=facet,
        label=winner.label,
        confidence=winner.confidence,
        evidence=rank_evidence(winner.evidence, mtimes),
        rejected=rejected,
        conflict=resolution.conflict,
        resolution=resolution.rule,
        evidence_count=winner.evidence_count,
    )


def score_category(
    category: Category,
    evidence: Iterable[Evidence],
    mtimes: Mapping[str, float] | None = None,
) -> PatternVerdict:
    """
    Score every facet of a category from that category's evidence alone.

    The primary facet's verdict stands for the category; the other facets
    hang off it under ``facets`` and never influence its label.
    """

    by_facet: dict[str, list[Evidence]] = defaultdict(list)
    for item in evidence:
        if item.category == category.value:
            by_facet[item.facet].append(item)

    primary = PRIMARY_FACETS[category]
    secondary = {
        facet: score(
            by_facet.get(facet, []), mtimes, category=category.value, facet=facet
        )
        for facet in facets_for(category)
        if facet != primary
    }
    verdict = score(
        by_facet.get(primary, []), mtimes, category=category.value, facet=primary
    )
    return replace(verdict, facets=secondary)
