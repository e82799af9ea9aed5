"""Deterministic conflict resolution between competing labels."""

from __future__ import annotations

import itertools

import pytest

from mcp_patternscout.services.conflict_resolver import (
    RULE_EVIDENCE_COUNT,
    RULE_FIRST_SEEN,
    RULE_HIGHEST_CONFIDENCE,
    RULE_MOST_RECENT,
    RULE_SINGLE_LABEL,
    LabelGroup,
    resolve,
)


def _group(
    label: str,
    confidence: int,
    *,
    count: int = 1,
    newest: float = 100.0,
    oldest: float = 100.0,
    first_path: str = "a.js",
) -> LabelGroup:
    return LabelGroup(
        label=label,
        evidence=tuple(object() for _ in range(count)),  # only counted
        confidence=confidence,
        file_count=count,
        newest=newest,
        oldest=oldest,
        first_path=first_path,
    )


def test_single_label_wins_without_conflict() -> None:
    resolution = resolve([_group("cookie", 40)])

    assert resolution.winner.label == "cookie"
    assert resolution.rule == RULE_SINGLE_LABEL
    assert resolution.rejected == ()
    assert not resolution.conflict


def test_weak_rival_is_rejected_without_conflict() -> None:
    resolution = resolve([_group("cookie", 40), _group("local-storage", 10)])

    assert resolution.winner.label == "cookie"
    assert resolution.rule == RULE_SINGLE_LABEL
    assert [group.label for group in resolution.rejected] == ["local-storage"]
    assert not resolution.conflict


def test_strictly_newer_label_wins_over_stronger_one() -> None:
    old = _group("local-storage", 70, newest=100.0, oldest=10.0)
    new = _group("cookie", 30, newest=300.0, oldest=200.0)

    resolution = resolve([old, new])

    assert resolution.winner.label == "cookie"
    assert resolution.rule == RULE_MOST_RECENT
    assert resolution.conflict


def test_overlapping_history_falls_back_to_confidence() -> None:
    first = _group("local-storage", 70, newest=250.0, oldest=10.0)
    second = _group("cookie", 30, newest=300.0, oldest=200.0)

    resolution = resolve([first, second])

    assert resolution.winner.label == "local-storage"
    assert resolution.rule == RULE_HIGHEST_CONFIDENCE


def test_ties_break_on_evidence_count_then_path() -> None:
    by_count = resolve(
        [_group("cookie", 40, count=2), _group("session", 40, count=5)]
    )
    assert by_count.winner.label == "session"
    assert by_count.rule == RULE_EVIDENCE_COUNT

    by_path = resolve(
        [
            _group("cookie", 40, first_path="src/z.js"),
            _group("session", 40, first_path="src/a.js"),
        ]
    )
    assert by_path.winner.label == "session"
    assert by_path.rule == RULE_FIRST_SEEN


def test_input_order_never_changes_the_outcome() -> None:
    groups = [
        _group("cookie", 40, count=3, first_path="b.js"),
        _group("session", 40, count=3, first_path="a.js"),
        _group("local-storage", 55, newest=50.0, oldest=5.0),
        _group("query-param", 5),
    ]
    outcomes = {
        (
            resolution.winner.label,
            tuple(group.label for group in resolution.rejected),
            resolution.rule,
        )
        for resolution in (
            resolve(list(order)) for order in itertools.permutations(groups)
        )
    }
    assert len(outcomes) == 1


def test_nothing_to_resolve_is_an_error() -> None:
    with pytest.raises(ValueError):
        resolve([])
