"""Offline harness scoring detector verdicts against a labeled corpus."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..domain.models import (
    AccuracyReport,
    CaseFailure,
    GroundTruthCase,
    PatternVerdict,
    ProjectContext,
)
from .ground_truth import GroundTruthCorpus, MeasurePlan, plan_measurement
from .project_scanner import ProjectScanner, ScanError
from .scan_limits import ScanOptions
from .vocabulary import PRIMARY_FACETS, parse_facet_key

_LOG = logging.getLogger(__name__)

LOW_ACCURACY_THRESHOLD = 0.7
"""Facet keys scoring below this get a recommendation."""

FAILURE_EVIDENCE_LIMIT = 3


@dataclass(frozen=True)
class _CaseRun:
    case: GroundTruthCase
    context: ProjectContext | None


@dataclass(frozen=True)
class _Miss:
    failure: CaseFailure
    lost_conflict: bool


def verdict_for(context: ProjectContext, key: str) -> PatternVerdict:
    """Return the verdict a facet key refers to inside a project context."""

    category, facet = parse_facet_key(key)
    verdict = context.verdict(category.value)
    if facet == PRIMARY_FACETS[category]:
        return verdict
    return verdict.facets[facet]


def _describe_failure(
    case: GroundTruthCase, key: str, verdict: PatternVerdict
) -> _Miss:
    expected = case.expected[key]
    failure = CaseFailure(
        project=case.project,
        facet_key=key,
        expected=expected,
        actual=verdict.label,
        confidence=verdict.confidence,
        evidence=tuple(
            f"{item.reference} {item.excerpt}"
            for item in verdict.evidence[:FAILURE_EVIDENCE_LIMIT]
        ),
        rejected=tuple(
            f"{item.label} ({item.confidence}%)" for item in verdict.rejected
        ),
    )
    lost = any(item.label == expected for item in verdict.rejected)
    return _Miss(failure=failure, lost_conflict=verdict.conflict and lost)


def _recommend(key: str, accuracy: float, misses: Sequence[_Miss]) -> str | None:
    if accuracy >= LOW_ACCURACY_THRESHOLD or not misses:
        return None
    expected = Counter(miss.failure.expected for miss in misses).most_common(1)[0][0]
    unknown = sum(1 for miss in misses if miss.failure.actual == "unknown")
    conflicts = sum(1 for miss in misses if miss.lost_conflict)
    if unknown * 2 >= len(misses):
        return (
            f"{key}: no evidence found in {unknown} case(s); the extraction "
            f"catalogue is likely missing a construct shape for '{expected}'."
        )
    if conflicts * 2 >= len(misses):
        return (
            f"{key}: the expected label was detected but lost conflict resolution "
            f"in {conflicts} case(s); review the recency policy and threshold."
        )
    actual = Counter(
        miss.failure.actual for miss in misses if miss.failure.actual != "unknown"
    ).most_common(1)[0][0]
    return (
        f"{key}: '{actual}' was reported where '{expected}' was expected; "
        f"tighten the matchers that emit '{actual}'."
    )


def _framework_report(
    framework: str, runs: Sequence[_CaseRun], plan: MeasurePlan
) -> AccuracyReport:
    totals: Counter[str] = Counter()
    correct: Counter[str] = Counter()
    label_totals: Counter[str] = Counter()
    label_correct: Counter[str] = Counter()
    misses: dict[str, list[_Miss]] = defaultdict(list)
    skipped: list[str] = []

    for run in runs:
        if run.context is None:
            skipped.append(run.case.project)
            continue
        for key in plan.keys:
            expected = run.case.expected.get(key)
            if expected is None or not plan.includes(key, expected):
                continue
            verdict = verdict_for(run.context, key)
            label_key = f"{key}:{expected}"
            totals[key] += 1
            label_totals[label_key] += 1
            if verdict.label == expected:
                correct[key] += 1
                label_correct[label_key] += 1
            else:
                misses[key].append(_describe_failure(run.case, key, verdict))

    by_key = {key: correct[key] / totals[key] for key in totals}
    by_label = {key: label_correct[key] / label_totals[key] for key in label_totals}
    recommendations = [
        text
        for key in sorted(by_key)
        if (text := _recommend(key, by_key[key], misses[key])) is not None
    ]
    failures = tuple(
        miss.failure
        for key in sorted(misses)
        for miss in sorted(misses[key], key=lambda item: item.failure.project)
    )
    return AccuracyReport(
        framework=framework,
        cases_evaluated=sum(1 for run in runs if run.context is not None),
        accuracy_by_category=by_key,
        accuracy_by_label=by_label,
        failures=failures,
        recommendations=tuple(recommendations),
        skipped_cases=tuple(sorted(skipped)),
    )


class AccuracyEvaluator:
    """
    Run the scanner over every corpus case and compare verdicts to labels.

    Cases share the scanner's cache and may run on a small thread pool;
    nothing measured here feeds back into scanning.
    """

    def __init__(
        self,
        scanner: ProjectScanner | None = None,
        options: ScanOptions | None = None,
        concurrency: int = 1,
    ) -> None:
        self._scanner = scanner or ProjectScanner()
        self._options = options
        self._concurrency = max(1, concurrency)

    def _run_case(self, corpus: GroundTruthCorpus, case: GroundTruthCase) -> _CaseRun:
        try:
            context = self._scanner.scan(corpus.project_dir(case), self._options)
        except ScanError as exc:
            _LOG.warning("Skipping case %s: %s", case.project, exc)
            return _CaseRun(case=case, context=None)
        return _CaseRun(case=case, context=context)

    def evaluate(
        self, corpus: GroundTruthCorpus, measure: Iterable[str] | None = None
    ) -> list[AccuracyReport]:
        """Return one report per framework, sorted by framework name."""

        plan = plan_measurement(corpus, measure)
        if self._concurrency == 1:
            runs = [self._run_case(corpus, case) for case in corpus.cases]
        else:
            with ThreadPoolExecutor(max_workers=self._concurrency) as pool:
                runs = list(
                    pool.map(lambda case: self._run_case(corpus, case), corpus.cases)
                )

        grouped: dict[str, list[_CaseRun]] = defaultdict(list)
        for run in runs:
            grouped[run.case.framework].append(run)
        return [
            _framework_report(framework, grouped[framework], plan)
            for framework in sorted(grouped)
        ]


def evaluate(
    corpus: GroundTruthCorpus,
    measure: Iterable[str] | None = None,
    *,
    scanner: ProjectScanner | None = None,
    options: ScanOptions | None = None,
) -> list[AccuracyReport]:
    """Convenience wrapper around :class:`AccuracyEvaluator`."""

    return AccuracyEvaluator(scanner=scanner, options=options).evaluate(
        corpus, measure
    )
